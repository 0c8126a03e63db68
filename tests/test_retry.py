from types import SimpleNamespace

import pytest

from merchantdesk.utils.retry import calculate_backoff, http_status, is_retryable_error, retry_sync


class StatusError(Exception):
    def __init__(self, message, **attrs):
        super().__init__(message)
        for key, value in attrs.items():
            setattr(self, key, value)


def test_http_status_from_common_error_shapes():
    assert http_status(StatusError("x", status_code=429)) == 429
    assert http_status(StatusError("x", resp=SimpleNamespace(status=403))) == 403
    assert http_status(StatusError("x", resp=SimpleNamespace(status="404"))) == 404
    assert http_status(StatusError("x", response=SimpleNamespace(status_code=502))) == 502
    assert http_status(ValueError("plain")) is None


def test_status_code_beats_message_sniffing():
    assert is_retryable_error(StatusError("quota", resp=SimpleNamespace(status=429)))
    assert is_retryable_error(StatusError("backend", resp=SimpleNamespace(status=503)))
    assert not is_retryable_error(StatusError("500 in the message", resp=SimpleNamespace(status=403)))


def test_retryable_without_status():
    assert is_retryable_error(ConnectionError("reset"))
    assert is_retryable_error(TimeoutError())
    assert is_retryable_error(RuntimeError("Rate limit exceeded"))
    assert is_retryable_error(RuntimeError("request timed out"))
    assert not is_retryable_error(ValueError("bad input"))


def test_backoff_grows_and_is_capped():
    assert calculate_backoff(1, base_delay=1.0, jitter=False) == 1.0
    assert calculate_backoff(3, base_delay=1.0, jitter=False) == 4.0
    assert calculate_backoff(10, base_delay=1.0, max_delay=5.0, jitter=False) == 5.0
    assert 2.0 <= calculate_backoff(2, base_delay=1.0) <= 2.5


def test_retry_sync_retries_transient_errors():
    attempts = []
    retries = []

    @retry_sync(max_attempts=3, base_delay=0, on_retry=lambda n, e, d: retries.append(n))
    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("connection reset")
        return "ok"

    assert flaky() == "ok"
    assert len(attempts) == 3
    assert retries == [1, 2]


def test_retry_sync_does_not_retry_client_errors():
    attempts = []

    @retry_sync(max_attempts=3, base_delay=0)
    def rejected():
        attempts.append(1)
        raise StatusError("bad request", status_code=400)

    with pytest.raises(StatusError):
        rejected()
    assert len(attempts) == 1
