"""
Base connector for upstream Google APIs
"""
import asyncio
import inspect
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from merchantdesk.utils.logger import log
from merchantdesk.utils.retry import calculate_backoff, http_status, is_retryable_error


class BaseConnector(ABC):
    """Shared call accounting and retry loop for upstream API connectors"""

    # Retry configuration (can be overridden by subclasses or instances)
    RETRY_MAX_ATTEMPTS = 3
    RETRY_BASE_DELAY = 2.0  # seconds
    RETRY_MAX_DELAY = 30.0  # seconds

    def __init__(self, name: str):
        self.name = name
        self.last_call: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.call_count = 0
        self.error_count = 0
        self.retry_count = 0

    @abstractmethod
    async def connect(self) -> bool:
        """Build the API client"""

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Make sure a usable client exists"""

    async def _call(
        self,
        operation: Callable[[], Any],
        operation_name: str = "operation",
        max_attempts: Optional[int] = None,
    ) -> Any:
        """
        Run one upstream request with retries.

        Blocking callables (googleapiclient's ``execute``) run in a worker
        thread; coroutine functions are awaited. 429, 5xx and network errors
        are retried with exponential backoff, everything else is raised at
        once.
        """
        attempts = max_attempts or self.RETRY_MAX_ATTEMPTS

        for attempt in range(1, attempts + 1):
            try:
                if inspect.iscoroutinefunction(operation):
                    result = await operation()
                else:
                    result = await asyncio.to_thread(operation)
            except Exception as e:
                if attempt >= attempts or not is_retryable_error(e):
                    self._record_failure(e)
                    raise

                delay = calculate_backoff(
                    attempt,
                    base_delay=self.RETRY_BASE_DELAY,
                    max_delay=self.RETRY_MAX_DELAY,
                )
                self.retry_count += 1
                log.warning(
                    f"{self.name} {operation_name} attempt {attempt}/{attempts} failed "
                    f"(status {http_status(e)}): {e}. Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)
                continue

            self.call_count += 1
            self.last_call = datetime.utcnow()
            return result

    def _record_failure(self, error: Exception) -> None:
        self.error_count += 1
        self.last_error = f"{type(error).__name__}: {error}"

    def get_status(self) -> Dict[str, Any]:
        """Call accounting for status pages"""
        return {
            "name": self.name,
            "last_call": self.last_call.isoformat() if self.last_call else None,
            "last_error": self.last_error,
            "call_count": self.call_count,
            "error_count": self.error_count,
            "retry_count": self.retry_count,
            "error_rate": self.error_count / max(self.call_count + self.error_count, 1),
        }
