"""
Shared fixtures.

Environment is pinned before anything from merchantdesk is imported so the
cached settings, the SQLAlchemy engine and the loguru sinks pick it up.
"""
import os
import tempfile
from types import SimpleNamespace

_TMP = tempfile.mkdtemp(prefix="merchantdesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["MERCHANT_IDS"] = ""
os.environ["MERCHANT_PAGE_DELAY_SECONDS"] = "0"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"
os.environ["GOOGLE_SERVICE_ACCOUNT_PATH"] = os.path.join(_TMP, "missing-key.json")

import pytest  # noqa: E402

from merchantdesk.connectors.merchant_center_connector import MerchantCenterConnector  # noqa: E402
from merchantdesk.models.base import Base, SessionLocal, engine, init_db  # noqa: E402
from merchantdesk.utils import cache  # noqa: E402


class FakeHttpError(Exception):
    """Shaped like googleapiclient.errors.HttpError: status on ``resp``."""

    def __init__(self, status: int, message: str = "upstream error"):
        super().__init__(f"<HttpError {status}: {message}>")
        self.resp = SimpleNamespace(status=status)


class _FakeRequest:
    def __init__(self, run):
        self._run = run

    def execute(self):
        return self._run()


class _FakeCollection:
    def __init__(self, service, name):
        self.service = service
        self.name = name

    def list(self, merchantId, maxResults=250, pageToken=None, fields=None):
        self.service.calls.append({
            "resource": self.name,
            "merchant_id": merchantId,
            "max_results": maxResults,
            "page_token": pageToken,
            "fields": fields,
        })

        def run():
            errors = self.service.errors[self.name]
            if errors:
                raise errors.pop(0)
            items = self.service.items[self.name].get(merchantId, [])
            start = int(pageToken or 0)
            end = start + maxResults
            result = {"resources": items[start:end]}
            if end < len(items):
                result["nextPageToken"] = str(end)
            return result

        return _FakeRequest(run)


class FakeContentService:
    """In-memory stand-in for the Content API v2.1 client."""

    def __init__(self, products=None, statuses=None):
        # merchant id -> list of resources
        self.items = {"products": products or {}, "productstatuses": statuses or {}}
        self.errors = {"products": [], "productstatuses": []}
        self.calls = []

    def products(self):
        return _FakeCollection(self, "products")

    def productstatuses(self):
        return _FakeCollection(self, "productstatuses")

    def calls_for(self, resource):
        return [c for c in self.calls if c["resource"] == resource]


@pytest.fixture
def content_service():
    return FakeContentService()


@pytest.fixture
def connector(content_service):
    conn = MerchantCenterConnector(service=content_service, page_size=2, page_delay=0)
    conn.RETRY_BASE_DELAY = 0
    conn.RETRY_MAX_DELAY = 0
    return conn


@pytest.fixture
def http_error():
    return FakeHttpError


@pytest.fixture(autouse=True)
def _fresh_cache():
    cache.clear_cache()
    yield
    cache.clear_cache()


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        with engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())
