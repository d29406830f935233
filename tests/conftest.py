# tests/conftest.py

import os

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("NAV_ENABLED", "false")
os.environ.setdefault("APP_BASE_URL", "http://bridge.test")
os.environ.setdefault("MEKARI_BASE_URL", "https://provider.test/v2/esign/v1")
os.environ.setdefault("MEKARI_AUTH_URL", "https://account.provider.test")
os.environ.setdefault("MEKARI_SSO_BASE_URL", "https://account.provider.test")
os.environ.setdefault("MEKARI_OAUTH2_CLIENT_ID", "test-client")
os.environ.setdefault("MEKARI_OAUTH2_CLIENT_SECRET", "test-secret")

from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import Base, get_db
from app.core.redis import get_redis_db
from app.documents.folders import DocumentFolderManager
from app.erp.schemas import NAVSetup
from app.esign.cache import CorrelationRepository
from app.esign.exceptions import UpstreamException
from app.esign.schemas import ProviderDocumentResponse
from app.main import esign_app as fast_api_app
from app.utils.logger import get_logger
from app.worker.sink import BestEffortSink, get_sink

# Registers the tables on Base.metadata
from app.api_logs import models as _api_log_models  # noqa: F401
from app.oauth import models as _oauth_models  # noqa: F401

logger = get_logger(__name__)


# Database engine and session setup
engine = create_engine(
    "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session():
    """
    Fresh tables for every test, dropped afterwards.
    """
    Base.metadata.create_all(bind=engine)
    db = TestSessionLocal()
    try:
        yield db
        db.commit()
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


# Mock Redis client for testing
class MockRedis:
    """In-memory KeyValueCache that also remembers the ttl of every key"""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl=None):
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)
            self.ttls.pop(key, None)


class RecordingSink(BestEffortSink):
    def __init__(self, fail: bool = False):
        self.events: List[Tuple[str, dict]] = []
        self.fail = fail

    def _emit(self, kind, payload):
        if self.fail:
            raise RuntimeError("broker unavailable")
        self.events.append((kind, payload))

    def of_kind(self, kind):
        return [payload for event_kind, payload in self.events if event_kind == kind]


class FakeSigningClient:
    """Stands in for SigningClient; records every call"""

    def __init__(self, is_oauth2: bool = False):
        self.is_oauth2 = is_oauth2
        self.is_hmac = not is_oauth2
        self.sign_requests: List[Tuple[str, dict]] = []
        self.stamp_requests: List[Tuple[str, dict]] = []
        self.downloads: List[str] = []
        self.documents: Dict[str, bytes] = {}
        self.next_document_id = "doc-001"
        self.next_stamp_id = "stamp-001"
        self.fail_sign = False
        self.fail_stamp = False
        self.fail_download = False

    def request_global_sign(self, email, payload):
        self.sign_requests.append((email, payload))
        if self.fail_sign:
            raise UpstreamException("Signing provider", 422, '{"message":"invalid"}')
        return ProviderDocumentResponse.model_validate({
            "data": {
                "id": self.next_document_id,
                "type": "document",
                "attributes": {"filename": payload["filename"], "status": "pending"},
            }
        })

    def request_stamp(self, email, payload):
        self.stamp_requests.append((email, payload))
        if self.fail_stamp:
            raise UpstreamException("Signing provider", 500, "stamp failed")
        return ProviderDocumentResponse.model_validate({
            "data": {
                "id": self.next_stamp_id,
                "type": "document",
                "attributes": {"filename": payload["filename"], "stamping_status": "pending"},
            }
        })

    def download(self, email, doc_url):
        self.downloads.append(doc_url)
        if self.fail_download:
            raise UpstreamException("Signing provider", 404, "not found")
        return self.documents.get(doc_url, b"%PDF-downloaded")

    def download_document(self, email, document_id):
        return self.download(email, f"/documents/{document_id}/download")

    def get_profile(self, email):
        return {"id": "profile-1", "email": email}

    def get_documents(self, email, page=1, per_page=10):
        return {"data": [], "meta": {"page": page, "limit": per_page}}


class FakeERPClient:
    def __init__(self, setup: Optional[NAVSetup] = None, fail: bool = False):
        self.setup = setup
        self.fail = fail
        self.setup_calls = 0

    def get_setup(self):
        self.setup_calls += 1
        if self.fail:
            raise UpstreamException("ERP", 503, "unavailable")
        return self.setup


class FakeOAuthService:
    def __init__(self, emails_with_code=()):
        self.emails_with_code = set(emails_with_code)

    def has_code(self, email):
        return email in self.emails_with_code


@pytest.fixture
def mock_redis():
    """Fixture to provide a mock Redis instance."""
    return MockRedis()


@pytest.fixture
def correlation_repo(mock_redis):
    return CorrelationRepository(mock_redis)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def signing_client():
    return FakeSigningClient()


@pytest.fixture
def erp_client():
    return FakeERPClient()


@pytest.fixture
def folders(tmp_path):
    manager = DocumentFolderManager(base_path=str(tmp_path / "documents"))
    manager.ensure_directories()
    return manager


@pytest.fixture
def client(db_session, mock_redis, sink):
    """Fixture for setting up TestClient with overridden dependencies."""
    def override_get_db():
        yield db_session

    def override_get_redis_db():
        yield mock_redis

    fast_api_app.dependency_overrides[get_db] = override_get_db
    fast_api_app.dependency_overrides[get_redis_db] = override_get_redis_db
    fast_api_app.dependency_overrides[get_sink] = lambda: sink

    client = TestClient(fast_api_app)
    yield client

    fast_api_app.dependency_overrides.clear()
