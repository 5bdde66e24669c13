import pytest
from fastapi.testclient import TestClient

from apps.api.main import create_app
from archive.repository import FundRepository
from archive.seed import default_funds
from archive.service import ArchiveService
from auth.auth_manager import AuthManager
from auth.models import User
from auth.repository import UserRepository
from auth.session import AuthSession
from documents.repository import DocumentRepository
from documents.service import DocumentService
from security.audit.event_logger import AuditLogger
from security.policy.rbac import Role
from storage.database import StorageConfig
from storage.kv_store import InMemoryKeyValueStore

TEST_SECRET = "test-secret-that-is-long-enough-for-hs256-signing"


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def fund_repo(store):
    return FundRepository(store, seed=default_funds())


@pytest.fixture
def doc_repo(store):
    return DocumentRepository(store)


@pytest.fixture
def audit(store):
    return AuditLogger(store, max_events=50)


@pytest.fixture
def session_for():
    def _session(role):
        if role is None:
            return AuthSession.for_user(None)
        user = User(name=f"{role.value} user", email=f"{role.value}@example.org", role=role)
        return AuthSession.for_user(user)
    return _session


@pytest.fixture
def archive_for(fund_repo, doc_repo, audit, session_for):
    def _service(role):
        return ArchiveService(fund_repo, session_for(role), documents=doc_repo, audit=audit)
    return _service


@pytest.fixture
def documents_for(fund_repo, doc_repo, audit, session_for):
    def _service(role):
        return DocumentService(doc_repo, session_for(role), archive=fund_repo, audit=audit)
    return _service


@pytest.fixture
def owner_archive(archive_for):
    return archive_for(Role.OWNER)


@pytest.fixture
def owner_documents(documents_for):
    return documents_for(Role.OWNER)


@pytest.fixture
def user_repo(store):
    return UserRepository(store)


@pytest.fixture
def auth_manager(store, user_repo, audit):
    return AuthManager(user_repo, AuthSession(store), jwt_secret=TEST_SECRET, audit=audit)


@pytest.fixture
def client():
    app = create_app(
        store=InMemoryKeyValueStore(),
        config=StorageConfig(backend="memory", seed_defaults=True),
        jwt_secret=TEST_SECRET,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def owner_headers(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Olga Owner", "email": "owner@example.org", "password": "owner-pass-1"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def reader_headers(client, owner_headers):
    response = client.post(
        "/api/auth/register",
        json={"name": "Rita Reader", "email": "reader@example.org", "password": "reader-pass-1"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
