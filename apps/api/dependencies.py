"""
Application container and FastAPI dependency providers.

One ArchiveContainer is built per application and stored on `app.state`.
Services are cheap wrappers around the shared repositories and are built
per request, bound to the session of the authenticated caller.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from archive.errors import ArchiveError
from archive.repository import FundRepository
from archive.seed import default_funds
from archive.service import ArchiveService
from auth.auth_manager import AuthManager
from auth.models import User
from auth.repository import UserRepository
from auth.session import AuthSession
from auth.token_blacklist import TokenBlacklist
from documents.repository import DocumentRepository
from documents.service import DocumentService
from security.audit.event_logger import AuditLogger
from security.policy.rbac import PermissionChecker, permission_checker
from storage.database import StorageConfig, create_store
from storage.kv_store import KeyValueStore

bearer_scheme = HTTPBearer(auto_error=False)


class ArchiveContainer:
    """Shared repositories and managers for one application instance"""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        config: Optional[StorageConfig] = None,
        jwt_secret: str = None,
        jwt_expiry: int = None,
        checker: PermissionChecker = None,
    ):
        self.config = config or StorageConfig()
        self.store = store if store is not None else create_store(self.config)
        self.checker = checker or permission_checker

        seed = default_funds() if self.config.seed_defaults else []
        self.funds = FundRepository(self.store, seed=seed)
        self.documents = DocumentRepository(self.store)
        self.users = UserRepository(self.store)
        self.audit = AuditLogger(self.store, max_events=self.config.audit_limit)
        self.blacklist = TokenBlacklist()
        self.auth = AuthManager(
            self.users,
            AuthSession.for_user(None),
            jwt_secret=jwt_secret,
            jwt_expiry=jwt_expiry,
            checker=self.checker,
            audit=self.audit,
        )
        logger.info(
            f"Archive container ready: {len(self.funds.funds)} funds, "
            f"{self.documents.count()} documents, {self.users.count()} users"
        )

    def archive_service(self, session: AuthSession) -> ArchiveService:
        return ArchiveService(
            self.funds, session, checker=self.checker, documents=self.documents, audit=self.audit
        )

    def document_service(self, session: AuthSession) -> DocumentService:
        return DocumentService(
            self.documents, session, checker=self.checker, archive=self.funds, audit=self.audit
        )

    def auth_manager(self, session: AuthSession) -> AuthManager:
        return self.auth.for_session(session)


def http_error(e: ArchiveError) -> HTTPException:
    """Translate a domain error into the matching HTTP error"""
    detail = {"message": e.message, **e.detail} if e.detail else e.message
    headers = {"WWW-Authenticate": "Bearer"} if e.status_code == 401 else None
    return HTTPException(status_code=e.status_code, detail=detail, headers=headers)


# ==================== DEPENDENCY FUNCTIONS ====================

def get_container(request: Request) -> ArchiveContainer:
    return request.app.state.container


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    container: ArchiveContainer = Depends(get_container),
) -> User:
    """Dependency: resolve the bearer token to the stored user"""
    if container.blacklist.is_revoked(token):
        raise HTTPException(
            status_code=401,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return container.auth.user_from_token(token)
    except ArchiveError as e:
        raise http_error(e)


def get_session(user: User = Depends(get_current_user)) -> AuthSession:
    return AuthSession.for_user(user)


def get_archive_service(
    session: AuthSession = Depends(get_session),
    container: ArchiveContainer = Depends(get_container),
) -> ArchiveService:
    return container.archive_service(session)


def get_document_service(
    session: AuthSession = Depends(get_session),
    container: ArchiveContainer = Depends(get_container),
) -> DocumentService:
    return container.document_service(session)


def get_auth_manager(
    session: AuthSession = Depends(get_session),
    container: ArchiveContainer = Depends(get_container),
) -> AuthManager:
    return container.auth_manager(session)
