"""
Authentication manager with bcrypt hashing and JWT access tokens.

Handles registration, login/logout of the current session, token issuing
for the REST API, and permission-gated user administration.
"""

import copy
import os
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import bcrypt
import jwt
from loguru import logger

from archive.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from auth.models import User, UserRecord, new_id
from auth.repository import UserRepository
from auth.session import AuthSession
from security.audit.event_logger import AuditLogger
from security.policy.rbac import Permission, PermissionChecker, Role, permission_checker

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


class AuthManager:
    """Authentication manager"""

    def __init__(
        self,
        users: UserRepository,
        session: AuthSession,
        jwt_secret: str = None,
        jwt_expiry: int = None,
        checker: PermissionChecker = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.jwt_secret = jwt_secret or os.getenv("JWT_SECRET")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
        if len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")
        self.jwt_expiry = jwt_expiry or int(os.getenv("JWT_EXPIRY_SECONDS", "3600"))
        self._users = users
        self._session = session
        self._checker = checker or permission_checker
        self._audit = audit
        logger.info("AuthManager initialized")

    # ==================== PASSWORD HASHING ====================

    def _hash_password(self, password: str) -> str:
        password_bytes = password.encode("utf-8")[:72]
        return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=12)).decode("utf-8")

    def _verify_password(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            logger.error("[VERIFY] Password hash is empty")
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
        except ValueError as e:
            logger.error(f"[VERIFY] Malformed password hash: {e}")
            return False

    # ==================== VALIDATION ====================

    def _validate_credentials(self, name: str, email: str, password: str) -> None:
        if not name or not name.strip():
            raise ValidationFailedError("Name is required")
        if not email or not EMAIL_PATTERN.match(email.strip()):
            raise ValidationFailedError("A valid email is required")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailedError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self._users.get_by_email(email) is not None:
            raise ConflictError("Email already registered")

    def _build_record(self, name: str, email: str, password: str, role: Role) -> UserRecord:
        return UserRecord(
            name=name.strip(),
            email=email.strip().lower(),
            role=role,
            password_hash=self._hash_password(password),
        )

    def _record(self, action: str, target: Optional[str] = None, status: str = "success", **details) -> None:
        if self._audit is not None:
            self._audit.record(self._session.user_id, action, target, status=status, details=details)

    # ==================== REGISTRATION ====================

    def register(self, name: str, email: str, password: str) -> User:
        """Register a new user. The first user of an empty archive becomes owner."""
        logger.info(f"[REGISTER] Starting registration for email: {email}")
        self._validate_credentials(name, email, password)

        role = Role.OWNER if self._users.count() == 0 else Role.READER
        record = self._users.add(self._build_record(name, email, password, role))

        self._record("user_registered", record.id, role=role.value)
        logger.info(f"[REGISTER] User registered successfully: {record.email} as {role.value}")
        return record.to_user()

    # ==================== LOGIN ====================

    def login(self, email: str, password: str) -> User:
        """Verify credentials and make the user the current session user"""
        logger.info(f"[LOGIN] Starting login for email: {email}")

        record = self._users.get_by_email(email or "")
        if record is None or not self._verify_password(password or "", record.password_hash):
            logger.warning(f"[LOGIN] Invalid credentials for: {email}")
            raise AuthenticationError("Invalid email or password")

        user = record.to_user()
        self._session.start(user)
        self._record("login_success", user.id)
        logger.info(f"[LOGIN] User logged in successfully: {user.email}")
        return user

    def logout(self) -> None:
        user_id = self._session.user_id
        if user_id:
            self._record("logout", user_id)
        self._session.end()
        logger.info(f"[LOGOUT] Session closed for user: {user_id}")

    def restore_session(self) -> Optional[User]:
        """Reload the mirrored user, dropping it if the account no longer exists"""
        user = self._session.restore()
        if user is None:
            return None
        record = self._users.get_by_id(user.id)
        if record is None:
            logger.warning(f"[SESSION] Mirrored user {user.id} no longer exists")
            self._session.end()
            return None
        fresh = record.to_user()
        self._session.start(fresh)
        return fresh

    @property
    def current_user(self) -> Optional[User]:
        return self._session.user

    @property
    def session(self) -> AuthSession:
        return self._session

    def for_session(self, session: AuthSession) -> "AuthManager":
        """Same users and settings, acting as the user of another session"""
        bound = copy.copy(self)
        bound._session = session
        return bound

    def has_permission(self, permission: Permission) -> bool:
        return self._checker.check(self._session.role, permission).allowed

    # ==================== TOKENS ====================

    def issue_token(self, user: User) -> str:
        role = user.role.value if isinstance(user.role, Role) else str(user.role)
        return jwt.encode(
            {
                "sub": user.id,
                "email": user.email,
                "role": role,
                "jti": new_id(),
                "exp": datetime.now(timezone.utc) + timedelta(seconds=self.jwt_expiry),
            },
            self.jwt_secret,
            algorithm="HS256",
        )

    def verify_token(self, token: str) -> Optional[dict]:
        """Verify JWT token and return payload"""
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            logger.warning("[TOKEN_VERIFY] Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"[TOKEN_VERIFY] Invalid token: {e}")
            return None

    def user_from_token(self, token: str) -> User:
        """Resolve the stored user behind a token; the stored role wins over the claim"""
        payload = self.verify_token(token)
        if not payload:
            raise AuthenticationError("Invalid or expired token")
        record = self._users.get_by_id(payload.get("sub", ""))
        if record is None:
            raise AuthenticationError("User not found")
        return record.to_user()

    # ==================== USER ADMINISTRATION ====================

    def _require_manage(self, action: str) -> None:
        try:
            self._checker.enforce(self._session.role, Permission.MANAGE_USERS, action=action)
        except PermissionDeniedError:
            self._record(action, status="denied")
            raise

    def _require_role_authority(self, target_role: Role, action: str) -> None:
        if not self._checker.can_manage_role(self._session.role, target_role):
            self._record(action, status="denied", role=target_role.value)
            logger.warning(f"[USERS] {self._session.user_id} may not {action} role '{target_role.value}'")
            raise PermissionDeniedError(
                f"Only an owner can {action} a user with role '{target_role.value}'",
                detail={"permission": Permission.ASSIGN_ELEVATED_ROLES.value},
            )

    def _owner_count(self) -> int:
        return sum(1 for r in self._users.list() if r.role == Role.OWNER)

    def list_users(self) -> List[User]:
        self._require_manage("list users")
        return [r.to_user() for r in self._users.list()]

    def create_user(self, name: str, email: str, password: str, role: Role = Role.READER) -> User:
        self._require_manage("create user")
        role = Role.parse(role)
        self._require_role_authority(role, "assign")
        self._validate_credentials(name, email, password)

        record = self._users.add(self._build_record(name, email, password, role))
        self._record("user_created", record.id, role=role.value)
        logger.info(f"[USERS] Created user {record.email} with role {role.value}")
        return record.to_user()

    def update_user_role(self, user_id: str, role: Role) -> User:
        self._require_manage("update user role")
        role = Role.parse(role)

        record = self._users.get_by_id(user_id)
        if record is None:
            raise NotFoundError("User", user_id)

        self._require_role_authority(record.role, "edit")
        self._require_role_authority(role, "assign")

        if record.role == Role.OWNER and role != Role.OWNER and self._owner_count() <= 1:
            raise ValidationFailedError("At least one owner account must remain.")

        record.role = role
        self._users.replace(record)
        self._record("user_role_updated", user_id, role=role.value)

        if self._session.user_id == user_id:
            self._session.start(record.to_user())
        return record.to_user()

    def delete_user(self, user_id: str) -> None:
        self._require_manage("delete user")

        record = self._users.get_by_id(user_id)
        if record is None:
            raise NotFoundError("User", user_id)

        self._require_role_authority(record.role, "delete")

        if record.role == Role.OWNER and self._owner_count() <= 1:
            raise ValidationFailedError("At least one owner account must remain.")

        self._users.remove(user_id)
        self._record("user_deleted", user_id)

        if self._session.user_id == user_id:
            self._session.end()
