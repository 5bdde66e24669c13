"""
Current-user session.

The logged-in user is held in process memory and, when a store is given,
mirrored under the `authUser` key so a restart can restore it. Request-scoped
sessions (REST API) are built with `AuthSession.for_user` and never mirrored.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from auth.models import User
from security.policy.rbac import Role
from storage.kv_store import AUTH_USER_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class AuthSession:

    def __init__(self, store: Optional[KeyValueStore] = None, user: Optional[User] = None):
        self._store = store
        self._user = user

    @classmethod
    def for_user(cls, user: Optional[User]) -> "AuthSession":
        return cls(store=None, user=user)

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def user_id(self) -> Optional[str]:
        return self._user.id if self._user else None

    @property
    def role(self) -> Optional[Role]:
        return self._user.role if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def start(self, user: User) -> None:
        self._user = user
        if self._store is not None:
            self._store.write_json(AUTH_USER_KEY, user.model_dump(mode="json"))

    def end(self) -> None:
        self._user = None
        if self._store is not None:
            self._store.delete(AUTH_USER_KEY)

    def restore(self) -> Optional[User]:
        """Reload the mirrored user; a corrupt or missing value means no user."""
        if self._store is None:
            return self._user
        payload = self._store.read_json(AUTH_USER_KEY)
        if payload is None:
            self._user = None
            return None
        try:
            self._user = User(**payload)
        except (TypeError, ValidationError) as e:
            logger.warning(f"Discarding corrupt session record: {e}")
            self._user = None
        return self._user
