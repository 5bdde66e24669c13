"""
In-memory blacklist of revoked access tokens.

Logging out through the API revokes the bearer token until it would have
expired anyway. Single-instance only: entries are lost on restart.
"""

from datetime import datetime, timedelta, timezone
import threading
from typing import Dict


class TokenBlacklist:

    def __init__(self):
        self._revoked: Dict[str, datetime] = {}  # token -> expiry time
        self._lock = threading.Lock()

    def _cleanup_expired(self) -> None:
        now = datetime.now(timezone.utc)
        self._revoked = {k: v for k, v in self._revoked.items() if v > now}

    def revoke(self, token: str, ttl: int = 3600) -> None:
        with self._lock:
            self._cleanup_expired()
            self._revoked[token] = datetime.now(timezone.utc) + timedelta(seconds=ttl)

    def is_revoked(self, token: str) -> bool:
        with self._lock:
            expiry = self._revoked.get(token)
            if expiry is None:
                return False
            if expiry <= datetime.now(timezone.utc):
                del self._revoked[token]
                return False
            return True

    def __len__(self) -> int:
        with self._lock:
            self._cleanup_expired()
            return len(self._revoked)
