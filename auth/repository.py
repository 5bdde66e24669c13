"""
Data access layer for users.

The whole user list is read from and written to the `archiveUsers` key.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError

from auth.models import UserRecord
from storage.kv_store import USERS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user records"""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._records: List[UserRecord] = self._load()

    def _load(self) -> List[UserRecord]:
        raw = self._store.read_json(USERS_KEY, [])
        if not isinstance(raw, list):
            logger.warning("User collection is not a list, starting empty")
            return []
        records = []
        for entry in raw:
            try:
                records.append(UserRecord(**entry))
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping malformed user record: {e}")
        return records

    def _save(self, records: List[UserRecord]) -> None:
        self._store.write_json(USERS_KEY, [r.model_dump(mode="json") for r in records])
        self._records = records

    def list(self) -> List[UserRecord]:
        return [r.model_copy() for r in self._records]

    def count(self) -> int:
        return len(self._records)

    def get_by_id(self, user_id: str) -> Optional[UserRecord]:
        for record in self._records:
            if record.id == user_id:
                return record.model_copy()
        return None

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        email = email.strip().lower()
        for record in self._records:
            if record.email.lower() == email:
                return record.model_copy()
        return None

    def add(self, record: UserRecord) -> UserRecord:
        self._save(self._records + [record])
        logger.info(f"Created user {record.id}")
        return record

    def replace(self, record: UserRecord) -> UserRecord:
        updated = [record if r.id == record.id else r for r in self._records]
        self._save(updated)
        logger.info(f"Updated user {record.id}")
        return record

    def remove(self, user_id: str) -> bool:
        updated = [r for r in self._records if r.id != user_id]
        if len(updated) == len(self._records):
            return False
        self._save(updated)
        logger.info(f"Deleted user {user_id}")
        return True
