"""
Key-value persistence for archive collections.

Every collection (funds, document metadata, users, ...) is stored as one
JSON-encoded string under a fixed key, and every mutation overwrites the
whole value. Repositories depend only on the KeyValueStore interface, so
tests run against InMemoryKeyValueStore while deployments use a JSON file
or a SQL table.

Classes:
- KeyValueStore: Abstract interface plus JSON helpers
- InMemoryKeyValueStore: dict-backed store (tests, ephemeral runs)
- JsonFileKeyValueStore: single JSON file on disk
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from archive.errors import StorageWriteError

logger = logging.getLogger(__name__)

# Storage keys
FUNDS_KEY = "archiveFunds"
DOCUMENTS_KEY = "archiveDocuments"
DOCUMENT_CONTENT_PREFIX = "archiveDocument:"
USERS_KEY = "archiveUsers"
AUTH_USER_KEY = "authUser"
AUDIT_LOG_KEY = "auditLog"


def document_content_key(document_id: str) -> str:
    return f"{DOCUMENT_CONTENT_PREFIX}{document_id}"


class KeyValueStore(ABC):
    """String key-value store with JSON convenience helpers."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the raw value for key, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Missing keys are ignored."""

    @abstractmethod
    def keys(self) -> List[str]:
        """List all stored keys."""

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def read_json(self, key: str, default: Any = None) -> Any:
        """
        Decode the JSON value stored under key.

        Missing or corrupt values return default; corruption is logged but
        never raised, the caller decides whether to rewrite the key.
        """
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Corrupt JSON under key '{key}', using default: {e}")
            return default

    def write_json(self, key: str, value: Any) -> None:
        """Encode value as JSON and store it under key."""
        try:
            payload = json.dumps(value, ensure_ascii=False, default=str)
            self.set(key, payload)
        except StorageWriteError:
            raise
        except Exception as e:
            logger.error(f"Failed to write key '{key}': {type(e).__name__}: {e}")
            raise StorageWriteError(f"Failed to persist '{key}'") from e


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Data is lost when the process exits."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def snapshot(self) -> Dict[str, str]:
        """Copy of the raw contents (used by tests to compare states)."""
        with self._lock:
            return dict(self._data)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Store all keys in one JSON object on disk.

    The file is rewritten atomically (temp file + rename) on every set or
    delete, so a crash never leaves a half-written file behind.
    """

    def __init__(self, file_path: Path):
        self._file_path = Path(file_path).expanduser().resolve()
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._data = self._load()
        logger.info(f"JSON key-value store at {self._file_path} ({len(self._data)} keys)")

    def _load(self) -> Dict[str, str]:
        if not self._file_path.exists():
            return {}
        raw = self._file_path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Store file {self._file_path} is corrupt, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Store file {self._file_path} is not an object, starting empty")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self, data: Dict[str, str]) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._file_path.parent), prefix=".archive-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._file_path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StorageWriteError(f"Failed to write {self._file_path}") from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            updated = dict(self._data)
            updated[key] = value
            self._flush(updated)
            self._data = updated

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            updated = dict(self._data)
            del updated[key]
            self._flush(updated)
            self._data = updated

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())
