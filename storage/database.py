"""
Storage configuration and backend selection.

This module handles:
- Reading storage settings from the environment
- Building the configured KeyValueStore backend
"""

import logging
import os
from pathlib import Path

import dotenv

from storage.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

dotenv.load_dotenv()

BACKENDS = ("memory", "json", "sql")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class StorageConfig:
    """Configuration for the archive key-value store"""

    def __init__(
        self,
        backend: str = None,
        path: str = None,
        database_url: str = None,
        seed_defaults: bool = None,
        audit_limit: int = None,
    ):
        self.backend = (backend or os.getenv("ARCHIVE_STORAGE_BACKEND", "json")).lower()
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown storage backend '{self.backend}', expected one of {BACKENDS}")

        self.path = Path(path or os.getenv("ARCHIVE_STORAGE_PATH", "./data/archive.json"))
        self.database_url = database_url or os.getenv(
            "ARCHIVE_DATABASE_URL", "sqlite:///./data/archive.db"
        )
        self.seed_defaults = (
            seed_defaults if seed_defaults is not None else _env_flag("ARCHIVE_SEED_DEFAULTS", "true")
        )
        self.audit_limit = (
            audit_limit if audit_limit is not None else int(os.getenv("ARCHIVE_AUDIT_LIMIT", "1000"))
        )
        if self.audit_limit < 1:
            raise ValueError(f"ARCHIVE_AUDIT_LIMIT must be at least 1, got {self.audit_limit}")

        # Echo SQL for debugging
        self.echo = _env_flag("DB_ECHO", "false")

        logger.info(f"Storage config: backend={self.backend}, seed_defaults={self.seed_defaults}")


def create_store(config: StorageConfig = None) -> KeyValueStore:
    """Build the key-value store selected by config."""
    if config is None:
        config = StorageConfig()

    if config.backend == "memory":
        logger.info("🔄 Using in-memory storage (data is not persisted)")
        return InMemoryKeyValueStore()

    if config.backend == "sql":
        from storage.relational.sql_store import SqlKeyValueStore

        if config.database_url.startswith("sqlite:///"):
            db_file = Path(config.database_url[len("sqlite:///"):])
            db_file.parent.mkdir(parents=True, exist_ok=True)
        return SqlKeyValueStore(config.database_url, echo=config.echo)

    return JsonFileKeyValueStore(config.path)
