"""
SQLAlchemy-backed key-value store.

Each key is one row of the `kv_entries` table; the value column holds the
JSON-encoded collection exactly as the other backends store it. Works with
SQLite for local runs and any SQLAlchemy URL in deployment.
"""

import logging
import threading
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from archive.errors import StorageWriteError
from storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

Base = declarative_base()


class KeyValueEntry(Base):
    """One stored collection."""

    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True, doc="Storage key, e.g. 'archiveFunds'")
    value = Column(Text, nullable=False, doc="JSON-encoded collection")
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self):
        return f"<KeyValueEntry(key='{self.key}', size={len(self.value or '')})>"


class SqlKeyValueStore(KeyValueStore):
    """
    Key-value store on a relational database.

    Usage:
        store = SqlKeyValueStore("sqlite:///./data/archive.db")
        store.write_json("archiveFunds", [])
    """

    def __init__(self, database_url: str, echo: bool = False):
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self._engine = create_engine(database_url, echo=echo, connect_args=connect_args)
        self._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self._engine,
            expire_on_commit=False,
        )
        self._lock = threading.Lock()
        Base.metadata.create_all(bind=self._engine)
        logger.info(f"✓ SQL key-value store ready ({self._engine.url.get_backend_name()})")

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            session = self._SessionLocal()
            try:
                entry = session.get(KeyValueEntry, key)
                return entry.value if entry else None
            finally:
                session.close()

    def set(self, key: str, value: str) -> None:
        with self._lock:
            session = self._SessionLocal()
            try:
                entry = session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Commit failed for key '{key}': {e}")
                raise StorageWriteError(f"Failed to persist '{key}'") from e
            finally:
                session.close()

    def delete(self, key: str) -> None:
        with self._lock:
            session = self._SessionLocal()
            try:
                entry = session.get(KeyValueEntry, key)
                if entry is not None:
                    session.delete(entry)
                    session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Delete failed for key '{key}': {e}")
                raise StorageWriteError(f"Failed to delete '{key}'") from e
            finally:
                session.close()

    def keys(self) -> List[str]:
        with self._lock:
            session = self._SessionLocal()
            try:
                return list(session.scalars(select(KeyValueEntry.key)))
            finally:
                session.close()

    def dispose(self) -> None:
        """Close pooled connections."""
        self._engine.dispose()
