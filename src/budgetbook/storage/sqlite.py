"""SQLAlchemy key-value snapshot storage."""

import json
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budgetbook.domain.entities import Snapshot
from budgetbook.domain.errors import PersistenceError
from budgetbook.logging_setup import get_logger
from budgetbook.storage.base import SnapshotStore
from budgetbook.storage.models import Entry, create_session_factory
from budgetbook.storage.serialization import (
    MALFORMED_ERRORS,
    snapshot_from_document,
    snapshot_to_document,
    stamp,
)

logger = get_logger("budgetbook.storage.sqlite")

SNAPSHOT_KEY = "budgetbook-data"
BACKUP_PREFIX = "backup:"


class SqliteSnapshotStore(SnapshotStore):
    """Stores the whole snapshot as one JSON document under a fixed key."""

    def __init__(self, database_url: str):
        """Initialize key-value storage.

        Args:
            database_url: SQLAlchemy database URL (e.g., 'sqlite:///path/to.db')
        """
        self.database_url = database_url
        try:
            self.session_factory = create_session_factory(database_url)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not open database {database_url}: {e}") from e
        self._session: Optional[Session] = None

    @property
    def location(self) -> str:
        return self.database_url

    def _get_session(self) -> Session:
        """Get current session, creating one if needed."""
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    def disconnect(self) -> None:
        """Close the session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def _put(self, key: str, value: str) -> None:
        session = self._get_session()
        try:
            entry = session.get(Entry, key)
            if entry is None:
                session.add(Entry(key=key, value=value))
            else:
                entry.value = value
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not write '{key}': {e}") from e

    def _get(self, key: str) -> Optional[str]:
        try:
            entry = self._get_session().get(Entry, key)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read '{key}': {e}") from e
        return None if entry is None else entry.value

    def save(self, snapshot: Snapshot) -> None:
        document = snapshot_to_document(stamp(snapshot, datetime.now(UTC)))
        self._put(SNAPSHOT_KEY, json.dumps(document, ensure_ascii=False))
        logger.info("Saved %d transactions to %s", len(snapshot.transactions), self.database_url)

    def load(self) -> Snapshot:
        raw = self._get(SNAPSHOT_KEY)
        if raw is None:
            return Snapshot()
        try:
            snapshot = snapshot_from_document(json.loads(raw))
        except MALFORMED_ERRORS as e:
            raise PersistenceError(f"Corrupt snapshot in {self.database_url}: {e}") from e
        logger.info("Loaded %d transactions from %s", len(snapshot.transactions), self.database_url)
        return snapshot

    def exists(self) -> bool:
        return self._get(SNAPSHOT_KEY) is not None

    def backup(self) -> str:
        """Copy the snapshot under ``backup:<timestamp>``. Returns that key."""
        raw = self._get(SNAPSHOT_KEY)
        if raw is None:
            raise PersistenceError(f"No saved data in {self.database_url} to back up")
        key = BACKUP_PREFIX + datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
        self._put(key, raw)
        logger.info("Backed up data to key %s", key)
        return key

    def list_backups(self) -> list[str]:
        """Backup keys, oldest first."""
        try:
            rows = (
                self._get_session()
                .query(Entry.key)
                .filter(Entry.key.startswith(BACKUP_PREFIX))
                .order_by(Entry.key)
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not list backups: {e}") from e
        return [row.key for row in rows]

    def clear(self) -> None:
        session = self._get_session()
        try:
            session.query(Entry).filter(Entry.key == SNAPSHOT_KEY).delete()
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not clear {self.database_url}: {e}") from e
        logger.info("Cleared snapshot in %s", self.database_url)
