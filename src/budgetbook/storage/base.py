"""Abstract snapshot storage interface."""

from abc import ABC, abstractmethod
from datetime import datetime, UTC
from pathlib import Path

# Import entities directly to avoid pulling the services in through domain/__init__.py
from budgetbook.domain.entities import Snapshot
from budgetbook.domain.errors import PersistenceError
from budgetbook.logging_setup import get_logger
from budgetbook.storage.serialization import (
    MALFORMED_ERRORS,
    read_json_file,
    snapshot_from_document,
    snapshot_to_document,
    stamp,
    write_json_file,
)

logger = get_logger("budgetbook.storage")


class SnapshotStore(ABC):
    """Persistence gateway: saves and loads whole snapshots.

    Implementations never hand out references into their own state; every
    load returns a fresh Snapshot. I/O failures raise PersistenceError.
    """

    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        """Write the full snapshot, replacing whatever was stored."""
        pass

    @abstractmethod
    def load(self) -> Snapshot:
        """Read the stored snapshot (empty when nothing is stored)."""
        pass

    @abstractmethod
    def exists(self) -> bool:
        """Check whether a saved snapshot exists."""
        pass

    @abstractmethod
    def backup(self) -> str:
        """Copy the stored snapshot aside. Returns the backup location."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored snapshot (backups are kept)."""
        pass

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable description of where data is stored."""
        pass

    def export_to(self, snapshot: Snapshot, path: str | Path) -> Path:
        """Write a snapshot as a single JSON document.

        Returns:
            The written path
        """
        path = Path(path)
        try:
            write_json_file(path, snapshot_to_document(stamp(snapshot, datetime.now(UTC))))
        except OSError as e:
            raise PersistenceError(f"Could not export to {path}: {e}") from e
        logger.info("Exported %d transactions to %s", len(snapshot.transactions), path)
        return path

    def import_from(self, path: str | Path) -> Snapshot:
        """Read a snapshot previously written by export_to."""
        path = Path(path)
        try:
            document = read_json_file(path)
            return snapshot_from_document(document)
        except OSError as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e
        except MALFORMED_ERRORS as e:
            raise PersistenceError(f"Invalid snapshot document {path}: {e}") from e
