"""JSON file snapshot storage: one file per table."""

import shutil
from datetime import datetime, UTC
from pathlib import Path

from budgetbook.domain.entities import Snapshot
from budgetbook.domain.errors import PersistenceError
from budgetbook.logging_setup import get_logger
from budgetbook.storage.base import SnapshotStore
from budgetbook.storage.serialization import (
    MALFORMED_ERRORS,
    TABLES,
    metadata_to_dict,
    read_json_file,
    snapshot_from_tables,
    snapshot_to_tables,
    stamp,
    write_json_file,
)

logger = get_logger("budgetbook.storage.json")

METADATA_FILE = "metadata.json"
BACKUP_DIR = "backups"


class JsonFileStore(SnapshotStore):
    """Stores each table as ``<table>.json`` inside a data directory.

    ``metadata.json`` is written after all tables, so its presence marks a
    complete save. Every file is replaced atomically.
    """

    def __init__(self, data_dir: str | Path):
        """Initialize JSON file storage.

        Args:
            data_dir: Directory holding the table files (created on first save)
        """
        self.data_dir = Path(data_dir)

    @property
    def location(self) -> str:
        return str(self.data_dir)

    def _table_path(self, table: str) -> Path:
        return self.data_dir / f"{table}.json"

    @property
    def metadata_path(self) -> Path:
        return self.data_dir / METADATA_FILE

    def _files(self) -> list[Path]:
        return [self._table_path(t) for t in TABLES] + [self.metadata_path]

    def save(self, snapshot: Snapshot) -> None:
        snapshot = stamp(snapshot, datetime.now(UTC))
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for table, payload in snapshot_to_tables(snapshot).items():
                write_json_file(self._table_path(table), payload)
            write_json_file(self.metadata_path, metadata_to_dict(snapshot.metadata))
        except OSError as e:
            raise PersistenceError(f"Could not save to {self.data_dir}: {e}") from e
        logger.info(
            "Saved %d transactions to %s", len(snapshot.transactions), self.data_dir
        )

    def load(self) -> Snapshot:
        if not self.exists():
            return Snapshot()
        path = self.metadata_path
        try:
            metadata = read_json_file(path)
            tables = {}
            for table in TABLES:
                path = self._table_path(table)
                if path.exists():
                    tables[table] = read_json_file(path)
            snapshot = snapshot_from_tables(tables, metadata)
        except OSError as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e
        except MALFORMED_ERRORS as e:
            raise PersistenceError(f"Corrupt data file {path}: {e}") from e
        logger.info("Loaded %d transactions from %s", len(snapshot.transactions), self.data_dir)
        return snapshot

    def exists(self) -> bool:
        return self.metadata_path.exists()

    def backup(self) -> str:
        """Copy all data files into ``backups/<timestamp>/``.

        Raises:
            PersistenceError: If there is nothing to back up or copying fails
        """
        if not self.exists():
            raise PersistenceError(f"No saved data in {self.data_dir} to back up")
        timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
        target = self.data_dir / BACKUP_DIR / timestamp
        try:
            target.mkdir(parents=True)
            for path in self._files():
                if path.exists():
                    shutil.copy2(path, target / path.name)
        except OSError as e:
            raise PersistenceError(f"Could not back up to {target}: {e}") from e
        logger.info("Backed up data to %s", target)
        return str(target)

    def list_backups(self) -> list[Path]:
        """Backup directories, oldest first."""
        backup_root = self.data_dir / BACKUP_DIR
        if not backup_root.exists():
            return []
        return sorted(p for p in backup_root.iterdir() if p.is_dir())

    def clear(self) -> None:
        try:
            # metadata.json must disappear before any table file
            for path in reversed(self._files()):
                path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not clear {self.data_dir}: {e}") from e
        logger.info("Cleared data files in %s", self.data_dir)
