"""Storage factory functions for creating snapshot stores."""

import os
from pathlib import Path
from typing import Optional

from budgetbook.storage.base import SnapshotStore
from budgetbook.storage.json_files import JsonFileStore
from budgetbook.storage.sqlite import SqliteSnapshotStore

BACKENDS = ("json", "sqlite")
SQLITE_FILENAME = "budgetbook.db"


def default_data_dir(data_dir: Optional[str] = None) -> Path:
    """Resolve the data directory.

    Args:
        data_dir: Explicit directory. If None, checks BUDGETBOOK_DATA_DIR
            environment variable, then defaults to ~/.budgetbook
    """
    if data_dir is None:
        data_dir = os.environ.get("BUDGETBOOK_DATA_DIR")
    if data_dir is None:
        return Path.home() / ".budgetbook"
    return Path(data_dir).expanduser()


def create_json_store(data_dir: Optional[str] = None) -> JsonFileStore:
    """Create a JSON file store in the resolved data directory."""
    return JsonFileStore(default_data_dir(data_dir))


def create_sqlite_store(data_dir: Optional[str] = None) -> SqliteSnapshotStore:
    """Create a SQLite store at <data dir>/budgetbook.db.

    The directory is created if missing.
    """
    directory = default_data_dir(data_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return SqliteSnapshotStore(f"sqlite:///{directory / SQLITE_FILENAME}")


def create_store(backend: str = "json", data_dir: Optional[str] = None) -> SnapshotStore:
    """Create a snapshot store for a backend name.

    Raises:
        ValueError: If backend is not one of BACKENDS
    """
    if backend == "json":
        return create_json_store(data_dir)
    if backend == "sqlite":
        return create_sqlite_store(data_dir)
    raise ValueError(f"Unknown storage backend '{backend}'. Supported: {', '.join(BACKENDS)}")
