"""Snapshot persistence for budgetbook."""

from budgetbook.storage.base import SnapshotStore
from budgetbook.storage.json_files import JsonFileStore
from budgetbook.storage.sqlite import SqliteSnapshotStore
from budgetbook.storage.factories import create_json_store, create_sqlite_store, create_store
from budgetbook.storage.autosave import AutoSaver, ManualScheduler, ThreadingScheduler

__all__ = [
    "SnapshotStore",
    "JsonFileStore",
    "SqliteSnapshotStore",
    "create_json_store",
    "create_sqlite_store",
    "create_store",
    "AutoSaver",
    "ManualScheduler",
    "ThreadingScheduler",
]
