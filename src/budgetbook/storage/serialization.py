"""Mapper functions between domain entities and JSON-ready structures.

Keyed tables (categories, rules, locks, budgets) are stored as arrays of
``[key, value]`` pairs; on load a repeated key keeps the last value.
Amounts are written as decimal strings and timestamps as ISO 8601.
"""

import json
import os
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional

from budgetbook.domain.entities import (
    Lock,
    MainCategory,
    Rule,
    Snapshot,
    SnapshotMetadata,
    SubCategory,
    Transaction,
)

SNAPSHOT_VERSION = "1.0.0"

# Exceptions raised by the from_dict mappers on malformed payloads
MALFORMED_ERRORS = (KeyError, TypeError, ValueError, ArithmeticError)

TABLES = (
    "transactions",
    "main_categories",
    "sub_categories",
    "rules",
    "locks",
    "budgets",
)


def _decimal_or_none(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _datetime_or_none(value: Optional[str]) -> Optional[datetime]:
    return None if value is None else datetime.fromisoformat(value)


def transaction_to_dict(txn: Transaction) -> dict[str, Any]:
    """Convert a Transaction entity to a JSON-ready dict."""
    return {
        "id": txn.id,
        "date": txn.date,
        "amount": str(txn.amount),
        "description": txn.description,
        "to_account": txn.to_account,
        "to_account_number": txn.to_account_number,
        "from_account": txn.from_account,
        "from_account_number": txn.from_account_number,
        "type": txn.type,
        "category_hint": txn.category_hint,
        "main_category_hint": txn.main_category_hint,
        "original_amount": None if txn.original_amount is None else str(txn.original_amount),
        "original_currency": txn.original_currency,
        "kid": txn.kid,
        "category_id": txn.category_id,
        "is_locked": txn.is_locked,
    }


def transaction_from_dict(data: dict[str, Any]) -> Transaction:
    """Convert a stored dict to a Transaction entity."""
    return Transaction(
        id=data.get("id", ""),
        date=data["date"],
        amount=Decimal(str(data["amount"])),
        description=data.get("description", ""),
        to_account=data.get("to_account", ""),
        to_account_number=data.get("to_account_number", ""),
        from_account=data.get("from_account", ""),
        from_account_number=data.get("from_account_number", ""),
        type=data.get("type", ""),
        category_hint=data.get("category_hint", ""),
        main_category_hint=data.get("main_category_hint"),
        original_amount=_decimal_or_none(data.get("original_amount")),
        original_currency=data.get("original_currency"),
        kid=data.get("kid"),
        category_id=data.get("category_id"),
        is_locked=bool(data.get("is_locked", False)),
    )


def main_category_to_dict(category: MainCategory) -> dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "sort_order": category.sort_order,
        "is_income": category.is_income,
        "is_system": category.is_system,
        "hide_from_category_page": category.hide_from_category_page,
        "allow_subcategories": category.allow_subcategories,
        "subcategory_ids": list(category.subcategory_ids),
    }


def main_category_from_dict(data: dict[str, Any]) -> MainCategory:
    return MainCategory(
        id=data["id"],
        name=data["name"],
        sort_order=int(data.get("sort_order", 0)),
        is_income=bool(data.get("is_income", False)),
        is_system=bool(data.get("is_system", False)),
        hide_from_category_page=bool(data.get("hide_from_category_page", False)),
        allow_subcategories=bool(data.get("allow_subcategories", True)),
        subcategory_ids=tuple(data.get("subcategory_ids", ())),
    )


def sub_category_to_dict(category: SubCategory) -> dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "main_category_id": category.main_category_id,
        "sort_order": category.sort_order,
    }


def sub_category_from_dict(data: dict[str, Any]) -> SubCategory:
    return SubCategory(
        id=data["id"],
        name=data["name"],
        main_category_id=data["main_category_id"],
        sort_order=int(data.get("sort_order", 0)),
    )


def rule_to_dict(rule: Rule) -> dict[str, Any]:
    return {
        "text": rule.text,
        "category_id": rule.category_id,
        "created_at": rule.created_at.isoformat(),
        "updated_at": rule.updated_at.isoformat(),
    }


def rule_from_dict(data: dict[str, Any]) -> Rule:
    return Rule(
        text=data["text"],
        category_id=data["category_id"],
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
    )


def lock_to_dict(lock: Lock) -> dict[str, Any]:
    return {
        "transaction_id": lock.transaction_id,
        "category_id": lock.category_id,
        "locked_at": lock.locked_at.isoformat(),
        "reason": lock.reason,
    }


def lock_from_dict(data: dict[str, Any]) -> Lock:
    return Lock(
        transaction_id=data["transaction_id"],
        category_id=data["category_id"],
        locked_at=datetime.fromisoformat(data["locked_at"]),
        reason=data.get("reason"),
    )


def metadata_to_dict(metadata: SnapshotMetadata) -> dict[str, Any]:
    return {
        "last_saved": None if metadata.last_saved is None else metadata.last_saved.isoformat(),
        "version": metadata.version,
        "transaction_count": metadata.transaction_count,
        "category_count": metadata.category_count,
        "rule_count": metadata.rule_count,
        "lock_count": metadata.lock_count,
    }


def metadata_from_dict(data: dict[str, Any]) -> SnapshotMetadata:
    return SnapshotMetadata(
        last_saved=_datetime_or_none(data.get("last_saved")),
        version=data.get("version", SNAPSHOT_VERSION),
        transaction_count=int(data.get("transaction_count", 0)),
        category_count=int(data.get("category_count", 0)),
        rule_count=int(data.get("rule_count", 0)),
        lock_count=int(data.get("lock_count", 0)),
    )


def _pairs(table: dict[str, Any], convert: Callable[[Any], Any]) -> list[list[Any]]:
    return [[key, convert(value)] for key, value in table.items()]


def _from_pairs(pairs: list, convert: Callable[[Any], Any]) -> dict[str, Any]:
    return {key: convert(value) for key, value in pairs}


def snapshot_to_tables(snapshot: Snapshot) -> dict[str, Any]:
    """Split a snapshot into one JSON-ready payload per table."""
    return {
        "transactions": [transaction_to_dict(t) for t in snapshot.transactions],
        "main_categories": _pairs(snapshot.main_categories, main_category_to_dict),
        "sub_categories": _pairs(snapshot.sub_categories, sub_category_to_dict),
        "rules": _pairs(snapshot.rules, rule_to_dict),
        "locks": _pairs(snapshot.locks, lock_to_dict),
        "budgets": _pairs(snapshot.budgets, str),
    }


def snapshot_from_tables(
    tables: dict[str, Any], metadata: Optional[dict[str, Any]] = None
) -> Snapshot:
    """Rebuild a snapshot from per-table payloads; absent tables are empty.

    Raises:
        One of MALFORMED_ERRORS: If a payload is malformed
    """
    return Snapshot(
        transactions=[transaction_from_dict(t) for t in tables.get("transactions") or []],
        main_categories=_from_pairs(tables.get("main_categories") or [], main_category_from_dict),
        sub_categories=_from_pairs(tables.get("sub_categories") or [], sub_category_from_dict),
        rules=_from_pairs(tables.get("rules") or [], rule_from_dict),
        locks=_from_pairs(tables.get("locks") or [], lock_from_dict),
        budgets=_from_pairs(tables.get("budgets") or [], lambda v: Decimal(str(v))),
        metadata=metadata_from_dict(metadata or {}),
    )


def snapshot_to_document(snapshot: Snapshot) -> dict[str, Any]:
    """Single-document form used for exports and key-value storage."""
    document = {"metadata": metadata_to_dict(snapshot.metadata)}
    document.update(snapshot_to_tables(snapshot))
    return document


def snapshot_from_document(document: dict[str, Any]) -> Snapshot:
    return snapshot_from_tables(document, document.get("metadata"))


def stamp(snapshot: Snapshot, saved_at: datetime) -> Snapshot:
    """Return the snapshot with save time and format version filled in."""
    return replace(
        snapshot,
        metadata=replace(snapshot.metadata, last_saved=saved_at, version=SNAPSHOT_VERSION),
    )


def write_json_file(path: Path, payload: Any) -> None:
    """Write JSON to a temp file next to path, then atomically replace path.

    Raises:
        OSError: If writing fails; path is left as it was
    """
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def read_json_file(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
