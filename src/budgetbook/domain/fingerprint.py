"""Transaction identity and text normalization.

The fingerprint is a SHA-256 digest over a fixed field set:

    date (ISO when parseable), amount (2dp), type, description,
    from_account, from_account_number, to_account, to_account_number

Strings are trimmed; nothing else is normalized, so two rows differing in
any of these fields get different ids. Two rows identical in all of them are
the same transaction as far as import is concerned.
"""

import hashlib
import json
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

from budgetbook.domain.entities import Transaction
from budgetbook.utils.date_parser import parse_date

FINGERPRINT_FIELDS = (
    "date",
    "amount",
    "type",
    "description",
    "from_account",
    "from_account_number",
    "to_account",
    "to_account_number",
)
FINGERPRINT_LENGTH = 20


def normalize_text(text: str | None) -> str:
    """Case-fold and trim description text for rule matching."""
    return (text or "").strip().casefold()


def _canonical_date(raw: Any) -> str:
    text = str(raw or "").strip()
    try:
        return parse_date(text).isoformat()
    except ValueError:
        return text


def _canonical_amount(raw: Any) -> str:
    try:
        return str(Decimal(str(raw)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return str(raw)


def fingerprint(transaction: Transaction) -> str:
    """Compute the stable id of a transaction.

    Pure and deterministic: the same field values always give the same id.
    """
    payload = {
        name: str(getattr(transaction, name) or "").strip()
        for name in FINGERPRINT_FIELDS
    }
    payload["date"] = _canonical_date(transaction.date)
    payload["amount"] = _canonical_amount(transaction.amount)
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()[:FINGERPRINT_LENGTH]
