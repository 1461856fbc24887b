"""CSV import domain service."""

import csv
import io
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from budgetbook.domain.categorization import CategorizationService
from budgetbook.domain.entities import ImportResult, ParseResult, Transaction
from budgetbook.domain.errors import PersistenceError, ValidationError
from budgetbook.domain.fingerprint import fingerprint
from budgetbook.domain.store import TransactionStore
from budgetbook.logging_setup import get_logger
from budgetbook.utils.amount_parser import format_amount, parse_amount
from budgetbook.utils.date_parser import parse_date

logger = get_logger("budgetbook.csv_import")

DELIMITER = ";"

REQUIRED_COLUMNS = (
    "Dato",
    "Beløp",
    "Til konto",
    "Til kontonummer",
    "Fra konto",
    "Fra kontonummer",
    "Type",
    "Tekst",
    "Underkategori",
)

# Header order of bank exports, also used when writing CSV back out
EXPORT_COLUMNS = (
    "Dato",
    "Beløp",
    "Originalt Beløp",
    "Original Valuta",
    "Til konto",
    "Til kontonummer",
    "Fra konto",
    "Fra kontonummer",
    "Type",
    "Tekst",
    "KID",
    "Hovedkategori",
    "Underkategori",
)


def _optional(row: dict[str, str], column: str) -> Optional[str]:
    if column not in row:
        return None
    return row[column]


def parse_csv(text: str) -> ParseResult:
    """Parse a semicolon-delimited bank export.

    Rows repeating the fingerprint of an earlier row are returned as
    duplicates; rows with an empty or unreadable date or amount are rejected
    and reported in ``errors`` with their line number.

    Raises:
        ValidationError: If the text is empty or required columns are missing
    """
    text = (text or "").lstrip("\ufeff")
    if not text.strip():
        raise ValidationError("CSV file is empty")

    reader = csv.reader(io.StringIO(text.strip()), delimiter=DELIMITER)
    header = [column.strip() for column in next(reader)]
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise ValidationError(f"Missing required columns: {', '.join(missing)}")

    transactions: list[Transaction] = []
    duplicates: list[Transaction] = []
    errors: list[str] = []
    seen: set[str] = set()

    for row_num, columns in enumerate(reader, start=2):  # header is row 1
        if not any(column.strip() for column in columns):
            continue
        row = {name: (columns[i].strip() if i < len(columns) else "") for i, name in enumerate(header)}

        date_str = row["Dato"]
        if not date_str:
            errors.append(f"Row {row_num}: Missing date")
            continue
        try:
            parse_date(date_str)
        except ValueError as e:
            errors.append(f"Row {row_num}: {e}")
            continue

        if not row["Beløp"]:
            errors.append(f"Row {row_num}: Missing amount")
            continue
        try:
            amount = parse_amount(row["Beløp"])
            original = _optional(row, "Originalt Beløp")
            original_amount = parse_amount(original) if original else None
        except ValueError as e:
            errors.append(f"Row {row_num}: {e}")
            continue

        txn = Transaction(
            date=date_str,
            amount=amount,
            description=row["Tekst"],
            to_account=row["Til konto"],
            to_account_number=row["Til kontonummer"],
            from_account=row["Fra konto"],
            from_account_number=row["Fra kontonummer"],
            type=row["Type"],
            category_hint=row["Underkategori"],
            main_category_hint=_optional(row, "Hovedkategori"),
            original_amount=original_amount,
            original_currency=_optional(row, "Original Valuta"),
            kid=_optional(row, "KID"),
        )
        txn = replace(txn, id=fingerprint(txn))
        if txn.id in seen:
            duplicates.append(txn)
        else:
            seen.add(txn.id)
            transactions.append(txn)

    return ParseResult(
        transactions=tuple(transactions),
        duplicates=tuple(duplicates),
        original_count=len(transactions) + len(duplicates),
        unique_count=len(transactions),
        errors=tuple(errors),
    )


def _export_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format_amount(value)
    return str(value)


def export_csv(transactions: Iterable[Transaction]) -> str:
    """Write transactions in the bank export format."""
    out = io.StringIO()
    writer = csv.writer(out, delimiter=DELIMITER, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for txn in transactions:
        writer.writerow(
            [
                _export_value(value)
                for value in (
                    txn.date,
                    txn.amount,
                    txn.original_amount,
                    txn.original_currency,
                    txn.to_account,
                    txn.to_account_number,
                    txn.from_account,
                    txn.from_account_number,
                    txn.type,
                    txn.description,
                    txn.kid,
                    txn.main_category_hint,
                    txn.category_hint,
                )
            ]
        )
    return out.getvalue()


class CSVImportService:
    """Service for importing bank CSV exports into the store."""

    def __init__(self, store: TransactionStore):
        """Initialize CSV import service.

        Args:
            store: Transaction store to import into
        """
        self.store = store
        self.categorization = CategorizationService(store)

    def parse_csv(self, text: str) -> ParseResult:
        return parse_csv(text)

    def import_text(self, text: str) -> ImportResult:
        """Import transactions from CSV text.

        Transactions already in the store are skipped, so importing the same
        export twice leaves the store unchanged. Rules are applied to the
        newly imported transactions only.

        Returns:
            ImportResult with parsed, duplicate, skipped and imported counts
        """
        parsed = parse_csv(text)
        already_stored = sum(
            1 for txn in parsed.transactions if self.store.get_transaction(txn.id) is not None
        )
        added = self.store.import_transactions(parsed.transactions)
        imported_ids = tuple(txn.id for txn in added)
        auto_categorized = self.categorization.apply_rules(imported_ids) if added else 0

        logger.info(
            "Imported %d transactions (%d duplicates in file, %d already stored, %d rejected)",
            len(added),
            len(parsed.duplicates),
            already_stored,
            len(parsed.errors),
        )
        return ImportResult(
            parsed=parsed.original_count,
            duplicates_in_file=len(parsed.duplicates),
            already_stored=already_stored,
            imported=len(added),
            auto_categorized=auto_categorized,
            imported_ids=imported_ids,
            errors=parsed.errors,
        )

    def import_file(self, csv_file_path: str | Path) -> ImportResult:
        """Import transactions from a CSV file.

        Raises:
            FileNotFoundError: If CSV file doesn't exist
            PersistenceError: If the file can't be read
        """
        csv_path = Path(csv_file_path)
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {csv_file_path}")
        try:
            text = csv_path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Could not read {csv_path}: {e}") from e
        return self.import_text(text)

    def export_csv(self, transactions: Optional[Iterable[Transaction]] = None) -> str:
        """Export the given (default: all stored) transactions as CSV text."""
        return export_csv(self.store.transactions if transactions is None else transactions)
