"""Amount parsing utilities."""

import re
from decimal import Decimal, InvalidOperation


def parse_amount(amount_str: str, decimal_comma: bool = True) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles bank export formats:
    - "-1234,56" and "-1 234,56" (decimal comma, space grouping)
    - "1.234,56" (dot grouping with decimal comma)
    - "kr 250,00" (currency markers)
    - "(123,45)" (negative in parentheses)
    - "123.45" (a lone dot is always a decimal point)

    Args:
        amount_str: Amount string
        decimal_comma: If True and a comma is present, "," is the decimal
            separator and "." groups thousands

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if amount_str is None or not str(amount_str).strip():
        raise ValueError("Empty amount string")

    text = str(amount_str).strip()

    is_negative = False
    if text.startswith("(") and text.endswith(")"):
        is_negative = True
        text = text[1:-1]

    # Currency markers and all whitespace, including non-breaking spaces
    text = re.sub(r"(?i)nok|kr|[$€£]", "", text)
    text = re.sub(r"\s", "", text)
    # Unicode minus sign
    text = text.replace("−", "-")

    if decimal_comma and "," in text:
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")

    try:
        amount = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount


def format_amount(amount: Decimal) -> str:
    """Format an amount with two decimals and a decimal comma."""
    return f"{amount:.2f}".replace(".", ",")
