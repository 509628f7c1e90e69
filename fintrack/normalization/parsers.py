"""
Cell Normalization Utilities

Spreadsheet cells arrive as whatever the user typed: "R$ 1.234,56",
"31/12/2024", "Sim", "  Alimentação ". These helpers turn them into
comparable Python values.

DESIGN DECISION: Every parser here is TOTAL.
A malformed cell must never break a listing of a thousand good rows.
- parse_money    -> Decimal("0") on bad input
- parse_bool_like -> False on bad input
- parse_flexible_date -> None on bad input (callers decide what
  "unknown date" means for them)
"""

import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


TRUTHY_TOKENS = frozenset({"sim", "true", "1", "yes"})

_BR_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_CURRENCY_NOISE = re.compile(r"(R\$|\$|\s)", re.IGNORECASE)

# Largest decimal exponent a cell amount may have; "1e5000" is noise, not money
MAX_MONEY_EXPONENT = 15


def normalize_text(value: Any) -> str:
    """
    Canonical form used for every case/accent-insensitive comparison.

    "  Alimentação " -> "alimentacao"
    """
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


def parse_money(value: Any) -> Decimal:
    """
    Parse a currency cell into a Decimal.

    Handles:
    - native numbers (int, float, Decimal)
    - "1.234,56" / "R$ 1.234,56" (comma decimal, dot thousands)
    - "1234.56" (dot decimal)
    - "1.234.567" (dots only as thousands)

    Anything else gives Decimal("0"), and so does any amount whose
    magnitude is beyond 10**MAX_MONEY_EXPONENT or below its inverse.
    """
    if isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return _bounded(value)
    if isinstance(value, (int, float)):
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")
        return _bounded(parsed)
    if value is None:
        return Decimal("0")

    text = _CURRENCY_NOISE.sub("", str(value))
    if not text:
        return Decimal("0")

    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return Decimal("0")
    return _bounded(parsed)


def _bounded(value: Decimal) -> Decimal:
    if not value.is_finite():
        return Decimal("0")
    if abs(value.adjusted()) > MAX_MONEY_EXPONENT:
        return Decimal("0")
    return value


def parse_bool_like(value: Any) -> bool:
    """True for sim/true/1/yes (any case or accent), False otherwise."""
    if isinstance(value, bool):
        return value
    return normalize_text(value) in TRUTHY_TOKENS


def parse_flexible_date(value: Any) -> Optional[date]:
    """
    Parse a date cell.

    Accepts native date/datetime values, "dd/mm/yyyy" and "yyyy-mm-dd".
    Both string forms are prefix matches, so "2024-12-31T10:00:00" and
    "31/12/2024 08:15" also parse. Returns None when nothing matches or the
    matched numbers are not a real calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None

    text = str(value).strip()
    match = _BR_DATE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
    else:
        match = _ISO_DATE.match(text)
        if not match:
            return None
        year, month, day = (int(part) for part in match.groups())

    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_date_display(value: Any) -> str:
    """Format as dd/mm/yyyy; empty string when value is not a date."""
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        return ""
    return value.strftime("%d/%m/%Y")


def format_key_value(value: Decimal) -> str:
    """
    Render an amount for identity keys.

    Trailing zeros are dropped so "5000,00" and 5000 produce the same key.
    """
    value = parse_money(value)
    if not value:
        return "0"
    return format(value.normalize(), "f")
