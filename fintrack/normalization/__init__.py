"""Cell normalization package."""

from fintrack.normalization.parsers import (
    TRUTHY_TOKENS,
    format_date_display,
    format_key_value,
    normalize_text,
    parse_bool_like,
    parse_flexible_date,
    parse_money,
)

__all__ = [
    "TRUTHY_TOKENS",
    "format_date_display",
    "format_key_value",
    "normalize_text",
    "parse_bool_like",
    "parse_flexible_date",
    "parse_money",
]
