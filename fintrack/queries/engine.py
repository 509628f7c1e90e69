"""
Query Engine

Pure functions over a tenant table: filter, sort, paginate, and list the
distinct values available for filtering.

Semantics worth knowing:
- Any date bound excludes rows whose date cannot be parsed.
- date_to is inclusive of the whole day (comparison is on calendar dates).
- Text filters compare normalized text; kind is exact, the rest are substrings.
- Sort is newest first and stable; unparseable dates sort as the epoch.
"""

from datetime import date
from typing import Any, Optional

from fintrack.models.columns import cell, resolve_columns
from fintrack.models.transaction import (
    FilterOptions,
    FilterSpec,
    Page,
    Table,
    TransactionView,
)
from fintrack.normalization import (
    format_date_display,
    format_key_value,
    normalize_text,
    parse_bool_like,
    parse_flexible_date,
    parse_money,
)


EPOCH = date(1970, 1, 1)
DEFAULT_PAGE_SIZE = 200
MAX_PAGE_SIZE = 1000


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _is_blank(row: dict[str, Any]) -> bool:
    return not any(_text(value).strip() for value in row.values())


def _installment_count(value: Any) -> int:
    try:
        count = int(float(_text(value).strip().replace(",", ".")))
    except (ValueError, OverflowError):
        return 1
    return count if count >= 1 else 1


def identity_key(raw_date: Any, raw_description: Any, raw_value: Any) -> str:
    """date|description|value, using raw date and description text and the parsed value."""
    return "|".join(
        [_text(raw_date), _text(raw_description), format_key_value(parse_money(raw_value))]
    )


def to_view(
    row: dict[str, Any],
    columns: dict[str, str],
    parsed_date: Optional[date] = None,
) -> TransactionView:
    """Turn a header-keyed row into a TransactionView."""
    raw_date = cell(row, columns, "date")
    if parsed_date is None:
        parsed_date = parse_flexible_date(raw_date)
    raw_description = cell(row, columns, "description")
    raw_value = cell(row, columns, "total_value")

    return TransactionView(
        date=format_date_display(parsed_date),
        description=_text(raw_description),
        value=parse_money(raw_value),
        installment=parse_bool_like(cell(row, columns, "installment")),
        installment_count=_installment_count(cell(row, columns, "installment_count")),
        kind=_text(cell(row, columns, "kind")),
        category=_text(cell(row, columns, "category")),
        subcategory=_text(cell(row, columns, "subcategory")),
        payment_method=_text(cell(row, columns, "payment_method")),
        notes=_text(cell(row, columns, "notes")),
        status=parse_bool_like(cell(row, columns, "status")),
        key=identity_key(raw_date, raw_description, raw_value),
    )


def _contains(row: dict[str, Any], columns: dict[str, str], field: str, needle: str) -> bool:
    return normalize_text(needle) in normalize_text(cell(row, columns, field))


def _matches(
    row: dict[str, Any],
    columns: dict[str, str],
    row_date: Optional[date],
    spec: FilterSpec,
) -> bool:
    if spec.date_from is not None:
        if row_date is None or row_date < spec.date_from:
            return False
    if spec.date_to is not None:
        if row_date is None or row_date > spec.date_to:
            return False

    if spec.kind is not None:
        if normalize_text(cell(row, columns, "kind")) != normalize_text(spec.kind):
            return False
    if spec.category is not None and not _contains(row, columns, "category", spec.category):
        return False
    if spec.subcategory is not None and not _contains(row, columns, "subcategory", spec.subcategory):
        return False
    if spec.payment_method is not None and not _contains(
        row, columns, "payment_method", spec.payment_method
    ):
        return False

    if spec.installment is not None:
        wanted = spec.installment == "yes"
        if parse_bool_like(cell(row, columns, "installment")) != wanted:
            return False
    if spec.status is not None:
        wanted = spec.status == "true"
        if parse_bool_like(cell(row, columns, "status")) != wanted:
            return False

    return True


def filter_and_sort(table: Table, spec: Optional[FilterSpec] = None) -> list[TransactionView]:
    """
    Apply a filter spec to every row and sort newest first.

    Blank rows (every cell empty) are skipped. Pagination fields of the
    spec are ignored here.
    """
    spec = spec or FilterSpec()
    columns = resolve_columns(table.headers)

    matched: list[tuple[date, TransactionView]] = []
    for row in table.rows:
        if _is_blank(row):
            continue
        row_date = parse_flexible_date(cell(row, columns, "date"))
        if not _matches(row, columns, row_date, spec):
            continue
        matched.append((row_date or EPOCH, to_view(row, columns, row_date)))

    # list.sort is stable with reverse=True, ties keep sheet order
    matched.sort(key=lambda pair: pair[0], reverse=True)
    return [view for _, view in matched]


def paginate(
    items: list[TransactionView],
    page: Optional[int] = None,
    page_size: Optional[int] = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
) -> Page:
    """
    Slice a filtered list.

    page is floored at 1; page_size defaults to default_page_size and is
    clamped to [1, max_page_size]. total is always the unsliced length.
    """
    page = max(1, page or 1)
    if page_size is None:
        page_size = default_page_size
    page_size = min(max(1, page_size), max_page_size)

    start = (page - 1) * page_size
    return Page(
        total=len(items),
        page=page,
        page_size=page_size,
        items=items[start:start + page_size],
    )


def _distinct_sorted(values: list[str]) -> list[str]:
    """Distinct by normalized text, first spelling kept, sorted by normalized text."""
    seen: dict[str, str] = {}
    for value in values:
        key = normalize_text(value)
        if key and key not in seen:
            seen[key] = value.strip()
    return [seen[key] for key in sorted(seen)]


def build_filter_options(table: Table) -> FilterOptions:
    """Distinct filter values drawn from the whole table."""
    columns = resolve_columns(table.headers)

    kinds, categories, subcategories, methods = [], [], [], []
    years: set[int] = set()
    months: set[tuple[int, int]] = set()

    for row in table.rows:
        if _is_blank(row):
            continue
        kinds.append(_text(cell(row, columns, "kind")))
        categories.append(_text(cell(row, columns, "category")))
        subcategories.append(_text(cell(row, columns, "subcategory")))
        methods.append(_text(cell(row, columns, "payment_method")))

        row_date = parse_flexible_date(cell(row, columns, "date"))
        if row_date is not None:
            years.add(row_date.year)
            months.add((row_date.year, row_date.month))

    return FilterOptions(
        kinds=_distinct_sorted(kinds),
        categories=_distinct_sorted(categories),
        subcategories=_distinct_sorted(subcategories),
        payment_methods=_distinct_sorted(methods),
        years=sorted(years, reverse=True),
        months=[f"{month:02d}/{year}" for year, month in sorted(months, reverse=True)],
    )
