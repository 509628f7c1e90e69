"""
Metrics Engine

Aggregates the FULL filtered set (pagination is ignored) into income,
expense and balance totals plus the top categories by net value.

All arithmetic is Decimal, so saldo == entradas - saidas exactly.
"""

from decimal import Decimal
from typing import Optional

from fintrack.models.transaction import (
    EMPTY_CATEGORY,
    INCOME_KIND,
    CategoryTotal,
    FilterSpec,
    MetricsResult,
    Table,
    TransactionView,
)
from fintrack.normalization import normalize_text
from fintrack.queries.engine import filter_and_sort


TOP_CATEGORIES = 5


def aggregate(views: list[TransactionView], top: int = TOP_CATEGORIES) -> MetricsResult:
    """Aggregate already-filtered transactions."""
    entradas = Decimal("0")
    saidas = Decimal("0")
    # dicts keep insertion order, which is the tie-breaker below
    net_by_category: dict[str, Decimal] = {}

    for view in views:
        category = view.category.strip() or EMPTY_CATEGORY
        if normalize_text(view.kind) == INCOME_KIND:
            entradas += view.value
            signed = view.value
        else:
            saidas += view.value
            signed = -view.value
        net_by_category[category] = net_by_category.get(category, Decimal("0")) + signed

    ranked = sorted(net_by_category.items(), key=lambda item: abs(item[1]), reverse=True)

    return MetricsResult(
        entradas=entradas,
        saidas=saidas,
        saldo=entradas - saidas,
        top_categorias=[
            CategoryTotal(category=category, value=value)
            for category, value in ranked[:top]
        ],
        sample=len(views),
    )


def compute_metrics(table: Table, spec: Optional[FilterSpec] = None) -> MetricsResult:
    """Filter the table with spec, then aggregate every match."""
    return aggregate(filter_and_sort(table, spec))
