"""Query and metrics package."""

from fintrack.queries.engine import (
    build_filter_options,
    filter_and_sort,
    identity_key,
    paginate,
    to_view,
)
from fintrack.queries.executor import TransactionQueryExecutor
from fintrack.queries.metrics import aggregate, compute_metrics

__all__ = [
    "TransactionQueryExecutor",
    "aggregate",
    "build_filter_options",
    "compute_metrics",
    "filter_and_sort",
    "identity_key",
    "paginate",
    "to_view",
]
