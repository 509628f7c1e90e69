"""Transaction mutation package."""

from fintrack.mutations.writer import (
    LockTimeoutError,
    MutationError,
    TenantLocks,
    TransactionWriter,
)

__all__ = ["LockTimeoutError", "MutationError", "TenantLocks", "TransactionWriter"]
