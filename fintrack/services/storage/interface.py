"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for the external collaborators.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep query/metrics logic decoupled from storage implementation

Three collaborators live behind these interfaces:
- RecordStoreInterface: ordered header-keyed tables, one spreadsheet per tenant
- UserRegistryInterface: users and licenses, looked up by normalized email
- ProvisioningInterface: maps a user to their tenant store, creating it if needed

The interfaces are intentionally small - we're not building a full ORM.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from fintrack.models.audit import AuditEvent
from fintrack.models.transaction import LicenseRecord, Table, UserRecord


class RecordStoreInterface(ABC):
    """
    Abstract interface for tenant tables.

    Rows are addressed by a 1-based DATA row index: row 1 is the first
    row under the header. Values are keyed by header name.
    """

    @abstractmethod
    async def read_table(self, tenant_ref: str, table_name: str) -> Table:
        """
        Read a whole table.

        Args:
            tenant_ref: Opaque handle to the tenant's store
            table_name: Name of the table (sheet) inside the store

        Returns:
            Headers plus every data row, in sheet order

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def write_row(
        self,
        tenant_ref: str,
        table_name: str,
        row_index: int,
        values: dict[str, Any],
    ) -> None:
        """
        Overwrite a data row in place.

        Headers missing from `values` are written as empty strings.

        Raises:
            NotFoundError: If row_index is outside the table
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def append_row(
        self,
        tenant_ref: str,
        table_name: str,
        values: dict[str, Any],
    ) -> None:
        """Append a data row; missing headers are written as empty strings."""
        pass

    @abstractmethod
    async def delete_row(
        self,
        tenant_ref: str,
        table_name: str,
        row_index: int,
    ) -> None:
        """
        Delete a data row, shifting later rows up.

        Raises:
            NotFoundError: If row_index is outside the table
        """
        pass


class UserRegistryInterface(ABC):
    """Central registry of users and their licenses."""

    @abstractmethod
    async def get_user(self, email: str) -> Optional[UserRecord]:
        """
        Look up a user.

        Args:
            email: Normalized (trimmed, lower-cased) email

        Returns:
            The user if registered, None otherwise
        """
        pass

    @abstractmethod
    async def get_license(self, email: str) -> Optional[LicenseRecord]:
        """Look up the license for a normalized email; None when missing."""
        pass


class ProvisioningInterface(ABC):
    """Resolves (and creates on first use) a user's tenant store."""

    @abstractmethod
    async def resolve_tenant(self, email: str) -> tuple[str, bool]:
        """
        Get the tenant store for a user.

        Args:
            email: Normalized email

        Returns:
            (tenant_ref, created) - created is True when the store
            was provisioned by this call

        Raises:
            StorageError: If the store cannot be found or created
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
