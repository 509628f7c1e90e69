"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements Google Sheets as the backend, but designed to be swappable.
"""

from fintrack.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    ProvisioningInterface,
    RecordStoreInterface,
    StorageError,
    UserRegistryInterface,
)
from fintrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsProvisioning,
    GoogleSheetsRecordStore,
    GoogleSheetsUserRegistry,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ProvisioningInterface",
    "RecordStoreInterface",
    "UserRegistryInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsProvisioning",
    "GoogleSheetsRecordStore",
    "GoogleSheetsUserRegistry",
]
