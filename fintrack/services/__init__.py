"""Services package."""

from fintrack.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsProvisioning,
    GoogleSheetsRecordStore,
    GoogleSheetsUserRegistry,
    NotFoundError,
    ProvisioningInterface,
    RecordStoreInterface,
    StorageError,
    UserRegistryInterface,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsProvisioning",
    "GoogleSheetsRecordStore",
    "GoogleSheetsUserRegistry",
    "NotFoundError",
    "ProvisioningInterface",
    "RecordStoreInterface",
    "StorageError",
    "UserRegistryInterface",
]
