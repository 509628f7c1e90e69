"""
Data Models Package

This package contains all Pydantic models used in fintrack.
All data flowing through the system must conform to these schemas.
"""

from fintrack.models.transaction import (
    EMPTY_CATEGORY,
    INCOME_KIND,
    CategoryTotal,
    FilterOptions,
    FilterSpec,
    LicenseRecord,
    LoginResult,
    MetricsResult,
    MutationResult,
    Page,
    Session,
    Table,
    TransactionFields,
    TransactionView,
    UserRecord,
    VersionInfo,
    WhoAmI,
)
from fintrack.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "EMPTY_CATEGORY",
    "INCOME_KIND",
    "CategoryTotal",
    "FilterOptions",
    "FilterSpec",
    "LicenseRecord",
    "LoginResult",
    "MetricsResult",
    "MutationResult",
    "Page",
    "Session",
    "Table",
    "TransactionFields",
    "TransactionView",
    "UserRecord",
    "VersionInfo",
    "WhoAmI",
    # Audit models
    "AUDIT_COLUMNS",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
