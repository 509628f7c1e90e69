"""
Audit Models for fintrack

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of logins and writes per tenant
2. Debugging information when a sheet misbehaves
3. Ability to reconstruct who changed what

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Authentication
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    SESSION_REJECTED = "session_rejected"
    TENANT_PROVISIONED = "tenant_provisioned"

    # Reads
    TRANSACTIONS_LISTED = "transactions_listed"
    METRICS_COMPUTED = "metrics_computed"

    # Writes
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    LOCK_TIMEOUT = "lock_timeout"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "identity",
    "tenant_ref",
    "description",
    "details_json",
    "error_message",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    Events are scoped by identity (who) and tenant_ref (which sheet)
    rather than by entity id; transactions have no surrogate id.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    identity: Optional[str] = None
    tenant_ref: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "identity": self.identity,
            "tenant_ref": self.tenant_ref,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """Convert to a row in AUDIT_COLUMNS order."""
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.identity or "",
            self.tenant_ref or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.login_succeeded(identity, tenant_ref)
        event = AuditEventBuilder.transaction_deleted(identity, tenant_ref, key)
    """

    @staticmethod
    def login_succeeded(identity: str, tenant_ref: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            identity=identity,
            tenant_ref=tenant_ref,
            description=f"Login: {identity}",
        )

    @staticmethod
    def login_failed(identity: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            identity=identity,
            description=f"Login refused: {identity}",
            details={"reason": reason},
        )

    @staticmethod
    def session_rejected() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_REJECTED,
            severity=AuditSeverity.WARNING,
            description="Request with missing or expired session",
        )

    @staticmethod
    def tenant_provisioned(identity: str, tenant_ref: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TENANT_PROVISIONED,
            identity=identity,
            tenant_ref=tenant_ref,
            description=f"Tenant store created for {identity}",
        )

    @staticmethod
    def transactions_listed(
        identity: str,
        tenant_ref: str,
        total: int,
        cached: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_LISTED,
            severity=AuditSeverity.DEBUG,
            identity=identity,
            tenant_ref=tenant_ref,
            description=f"Listing returned {total} transactions",
            details={"total": total, "cached": cached},
        )

    @staticmethod
    def metrics_computed(
        identity: str,
        tenant_ref: str,
        sample: int,
        cached: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.METRICS_COMPUTED,
            severity=AuditSeverity.DEBUG,
            identity=identity,
            tenant_ref=tenant_ref,
            description=f"Metrics over {sample} transactions",
            details={"sample": sample, "cached": cached},
        )

    @staticmethod
    def transaction_saved(
        identity: str,
        tenant_ref: str,
        key: str,
        created: bool,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.TRANSACTION_CREATED if created
            else AuditEventType.TRANSACTION_UPDATED
        )
        verb = "created" if created else "updated"
        return AuditEvent(
            event_type=event_type,
            identity=identity,
            tenant_ref=tenant_ref,
            description=f"Transaction {verb}: {key}",
            details={"key": key},
        )

    @staticmethod
    def transaction_deleted(identity: str, tenant_ref: str, key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            identity=identity,
            tenant_ref=tenant_ref,
            description=f"Transaction deleted: {key}",
            details={"key": key},
        )

    @staticmethod
    def transaction_not_found(identity: str, tenant_ref: str, key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            identity=identity,
            tenant_ref=tenant_ref,
            description=f"Delete target not found: {key}",
            details={"key": key},
        )

    @staticmethod
    def lock_timeout(identity: str, tenant_ref: str, timeout: float) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCK_TIMEOUT,
            severity=AuditSeverity.WARNING,
            identity=identity,
            tenant_ref=tenant_ref,
            description="Write lock not acquired in time",
            details={"timeout_seconds": timeout},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        identity: Optional[str] = None,
        tenant_ref: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            identity=identity,
            tenant_ref=tenant_ref,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
