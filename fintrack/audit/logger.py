"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of logins and writes per tenant
2. Debugging capability
3. A record the owner of the registry can browse in Sheets

The audit logger:
- Gracefully handles failures (doesn't crash the request if logging fails)
- Always logs locally through structlog, persists only when storage is given
"""

from typing import Optional

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from fintrack.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Google Sheets (for persistence), when storage is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("fintrack.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available; DEBUG
        events (reads) are kept out of storage to save API quota.

        Returns True if storage write succeeded (or was not needed).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage and event.severity != AuditSeverity.DEBUG:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_login(self, identity: str, tenant_ref: str) -> None:
        await self.log(AuditEventBuilder.login_succeeded(identity, tenant_ref))

    async def log_login_failed(self, identity: str, reason: str) -> None:
        await self.log(AuditEventBuilder.login_failed(identity, reason))

    async def log_session_rejected(self) -> None:
        await self.log(AuditEventBuilder.session_rejected())

    async def log_tenant_provisioned(self, identity: str, tenant_ref: str) -> None:
        await self.log(AuditEventBuilder.tenant_provisioned(identity, tenant_ref))

    async def log_listing(
        self,
        identity: str,
        tenant_ref: str,
        total: int,
        cached: bool,
    ) -> None:
        await self.log(
            AuditEventBuilder.transactions_listed(identity, tenant_ref, total, cached)
        )

    async def log_metrics(
        self,
        identity: str,
        tenant_ref: str,
        sample: int,
        cached: bool,
    ) -> None:
        await self.log(
            AuditEventBuilder.metrics_computed(identity, tenant_ref, sample, cached)
        )

    async def log_transaction_saved(
        self,
        identity: str,
        tenant_ref: str,
        key: str,
        created: bool,
    ) -> None:
        await self.log(
            AuditEventBuilder.transaction_saved(identity, tenant_ref, key, created)
        )

    async def log_transaction_deleted(
        self,
        identity: str,
        tenant_ref: str,
        key: str,
        found: bool,
    ) -> None:
        if found:
            event = AuditEventBuilder.transaction_deleted(identity, tenant_ref, key)
        else:
            event = AuditEventBuilder.transaction_not_found(identity, tenant_ref, key)
        await self.log(event)

    async def log_lock_timeout(
        self,
        identity: str,
        tenant_ref: str,
        timeout: float,
    ) -> None:
        await self.log(AuditEventBuilder.lock_timeout(identity, tenant_ref, timeout))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        identity: Optional[str] = None,
        tenant_ref: Optional[str] = None,
    ) -> None:
        """Log external service error."""
        await self.log(
            AuditEventBuilder.external_service_error(
                service, error_message, identity=identity, tenant_ref=tenant_ref
            )
        )
