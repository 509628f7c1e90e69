"""
Main Orchestrator for fintrack

This module ties together all the components and exposes the public
operations:
1. login / who_am_i / get_version
2. list_transactions / get_metrics / get_filter_options (cached reads)
3. upsert_transaction / delete_transaction (locked writes)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every operation except login and get_version resolves a session first
- The tenant store always comes from the session, never from the caller
- Every write is audited

Errors propagate to the caller:
- SessionError subclasses carry a user-facing message
- MutationError (lock timeout) means "try again", not "bad data"
- StorageError means the backing sheet failed; it is audited, then re-raised
"""

from datetime import datetime
from typing import Any, Callable, Optional, Union

from fintrack.audit import AuditLogger
from fintrack.cache import CacheInterface, TTLCache
from fintrack.config import get_settings
from fintrack.config.settings import AppSettings
from fintrack.models.transaction import (
    FilterOptions,
    FilterSpec,
    LoginResult,
    MetricsResult,
    MutationResult,
    Page,
    TransactionFields,
    VersionInfo,
    WhoAmI,
)
from fintrack.mutations import LockTimeoutError, TenantLocks, TransactionWriter
from fintrack.queries import TransactionQueryExecutor
from fintrack.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsProvisioning,
    GoogleSheetsRecordStore,
    GoogleSheetsUserRegistry,
    ProvisioningInterface,
    RecordStoreInterface,
    StorageError,
    UserRegistryInterface,
)
from fintrack.sessions import SessionManager, SessionStore


FilterInput = Union[FilterSpec, dict[str, Any], None]
FieldsInput = Union[TransactionFields, dict[str, Any]]


def _as_filter(spec: FilterInput) -> FilterSpec:
    if spec is None:
        return FilterSpec()
    if isinstance(spec, FilterSpec):
        return spec
    return FilterSpec.model_validate(spec)


def _as_fields(fields: FieldsInput) -> TransactionFields:
    if isinstance(fields, TransactionFields):
        return fields
    return TransactionFields.model_validate(fields)


class FinanceService:
    """
    Public operations over a user's transactions.

    Flow for every authenticated call:
    1. token -> Session (SessionExpiredError if not live)
    2. session.tenant_ref -> executor or writer
    3. audit
    """

    def __init__(
        self,
        sessions: SessionManager,
        executor: TransactionQueryExecutor,
        writer: TransactionWriter,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._sessions = sessions
        self._executor = executor
        self._writer = writer
        self._app_settings = app_settings or get_settings().app
        self._audit_logger = audit_logger

    async def _audit_storage_failure(
        self,
        error: StorageError,
        identity: Optional[str] = None,
        tenant_ref: Optional[str] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_external_service_error(
                service="google_sheets",
                error_message=str(error),
                identity=identity,
                tenant_ref=tenant_ref,
            )

    async def login(self, identity: str, secret: str) -> LoginResult:
        """Authenticate and open a session (provisions the store on first login)."""
        try:
            return await self._sessions.login(identity, secret)
        except StorageError as e:
            await self._audit_storage_failure(e, identity=identity)
            raise

    async def who_am_i(self, token: str) -> WhoAmI:
        session = await self._sessions.resolve_session(token)
        return WhoAmI(identity=session.identity, tenant_ref=session.tenant_ref)

    def get_version(self) -> VersionInfo:
        settings = self._app_settings
        return VersionInfo(
            name=settings.app_name,
            updated_at=settings.app_updated_at,
            timezone=settings.timezone,
        )

    async def list_transactions(self, token: str, spec: FilterInput = None) -> Page:
        """Filtered, newest-first, paginated listing."""
        session = await self._sessions.resolve_session(token)
        try:
            page, cached = await self._executor.list_transactions(
                session.tenant_ref, _as_filter(spec)
            )
        except StorageError as e:
            await self._audit_storage_failure(e, session.identity, session.tenant_ref)
            raise
        if self._audit_logger:
            await self._audit_logger.log_listing(
                session.identity, session.tenant_ref, page.total, cached
            )
        return page

    async def get_metrics(self, token: str, spec: FilterInput = None) -> MetricsResult:
        """Totals and top categories over the full filtered set."""
        session = await self._sessions.resolve_session(token)
        try:
            result, cached = await self._executor.metrics(session.tenant_ref, _as_filter(spec))
        except StorageError as e:
            await self._audit_storage_failure(e, session.identity, session.tenant_ref)
            raise
        if self._audit_logger:
            await self._audit_logger.log_metrics(
                session.identity, session.tenant_ref, result.sample, cached
            )
        return result

    async def get_filter_options(self, token: str) -> FilterOptions:
        session = await self._sessions.resolve_session(token)
        try:
            options, _ = await self._executor.filter_options(session.tenant_ref)
        except StorageError as e:
            await self._audit_storage_failure(e, session.identity, session.tenant_ref)
            raise
        return options

    async def upsert_transaction(self, token: str, fields: FieldsInput) -> MutationResult:
        """
        Create or update a transaction.

        Raises:
            SessionExpiredError: token not live
            pydantic.ValidationError: date or description missing
            LockTimeoutError: another write held the tenant lock too long
        """
        session = await self._sessions.resolve_session(token)
        fields = _as_fields(fields)
        try:
            result = await self._writer.upsert(session.tenant_ref, fields)
        except LockTimeoutError as e:
            if self._audit_logger:
                await self._audit_logger.log_lock_timeout(
                    session.identity, session.tenant_ref, e.timeout
                )
            raise
        except StorageError as e:
            await self._audit_storage_failure(e, session.identity, session.tenant_ref)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_saved(
                session.identity,
                session.tenant_ref,
                result.key or "",
                created=result.action == "created",
            )
        return result

    async def delete_transaction(self, token: str, key: str) -> MutationResult:
        """Delete by identity key; a missing key is MutationResult(ok=False)."""
        session = await self._sessions.resolve_session(token)
        try:
            result = await self._writer.delete(session.tenant_ref, key)
        except LockTimeoutError as e:
            if self._audit_logger:
                await self._audit_logger.log_lock_timeout(
                    session.identity, session.tenant_ref, e.timeout
                )
            raise
        except StorageError as e:
            await self._audit_storage_failure(e, session.identity, session.tenant_ref)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                session.identity, session.tenant_ref, key, found=result.ok
            )
        return result


def build_service(
    record_store: RecordStoreInterface,
    registry: UserRegistryInterface,
    provisioning: ProvisioningInterface,
    app_settings: AppSettings,
    table_name: str = "Lancamentos",
    cache: Optional[CacheInterface] = None,
    session_store: Optional[SessionStore] = None,
    audit_logger: Optional[AuditLogger] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FinanceService:
    """
    Wire a FinanceService from its collaborators.

    Used by create_app_components and by tests with in-memory fakes.
    """
    if cache is None:
        cache = TTLCache(max_payload_bytes=app_settings.cache_max_payload_bytes)

    session_kwargs = {"clock": clock} if clock is not None else {}
    sessions = SessionManager(
        registry=registry,
        provisioning=provisioning,
        store=session_store or SessionStore(**session_kwargs),
        ttl_seconds=app_settings.session_ttl_seconds,
        audit_logger=audit_logger,
        **session_kwargs,
    )
    executor = TransactionQueryExecutor(
        record_store,
        cache=cache,
        table_name=table_name,
        ttl_seconds=app_settings.cache_ttl_seconds,
        default_page_size=app_settings.default_page_size,
        max_page_size=app_settings.max_page_size,
    )
    writer = TransactionWriter(
        record_store,
        locks=TenantLocks(timeout_seconds=app_settings.lock_timeout_seconds),
        table_name=table_name,
    )
    return FinanceService(
        sessions=sessions,
        executor=executor,
        writer=writer,
        app_settings=app_settings,
        audit_logger=audit_logger,
    )


def create_app_components() -> tuple[FinanceService, GoogleSheetsClient]:
    """
    Factory function to create all application components.

    Storage, registry, provisioning and audit persistence all share one
    Google Sheets client.

    Returns:
        (finance_service, sheets_client)
    """
    settings = get_settings()

    sheets_client = GoogleSheetsClient(settings.google_sheets)
    audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))

    service = build_service(
        record_store=GoogleSheetsRecordStore(sheets_client),
        registry=GoogleSheetsUserRegistry(sheets_client),
        provisioning=GoogleSheetsProvisioning(sheets_client),
        app_settings=settings.app,
        table_name=settings.google_sheets.transactions_sheet_name,
        audit_logger=audit_logger,
    )
    return service, sheets_client
