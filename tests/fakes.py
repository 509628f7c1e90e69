"""
In-memory collaborators for tests.

They implement the storage interfaces with plain dicts and lists, so
tests never talk to Google Sheets.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fintrack.models.audit import AuditEvent
from fintrack.models.columns import DEFAULT_HEADERS
from fintrack.models.transaction import LicenseRecord, Table, UserRecord
from fintrack.services.storage import (
    AuditStorageInterface,
    NotFoundError,
    ProvisioningInterface,
    RecordStoreInterface,
    StorageError,
    UserRegistryInterface,
)
from fintrack.sessions import hash_secret


class InMemoryRecordStore(RecordStoreInterface):
    """Tables keyed by (tenant_ref, table_name)."""

    def __init__(self):
        self.tables: dict[tuple[str, str], Table] = {}
        self.reads = 0
        self.writes = 0
        self.fail_writes = False
        self.fail_reads = False

    def seed(
        self,
        tenant_ref: str,
        table_name: str,
        rows: list[dict[str, Any]],
        headers: Optional[list[str]] = None,
    ) -> None:
        headers = list(headers or DEFAULT_HEADERS)
        self.tables[(tenant_ref, table_name)] = Table(
            headers=headers,
            rows=[{h: row.get(h, "") for h in headers} for row in rows],
        )

    def rows(self, tenant_ref: str, table_name: str) -> list[dict[str, Any]]:
        return self.tables[(tenant_ref, table_name)].rows

    async def read_table(self, tenant_ref: str, table_name: str) -> Table:
        self.reads += 1
        if self.fail_reads:
            raise StorageError("read failed")
        table = self.tables.get((tenant_ref, table_name))
        if table is None:
            return Table()
        return Table(headers=list(table.headers), rows=[dict(r) for r in table.rows])

    def _table(self, tenant_ref: str, table_name: str) -> Table:
        if self.fail_writes:
            raise StorageError("write failed")
        table = self.tables.get((tenant_ref, table_name))
        if table is None:
            raise NotFoundError(f"No table {table_name} for {tenant_ref}")
        return table

    async def write_row(self, tenant_ref, table_name, row_index, values) -> None:
        table = self._table(tenant_ref, table_name)
        if not 1 <= row_index <= len(table.rows):
            raise NotFoundError(f"Row {row_index} out of range")
        table.rows[row_index - 1] = {h: values.get(h, "") for h in table.headers}
        self.writes += 1

    async def append_row(self, tenant_ref, table_name, values) -> None:
        table = self._table(tenant_ref, table_name)
        table.rows.append({h: values.get(h, "") for h in table.headers})
        self.writes += 1

    async def delete_row(self, tenant_ref, table_name, row_index) -> None:
        table = self._table(tenant_ref, table_name)
        if not 1 <= row_index <= len(table.rows):
            raise NotFoundError(f"Row {row_index} out of range")
        del table.rows[row_index - 1]
        self.writes += 1


class InMemoryUserRegistry(UserRegistryInterface):

    def __init__(self):
        self.users: dict[str, UserRecord] = {}
        self.licenses: dict[str, LicenseRecord] = {}

    def add_user(
        self,
        email: str,
        secret: str,
        status: Optional[str] = "ativo",
        valid_until: Any = None,
    ) -> None:
        self.users[email] = UserRecord(email=email, password_hash=hash_secret(secret))
        if status is not None:
            self.licenses[email] = LicenseRecord(
                email=email, status=status, valid_until=valid_until
            )

    async def get_user(self, email: str) -> Optional[UserRecord]:
        return self.users.get(email)

    async def get_license(self, email: str) -> Optional[LicenseRecord]:
        return self.licenses.get(email)


class InMemoryProvisioning(ProvisioningInterface):
    """Hands out tenant-<n> refs and seeds an empty transactions table."""

    def __init__(self, store: Optional[InMemoryRecordStore] = None, table_name: str = "Lancamentos"):
        self.tenants: dict[str, str] = {}
        self._store = store
        self._table_name = table_name

    async def resolve_tenant(self, email: str) -> tuple[str, bool]:
        if email in self.tenants:
            return self.tenants[email], False
        tenant_ref = f"tenant-{len(self.tenants) + 1}"
        self.tenants[email] = tenant_ref
        if self._store is not None and (tenant_ref, self._table_name) not in self._store.tables:
            self._store.seed(tenant_ref, self._table_name, [])
        return tenant_ref, True


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Float clock for TTLCache."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_row(
    date="01/01/2024",
    description="Compra",
    value="10,00",
    kind="saida",
    category="",
    subcategory="",
    payment_method="",
    installment="Não",
    installments="1",
    notes="",
    status="",
) -> dict[str, Any]:
    """A row keyed by the default Portuguese headers."""
    return dict(zip(DEFAULT_HEADERS, [
        date, description, value, installment, installments, kind,
        category, subcategory, payment_method, notes, status,
    ]))
