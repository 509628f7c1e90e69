"""
Transaction Writer

Upsert and delete against a tenant table.

CRITICAL: Rows have no surrogate id. A row is identified by
date|description|value (see queries.engine.identity_key). If a tenant
keeps two rows with the same key, the FIRST one is the one updated or
deleted.

Every mutation:
1. Takes the tenant's lock (bounded wait, LockTimeoutError on timeout)
2. Reads the full table
3. Finds the row by identity key
4. Writes, then releases the lock - on every exit path
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import structlog

from fintrack.models.columns import cell, resolve_columns
from fintrack.models.transaction import MutationResult, TransactionFields
from fintrack.normalization import parse_bool_like, parse_money
from fintrack.queries.engine import identity_key
from fintrack.services.storage import RecordStoreInterface, StorageError


INSTALLMENT_YES = "Sim"
INSTALLMENT_NO = "Não"

logger = structlog.get_logger(__name__)


class MutationError(Exception):
    """Base exception for write failures that the caller may retry."""
    pass


class LockTimeoutError(MutationError):
    """The tenant lock was not acquired in time."""

    def __init__(self, tenant_ref: str, timeout: float):
        self.tenant_ref = tenant_ref
        self.timeout = timeout
        super().__init__(
            "Another change is in progress. Try again in a few seconds."
        )


class TenantLocks:
    """
    One exclusive lock per tenant store.

    threading.Lock rather than asyncio.Lock: the blocking acquire runs in a
    worker thread, so the lock works across threads and event loops alike.
    """

    def __init__(self, timeout_seconds: float = 20.0):
        self._timeout = timeout_seconds
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, tenant_ref: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(tenant_ref, threading.Lock())

    @asynccontextmanager
    async def hold(
        self,
        tenant_ref: str,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[None]:
        """Hold the tenant's lock for the duration of the block."""
        timeout = self._timeout if timeout is None else timeout
        lock = self._lock_for(tenant_ref)
        acquired = await asyncio.to_thread(lock.acquire, True, timeout)
        if not acquired:
            logger.warning("tenant_lock_timeout", tenant_ref=tenant_ref, timeout=timeout)
            raise LockTimeoutError(tenant_ref, timeout)
        try:
            yield
        finally:
            lock.release()


class TransactionWriter:
    """Serialized writes to one table of each tenant's store."""

    def __init__(
        self,
        store: RecordStoreInterface,
        locks: Optional[TenantLocks] = None,
        table_name: str = "Lancamentos",
    ):
        self._store = store
        self._locks = locks or TenantLocks()
        self._table_name = table_name

    def _cells(self, fields: TransactionFields) -> dict[str, Any]:
        """
        Normalize incoming fields into field -> cell value.

        Only fields the caller sent are included, except the identity
        fields and the amount which are always written.
        """
        sent = fields.model_fields_set
        cells: dict[str, Any] = {
            "date": fields.date,
            "description": fields.description,
            "total_value": parse_money(fields.total_value),
        }
        if "installment" in sent:
            cells["installment"] = (
                INSTALLMENT_YES if parse_bool_like(fields.installment) else INSTALLMENT_NO
            )
        if "installment_count" in sent:
            count = int(parse_money(fields.installment_count))
            cells["installment_count"] = count if count >= 1 else 1
        if "status" in sent:
            cells["status"] = parse_bool_like(fields.status)
        for name in ("kind", "category", "subcategory", "payment_method", "notes"):
            if name in sent:
                cells[name] = getattr(fields, name) or ""
        return cells

    async def upsert(self, tenant_ref: str, fields: TransactionFields) -> MutationResult:
        """
        Update the row with the same identity key, or append a new one.

        On update, columns the caller did not send keep their current value.
        On append, columns the caller did not send are written empty.

        Raises:
            LockTimeoutError: lock not acquired in time
            StorageError: the table could not be read or written
        """
        cells = self._cells(fields)
        key = identity_key(cells["date"], cells["description"], cells["total_value"])

        async with self._locks.hold(tenant_ref):
            table = await self._store.read_table(tenant_ref, self._table_name)
            if not table.headers:
                raise StorageError(f"Table {self._table_name} has no header row")
            columns = resolve_columns(table.headers)
            incoming = {columns[name]: value for name, value in cells.items() if name in columns}

            index = self._find(table.rows, columns, key)
            if index is not None:
                current = table.rows[index - 1]
                merged = {header: current.get(header, "") for header in table.headers}
                merged.update(incoming)
                await self._store.write_row(tenant_ref, self._table_name, index, merged)
                logger.info("transaction_updated", tenant_ref=tenant_ref, row=index)
                return MutationResult(ok=True, action="updated", key=key)

            new_row = {header: incoming.get(header, "") for header in table.headers}
            await self._store.append_row(tenant_ref, self._table_name, new_row)
            logger.info("transaction_created", tenant_ref=tenant_ref)
            return MutationResult(ok=True, action="created", key=key)

    async def delete(self, tenant_ref: str, key: str) -> MutationResult:
        """
        Delete the row with this identity key.

        A missing row is reported as MutationResult(ok=False), not raised,
        and leaves the table untouched.
        """
        async with self._locks.hold(tenant_ref):
            table = await self._store.read_table(tenant_ref, self._table_name)
            columns = resolve_columns(table.headers)

            index = self._find(table.rows, columns, key)
            if index is None:
                return MutationResult(ok=False, msg="Transaction not found.")

            await self._store.delete_row(tenant_ref, self._table_name, index)
            logger.info("transaction_deleted", tenant_ref=tenant_ref, row=index)
            return MutationResult(ok=True, action="deleted", key=key)

    @staticmethod
    def _find(
        rows: list[dict[str, Any]],
        columns: dict[str, str],
        key: str,
    ) -> Optional[int]:
        """1-based data row index of the first row with this key."""
        for index, row in enumerate(rows, start=1):
            row_key = identity_key(
                cell(row, columns, "date"),
                cell(row, columns, "description"),
                cell(row, columns, "total_value"),
            )
            if row_key == key:
                return index
        return None
