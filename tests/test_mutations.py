"""Tests for upsert and delete under the tenant lock."""

import asyncio
from decimal import Decimal

import pytest
from pydantic import ValidationError

from fintrack.models.transaction import TransactionFields
from fintrack.mutations import LockTimeoutError, MutationError, TenantLocks, TransactionWriter
from fintrack.queries import filter_and_sort, identity_key
from fintrack.services.storage import StorageError

from fakes import InMemoryRecordStore, make_row


TABLE = "Lancamentos"


@pytest.fixture
def store():
    store = InMemoryRecordStore()
    store.seed("t1", TABLE, [
        make_row("01/01/2024", "Salário", "5000,00", "entrada", "Salário", notes="janeiro"),
        make_row("02/01/2024", "Aluguel", "1500,00", "saida", "Moradia", payment_method="Pix"),
    ])
    store.seed("t2", TABLE, [])
    return store


@pytest.fixture
def locks():
    return TenantLocks(timeout_seconds=0.1)


@pytest.fixture
def writer(store, locks):
    return TransactionWriter(store, locks=locks, table_name=TABLE)


def fields(**values) -> TransactionFields:
    return TransactionFields.model_validate(values)


class TestUpsert:
    """Tests for TransactionWriter.upsert."""

    def test_matching_key_updates_in_place(self, store, writer):
        """An existing identity key overwrites that row; row count is unchanged."""
        result = asyncio.run(writer.upsert("t1", fields(
            date="01/01/2024", description="Salário", totalValue="5.000,00", category="Renda",
        )))

        assert result.ok is True
        assert result.action == "updated"
        rows = store.rows("t1", TABLE)
        assert len(rows) == 2
        assert rows[0]["Categoria"] == "Renda"

    def test_update_keeps_columns_not_sent(self, store, writer):
        """Columns missing from the request keep their stored value."""
        asyncio.run(writer.upsert("t1", fields(
            date="01/01/2024", description="Salário", totalValue=5000, status="sim",
        )))
        row = store.rows("t1", TABLE)[0]
        assert row["Observações"] == "janeiro"
        assert row["Tipo"] == "entrada"
        assert row["Status"] is True

    def test_no_match_appends(self, store, writer):
        """A new identity key appends a row; missing columns are empty."""
        result = asyncio.run(writer.upsert("t1", fields(
            date="10/01/2024", description="Mercado", totalValue="R$ 432,10",
            kind="saida", paymentMethod="Débito",
        )))

        assert result.action == "created"
        rows = store.rows("t1", TABLE)
        assert len(rows) == 3
        new = rows[-1]
        assert new["Valor Total"] == Decimal("432.10")
        assert new["Forma de Pagamento"] == "Débito"
        assert new["Categoria"] == ""
        assert new["Parcelado"] == ""

    def test_result_key_finds_the_row(self, store, writer):
        """The returned key is the identity key listings report."""
        result = asyncio.run(writer.upsert("t1", fields(
            date="10/01/2024", description="Mercado", totalValue="432,10",
        )))
        table = asyncio.run(store.read_table("t1", TABLE))
        assert result.key in [view.key for view in filter_and_sort(table)]
        assert result.key == "10/01/2024|Mercado|432.1"

    def test_normalizes_values(self, store, writer):
        """Amount, installment, installment count and status are normalized."""
        asyncio.run(writer.upsert("t1", fields(
            date="11/01/2024", description="TV", totalValue="2.400,00",
            installment="SIM", installmentCount="12", status="0",
        )))
        new = store.rows("t1", TABLE)[-1]
        assert new["Valor Total"] == Decimal("2400.00")
        assert new["Parcelado"] == "Sim"
        assert new["Parcelas"] == 12
        assert new["Status"] is False

    def test_installment_count_floor(self, store, writer):
        """Zero or garbage installment counts become 1."""
        asyncio.run(writer.upsert("t1", fields(
            date="11/01/2024", description="Café", totalValue="8", installment="não", installmentCount="0",
        )))
        new = store.rows("t1", TABLE)[-1]
        assert new["Parcelado"] == "Não"
        assert new["Parcelas"] == 1

    def test_first_duplicate_is_updated(self, store, writer):
        """With duplicate keys only the first row changes."""
        store.seed("t1", TABLE, [
            make_row("05/01/2024", "Uber", "20", notes="a"),
            make_row("05/01/2024", "Uber", "20,00", notes="b"),
        ])
        asyncio.run(writer.upsert("t1", fields(
            date="05/01/2024", description="Uber", totalValue="20", notes="novo",
        )))
        rows = store.rows("t1", TABLE)
        assert [r["Observações"] for r in rows] == ["novo", "b"]

    @pytest.mark.parametrize("values", [
        {"description": "Sem data", "totalValue": "1"},
        {"date": "01/01/2024", "totalValue": "1"},
        {"date": "  ", "description": "Espaços", "totalValue": "1"},
    ])
    def test_date_and_description_are_required(self, values):
        """Upserts need a date and a description."""
        with pytest.raises(ValidationError):
            TransactionFields.model_validate(values)

    def test_table_without_headers(self, writer):
        """A tenant table with no header row cannot be written."""
        with pytest.raises(StorageError):
            asyncio.run(writer.upsert("missing", fields(date="01/01/2024", description="X")))

    def test_concurrent_upserts_all_land(self, store):
        """Parallel writes to one tenant are serialized, none is lost."""
        writer = TransactionWriter(store, locks=TenantLocks(timeout_seconds=5), table_name=TABLE)

        async def run_all():
            await asyncio.gather(*[
                writer.upsert("t2", fields(date="01/03/2024", description=f"Item {i}", totalValue=i))
                for i in range(1, 6)
            ])

        asyncio.run(run_all())
        assert len(store.rows("t2", TABLE)) == 5


class TestDelete:
    """Tests for TransactionWriter.delete."""

    def test_deletes_matching_row(self, store, writer):
        """A known key removes exactly that row."""
        key = identity_key("02/01/2024", "Aluguel", "1500,00")
        result = asyncio.run(writer.delete("t1", key))

        assert result.ok is True
        assert result.action == "deleted"
        assert [r["Descrição"] for r in store.rows("t1", TABLE)] == ["Salário"]

    def test_missing_key_leaves_table_untouched(self, store, writer):
        """An unknown key returns ok=False and writes nothing."""
        before = [dict(r) for r in store.rows("t1", TABLE)]
        result = asyncio.run(writer.delete("t1", "09/09/2024|Nada|1"))

        assert result.ok is False
        assert result.msg == "Transaction not found."
        assert store.rows("t1", TABLE) == before
        assert store.writes == 0

    def test_deletes_first_duplicate_only(self, store, writer):
        """With duplicate keys only the first row is deleted."""
        store.seed("t1", TABLE, [
            make_row("05/01/2024", "Uber", "20", notes="a"),
            make_row("05/01/2024", "Uber", "20", notes="b"),
        ])
        asyncio.run(writer.delete("t1", "05/01/2024|Uber|20"))
        assert [r["Observações"] for r in store.rows("t1", TABLE)] == ["b"]


class TestTenantLocks:
    """Tests for lock timeouts and release."""

    def test_lock_timeout(self, writer, locks):
        """A write waiting past the timeout fails with a retryable error."""
        async def blocked_write():
            async with locks.hold("t1"):
                await writer.upsert("t1", fields(date="01/01/2024", description="X"))

        with pytest.raises(LockTimeoutError) as exc_info:
            asyncio.run(blocked_write())
        assert isinstance(exc_info.value, MutationError)
        assert "try again" in str(exc_info.value).lower()

    def test_other_tenants_are_not_blocked(self, store, writer, locks):
        """Holding one tenant's lock does not block another tenant."""
        async def write_other_tenant():
            async with locks.hold("t1"):
                return await writer.upsert("t2", fields(date="01/01/2024", description="X"))

        result = asyncio.run(write_other_tenant())
        assert result.ok is True

    def test_lock_released_after_failure(self, store, writer):
        """A failed write does not leave the lock held."""
        store.fail_writes = True
        with pytest.raises(StorageError):
            asyncio.run(writer.upsert("t1", fields(date="09/01/2024", description="Falha")))

        store.fail_writes = False
        result = asyncio.run(writer.upsert("t1", fields(date="09/01/2024", description="Falha")))
        assert result.ok is True

    def test_delete_respects_the_lock(self, writer, locks):
        """Deletes wait for the lock like upserts."""
        async def blocked_delete():
            async with locks.hold("t1"):
                await writer.delete("t1", "01/01/2024|Salário|5000")

        with pytest.raises(LockTimeoutError):
            asyncio.run(blocked_delete())
