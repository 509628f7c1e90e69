"""Shared fixtures."""

import pytest

from fintrack.audit import AuditLogger
from fintrack.cache import TTLCache
from fintrack.config.settings import AppSettings
from fintrack.models.columns import DEFAULT_HEADERS
from fintrack.models.transaction import Table
from fintrack.orchestrator import build_service

from fakes import (
    FakeClock,
    FakeMonotonic,
    InMemoryAuditStorage,
    InMemoryProvisioning,
    InMemoryRecordStore,
    InMemoryUserRegistry,
    make_row,
)


TABLE = "Lancamentos"


@pytest.fixture
def sample_rows():
    return [
        make_row("01/01/2024", "Salário", "5000,00", "entrada", "Salário"),
        make_row("02/01/2024", "Aluguel", "1500,00", "saida", "Moradia",
                 payment_method="Pix", status="Sim"),
        make_row("15/02/2024", "Mercado", "R$ 432,10", "saida", "Alimentação", "Supermercado",
                 payment_method="Cartão de Crédito", installment="Sim", installments="3"),
        make_row("2024-03-05", "Farmácia", "89.90", "saida", "Saúde",
                 payment_method="Débito", status="true"),
        make_row("sem data", "Ajuste", "12,00", "saida", ""),
    ]


@pytest.fixture
def sample_table(sample_rows):
    return Table(headers=list(DEFAULT_HEADERS), rows=sample_rows)


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def registry():
    registry = InMemoryUserRegistry()
    registry.add_user("ana@example.com", "s3cret")
    return registry


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def app_settings():
    return AppSettings(
        app_name="fintrack",
        app_updated_at="2024-12-31",
        timezone="America/Sao_Paulo",
        session_ttl_minutes=120,
        cache_ttl_seconds=30,
        lock_timeout_seconds=0.2,
    )


@pytest.fixture
def cache_clock():
    return FakeMonotonic()


@pytest.fixture
def service(record_store, registry, clock, audit_storage, app_settings, cache_clock):
    return build_service(
        record_store=record_store,
        registry=registry,
        provisioning=InMemoryProvisioning(record_store, TABLE),
        app_settings=app_settings,
        table_name=TABLE,
        cache=TTLCache(clock=cache_clock),
        audit_logger=AuditLogger(audit_storage),
        clock=clock,
    )
