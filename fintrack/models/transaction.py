"""
Core Data Models for fintrack

These models define the strict schemas for data flowing through the system.
They are designed to:
1. Give rows from the spreadsheet a typed shape with explicit defaults
2. Accept lenient input from callers (strings, camelCase keys)
3. Be serializable for caching and logging

DESIGN DECISION: Raw header-keyed rows only exist at the storage boundary.
Everything past the Query Engine works with TransactionView.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from fintrack.normalization import (
    format_date_display,
    normalize_text,
    parse_flexible_date,
)


INCOME_KIND = "entrada"
EMPTY_CATEGORY = "—"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# STORAGE BOUNDARY
# =============================================================================

class Table(BaseModel):
    """
    A sheet read in full.

    rows[i] is keyed by header name; rows[0] is data row 1
    (the first row under the header).
    """

    headers: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)


class UserRecord(BaseModel):
    """A registry entry for one user."""

    email: str
    password_hash: str = Field(
        ...,
        description="SHA-256 hex digest of the user's secret"
    )
    name: Optional[str] = None


class LicenseRecord(BaseModel):
    """License state for one user."""

    email: str
    status: str = ""
    valid_until: Optional[date] = None

    @field_validator("valid_until", mode="before")
    @classmethod
    def parse_valid_until(cls, v: Any) -> Optional[date]:
        return parse_flexible_date(v)

    def is_active(self, today: date) -> bool:
        if normalize_text(self.status) not in {"ativo", "active"}:
            return False
        if self.valid_until is not None and self.valid_until < today:
            return False
        return True


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionFields(BaseModel):
    """
    Incoming fields for an upsert.

    Accepts both snake_case and camelCase keys (totalValue, paymentMethod...).
    Values stay loose here; the writer normalizes them before storage.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    date: str = Field(
        ...,
        min_length=1,
        description="Transaction date as the user entered it"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="Free text description"
    )
    total_value: Any = Field(
        default=None,
        description="Amount; numeric or a currency string"
    )
    installment: Any = None
    installment_count: Any = None
    kind: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    status: Any = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        """Native dates are stored in display form."""
        if isinstance(v, (date, datetime)):
            return format_date_display(v)
        return v


class TransactionView(BaseModel):
    """One normalized transaction as returned to callers."""

    date: str = Field(
        default="",
        description="dd/mm/yyyy, empty when the stored date is unparseable"
    )
    description: str = ""
    value: Decimal = Decimal("0")
    installment: bool = False
    installment_count: int = Field(default=1, ge=1)
    kind: str = ""
    category: str = ""
    subcategory: str = ""
    payment_method: str = ""
    notes: str = ""
    status: bool = False
    key: str = Field(
        ...,
        description="Identity key: raw date|raw description|parsed value"
    )


class FilterSpec(BaseModel):
    """
    Optional criteria narrowing a transaction query.

    Input is lenient: dates in any format parse_flexible_date accepts,
    page numbers as strings, camelCase keys. Unparseable values fall back
    to "unset" rather than failing the request.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    kind: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    payment_method: Optional[str] = None
    installment: Optional[str] = Field(
        default=None,
        description="'yes' or 'no'; anything else means unset"
    )
    status: Optional[str] = Field(
        default=None,
        description="'true' or 'false'; anything else means unset"
    )
    page: Optional[int] = None
    page_size: Optional[int] = None

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Optional[date]:
        if v is None or v == "":
            return None
        return parse_flexible_date(v)

    @field_validator(
        "kind", "category", "subcategory", "payment_method", mode="before"
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("installment", mode="before")
    @classmethod
    def parse_installment(cls, v: Any) -> Optional[str]:
        token = normalize_text(v)
        if token in {"yes", "sim", "true", "1"}:
            return "yes"
        if token in {"no", "nao", "false", "0"}:
            return "no"
        return None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> Optional[str]:
        if isinstance(v, bool):
            return "true" if v else "false"
        token = normalize_text(v)
        if token in {"true", "sim", "yes", "1"}:
            return "true"
        if token in {"false", "nao", "no", "0"}:
            return "false"
        return None

    @field_validator("page", "page_size", mode="before")
    @classmethod
    def parse_int(cls, v: Any) -> Optional[int]:
        if v is None or isinstance(v, bool):
            return None
        try:
            return int(float(str(v).strip()))
        except (TypeError, ValueError, OverflowError):
            return None

    def without_pagination(self) -> "FilterSpec":
        """Copy used for whole-set operations (metrics) and their cache keys."""
        return self.model_copy(update={"page": None, "page_size": None})


class Page(BaseModel):
    """A page of a filtered listing."""

    total: int = Field(ge=0, description="Filtered count before pagination")
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    items: list[TransactionView] = Field(default_factory=list)


# =============================================================================
# METRICS
# =============================================================================

class CategoryTotal(BaseModel):
    """Net signed value for one category."""

    category: str
    value: Decimal


class MetricsResult(BaseModel):
    """Aggregates over the full filtered set."""

    timestamp: datetime = Field(default_factory=_utcnow)
    entradas: Decimal = Decimal("0")
    saidas: Decimal = Decimal("0")
    saldo: Decimal = Decimal("0")
    top_categorias: list[CategoryTotal] = Field(default_factory=list)
    sample: int = Field(default=0, ge=0)


class FilterOptions(BaseModel):
    """Distinct values a caller can filter on."""

    kinds: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    subcategories: list[str] = Field(default_factory=list)
    payment_methods: list[str] = Field(default_factory=list)
    years: list[int] = Field(default_factory=list)
    months: list[str] = Field(
        default_factory=list,
        description="mm/yyyy, newest first"
    )


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class MutationResult(BaseModel):
    """Outcome of an upsert or delete."""

    ok: bool
    msg: Optional[str] = None
    key: Optional[str] = Field(
        default=None,
        description="Identity key of the row written or deleted"
    )
    action: Optional[str] = Field(
        default=None,
        pattern="^(created|updated|deleted)$",
    )


class Session(BaseModel):
    """Server-side session record. Read-only once created."""
    model_config = ConfigDict(frozen=True)

    identity: str
    tenant_ref: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class LoginResult(BaseModel):
    token: str
    identity: str
    tenant_ref: str


class WhoAmI(BaseModel):
    identity: str
    tenant_ref: str


class VersionInfo(BaseModel):
    name: str
    updated_at: str
    timezone: str
