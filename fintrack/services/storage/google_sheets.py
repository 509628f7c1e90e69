"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. Users can open their own spreadsheet and see every transaction
2. Provisioning a tenant is a file copy, no schema migration
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for a household ledger)
- No transactions (writes are serialized per tenant by the caller)
- Limited query capabilities (we read whole sheets and filter in Python)

Layout:
- One registry spreadsheet with Usuarios / Licencas / Tenants / AuditLog sheets
- One spreadsheet per tenant, copied from a template, holding Lancamentos
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.config import get_settings
from fintrack.config.settings import GoogleSheetsSettings
from fintrack.models.audit import AUDIT_COLUMNS, AuditEvent
from fintrack.models.columns import DEFAULT_HEADERS
from fintrack.models.transaction import LicenseRecord, Table, UserRecord
from fintrack.normalization import normalize_text
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    ProvisioningInterface,
    RecordStoreInterface,
    StorageError,
    UserRegistryInterface,
)


TENANT_COLUMNS = ["email", "spreadsheet_id", "created_at"]

logger = structlog.get_logger(__name__)


def _to_cell(value: Any) -> Any:
    """Convert a Python value into something the Sheets API accepts."""
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return float(value)
    return value


def _pick(record: dict[str, Any], *names: str) -> str:
    """Read the first matching column from a registry record, by normalized header."""
    normalized = {normalize_text(key): value for key, value in record.items()}
    for name in names:
        value = normalized.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    Spreadsheets are opened once per key and reused.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheets: dict[str, gspread.Spreadsheet] = {}
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        The drive scope is needed to copy the tenant template.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self, spreadsheet_id: str) -> gspread.Spreadsheet:
        """Open a spreadsheet by key."""
        if spreadsheet_id not in self._spreadsheets:
            client = self.connect()
            try:
                self._spreadsheets[spreadsheet_id] = client.open_by_key(spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise NotFoundError(f"Spreadsheet not found: {spreadsheet_id}")
        return self._spreadsheets[spreadsheet_id]

    def get_worksheet(
        self,
        spreadsheet_id: str,
        title: str,
        create_with: Optional[list[str]] = None,
    ) -> gspread.Worksheet:
        """
        Get a worksheet by title.

        When create_with is given, a missing worksheet is created with
        those headers; otherwise a missing worksheet is a NotFoundError.
        """
        spreadsheet = self.get_spreadsheet(spreadsheet_id)
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            if create_with is None:
                raise NotFoundError(f"Worksheet not found: {title}")
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(create_with),
            )
            sheet.append_row(create_with)
            return sheet

    def get_registry_sheet(
        self,
        title: str,
        create_with: Optional[list[str]] = None,
    ) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.registry_spreadsheet_id, title, create_with
        )


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the tenant record store.

    tenant_ref is the tenant spreadsheet's key; table_name is a worksheet title.
    Sheet row = data row index + 1 (row 1 is the header).
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _headers(self, sheet: gspread.Worksheet) -> list[str]:
        headers = sheet.row_values(1)
        if not headers:
            raise StorageError(f"Worksheet has no header row: {sheet.title}")
        return headers

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(NotFoundError),
        reraise=True,
    )
    async def read_table(self, tenant_ref: str, table_name: str) -> Table:
        """Read headers and every data row; a missing worksheet is created empty."""
        try:
            sheet = self._client.get_worksheet(
                tenant_ref, table_name, create_with=DEFAULT_HEADERS
            )
            values = sheet.get_all_values()
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {table_name}: {e}")

        if not values:
            return Table()

        headers = values[0]
        rows = []
        for raw in values[1:]:
            # get_all_values pads rows to the widest row, but be safe
            padded = list(raw) + [""] * (len(headers) - len(raw))
            rows.append(dict(zip(headers, padded)))
        return Table(headers=headers, rows=rows)

    async def write_row(
        self,
        tenant_ref: str,
        table_name: str,
        row_index: int,
        values: dict[str, Any],
    ) -> None:
        """Overwrite one data row."""
        if row_index < 1:
            raise NotFoundError(f"Invalid row index: {row_index}")
        try:
            sheet = self._client.get_worksheet(tenant_ref, table_name)
            headers = self._headers(sheet)
            row = [_to_cell(values.get(header, "")) for header in headers]
            sheet.update(
                range_name=f"A{row_index + 1}",
                values=[row],
                value_input_option="USER_ENTERED",
            )
        except (NotFoundError, StorageError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update row {row_index}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(NotFoundError),
        reraise=True,
    )
    async def append_row(
        self,
        tenant_ref: str,
        table_name: str,
        values: dict[str, Any],
    ) -> None:
        """Append one data row."""
        try:
            sheet = self._client.get_worksheet(tenant_ref, table_name)
            headers = self._headers(sheet)
            row = [_to_cell(values.get(header, "")) for header in headers]
            sheet.append_row(row, value_input_option="USER_ENTERED")
        except (NotFoundError, StorageError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to append row: {e}")

    async def delete_row(
        self,
        tenant_ref: str,
        table_name: str,
        row_index: int,
    ) -> None:
        """Delete one data row."""
        if row_index < 1:
            raise NotFoundError(f"Invalid row index: {row_index}")
        try:
            sheet = self._client.get_worksheet(tenant_ref, table_name)
            sheet.delete_rows(row_index + 1)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete row {row_index}: {e}")


class GoogleSheetsUserRegistry(UserRegistryInterface):
    """
    Users and licenses read from the registry spreadsheet.

    Columns are matched by normalized header, so "E-mail" and "email"
    both work.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find(self, title: str, email: str) -> Optional[dict[str, Any]]:
        try:
            sheet = self._client.get_registry_sheet(title)
            records = sheet.get_all_records(numericise_ignore=["all"])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {title}: {e}")

        for record in records:
            if normalize_text(_pick(record, "email", "e-mail")) == email:
                return record
        return None

    async def get_user(self, email: str) -> Optional[UserRecord]:
        record = self._find(self._client.settings.users_sheet_name, email)
        if record is None:
            return None
        return UserRecord(
            email=email,
            password_hash=_pick(record, "senha_hash", "password_hash", "hash"),
            name=_pick(record, "nome", "name") or None,
        )

    async def get_license(self, email: str) -> Optional[LicenseRecord]:
        record = self._find(self._client.settings.licenses_sheet_name, email)
        if record is None:
            return None
        return LicenseRecord(
            email=email,
            status=_pick(record, "status", "situacao"),
            valid_until=_pick(record, "validade", "valid_until") or None,
        )


class GoogleSheetsProvisioning(ProvisioningInterface):
    """
    Tenant provisioning by copying the template spreadsheet.

    The email -> spreadsheet mapping is kept in the Tenants sheet of the
    registry spreadsheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _tenants_sheet(self) -> gspread.Worksheet:
        return self._client.get_registry_sheet(
            self._client.settings.tenants_sheet_name,
            create_with=TENANT_COLUMNS,
        )

    async def resolve_tenant(self, email: str) -> tuple[str, bool]:
        try:
            sheet = self._tenants_sheet()
            for record in sheet.get_all_records(numericise_ignore=["all"]):
                if normalize_text(_pick(record, "email")) == email:
                    tenant_ref = _pick(record, "spreadsheet_id")
                    if tenant_ref:
                        return tenant_ref, False
        except Exception as e:
            raise StorageError(f"Failed to read tenant mapping: {e}")

        return self._provision(email, sheet), True

    # Not retried: a second copy would leave an orphan spreadsheet.
    def _provision(self, email: str, tenants_sheet: gspread.Worksheet) -> str:
        settings = self._client.settings
        try:
            copied = self._client.connect().copy(
                settings.template_spreadsheet_id,
                title=f"fintrack - {email}",
                copy_permissions=False,
            )
            if settings.share_with_user:
                copied.share(email, perm_type="user", role="writer", notify=False)
            tenants_sheet.append_row(
                [email, copied.id, datetime.now(timezone.utc).isoformat()],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to provision tenant for {email}: {e}")

        logger.info("tenant_provisioned", email=email, tenant_ref=copied.id)
        return copied.id


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_registry_sheet(
                self._client.settings.audit_sheet_name,
                create_with=AUDIT_COLUMNS,
            )
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_write_failed", error=str(e))
            return False
