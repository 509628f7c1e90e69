"""
Configuration Management for fintrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    registry_spreadsheet_id: str = Field(
        ...,
        description="Spreadsheet holding users, licenses and tenant mappings"
    )
    template_spreadsheet_id: str = Field(
        ...,
        description="Spreadsheet copied for every new tenant"
    )

    # Sheet names within the tenant spreadsheet
    transactions_sheet_name: str = Field(
        default="Lancamentos",
        description="Name of the sheet holding a tenant's transactions"
    )

    # Sheet names within the registry spreadsheet
    users_sheet_name: str = Field(
        default="Usuarios",
        description="Name of the sheet listing users"
    )
    licenses_sheet_name: str = Field(
        default="Licencas",
        description="Name of the sheet listing licenses"
    )
    tenants_sheet_name: str = Field(
        default="Tenants",
        description="Name of the sheet mapping users to their spreadsheets"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    share_with_user: bool = Field(
        default=True,
        description="Share freshly provisioned spreadsheets with their owner"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Version info
    app_name: str = Field(
        default="fintrack",
        description="Name reported by the version endpoint"
    )
    app_updated_at: str = Field(
        default="2024-12-31",
        description="Release date reported by the version endpoint"
    )
    timezone: str = Field(
        default="America/Sao_Paulo",
        description="Timezone used for display timestamps"
    )

    # Lifetimes
    session_ttl_minutes: int = Field(
        default=120,
        ge=1,
        description="Session lifetime, counted from login"
    )
    cache_ttl_seconds: int = Field(
        default=30,
        ge=1,
        le=3600,
        description="TTL for cached listings, metrics and filter options"
    )
    cache_max_payload_bytes: int = Field(
        default=100_000,
        ge=1,
        description="Payloads above this size are not cached"
    )

    # Mutations
    lock_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="How long a write waits for the tenant lock"
    )

    # Pagination
    default_page_size: int = Field(
        default=200,
        ge=1,
        description="Page size when the caller sends none"
    )
    max_page_size: int = Field(
        default=1000,
        ge=1,
        description="Upper bound for any requested page size"
    )

    @property
    def session_ttl_seconds(self) -> int:
        """Get session lifetime in seconds."""
        return self.session_ttl_minutes * 60


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
