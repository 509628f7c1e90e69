"""Session management package."""

from fintrack.sessions.manager import (
    AuthError,
    LicenseError,
    SessionError,
    SessionExpiredError,
    SessionManager,
    SessionStore,
    ValidationError,
    hash_secret,
    normalize_email,
)

__all__ = [
    "AuthError",
    "LicenseError",
    "SessionError",
    "SessionExpiredError",
    "SessionManager",
    "SessionStore",
    "ValidationError",
    "hash_secret",
    "normalize_email",
]
