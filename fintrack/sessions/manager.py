"""
Session Manager

Login checks the registry, then the license, then resolves (or provisions)
the user's tenant store, and finally issues a session token.

DESIGN DECISION: Sessions are server-side records.
The token carries a readable payload (identity, tenant, expiry) for
clients, but resolve_session NEVER trusts it - only a live record in the
SessionStore counts. An expired token, an unknown token and a forged
token are indistinguishable to callers.

Sessions expire a fixed TTL after login; access does not extend them.
"""

import base64
import hashlib
import hmac
import json
import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fintrack.audit import AuditLogger
from fintrack.models.transaction import LoginResult, Session
from fintrack.services.storage import ProvisioningInterface, UserRegistryInterface


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionError(Exception):
    """Base exception for login and session errors. Messages are user-facing."""
    pass


class ValidationError(SessionError):
    """Required login fields are missing."""
    pass


class AuthError(SessionError):
    """Unknown user or wrong secret."""
    pass


class LicenseError(SessionError):
    """License missing, inactive or past its validity date."""
    pass


class SessionExpiredError(SessionError):
    """No live session for the token (expired, unknown or forged)."""
    pass


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def hash_secret(secret: str) -> str:
    """SHA-256 hex digest, the form secrets are stored in the registry."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


class SessionStore:
    """
    Process-wide session table with TTL.

    Expired records are purged when touched and swept on every insert.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._sessions: dict[str, Session] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def put(self, token: str, session: Session) -> None:
        with self._lock:
            self._sweep()
            self._sessions[token] = session

    def get(self, token: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                del self._sessions[token]
                return None
            return session

    def _sweep(self) -> None:
        now = self._clock()
        expired = [token for token, s in self._sessions.items() if s.is_expired(now)]
        for token in expired:
            del self._sessions[token]

    def __len__(self) -> int:
        return len(self._sessions)


class SessionManager:
    """
    Issues and validates sessions bound to (identity, tenant_ref).

    Collaborators are injected so tests can swap the registry,
    provisioning service, store and clock.
    """

    def __init__(
        self,
        registry: UserRegistryInterface,
        provisioning: ProvisioningInterface,
        store: Optional[SessionStore] = None,
        ttl_seconds: int = 120 * 60,
        clock: Callable[[], datetime] = _utcnow,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._registry = registry
        self._provisioning = provisioning
        self._store = store or SessionStore(clock=clock)
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._audit_logger = audit_logger

    async def login(self, identity: str, secret: str) -> LoginResult:
        """
        Authenticate and open a session.

        Raises:
            ValidationError: identity or secret is blank
            AuthError: unknown user or wrong secret
            LicenseError: license missing or inactive
            StorageError: registry or provisioning failed
        """
        email = normalize_email(identity)
        if not email or not secret:
            raise ValidationError("Email and password are required.")

        user = await self._registry.get_user(email)
        if user is None or not hmac.compare_digest(
            hash_secret(secret), user.password_hash.strip().lower()
        ):
            await self._audit_failure(email, "bad_credentials")
            raise AuthError("Invalid email or password.")

        license_record = await self._registry.get_license(email)
        now = self._clock()
        if license_record is None or not license_record.is_active(now.date()):
            await self._audit_failure(email, "inactive_license")
            raise LicenseError("Your license is not active.")

        tenant_ref, created = await self._provisioning.resolve_tenant(email)
        if created and self._audit_logger:
            await self._audit_logger.log_tenant_provisioned(email, tenant_ref)

        session = Session(
            identity=email,
            tenant_ref=tenant_ref,
            created_at=now,
            expires_at=now + self._ttl,
        )
        token = self._issue_token(session)
        self._store.put(token, session)

        if self._audit_logger:
            await self._audit_logger.log_login(email, tenant_ref)

        return LoginResult(token=token, identity=email, tenant_ref=tenant_ref)

    async def resolve_session(self, token: Optional[str]) -> Session:
        """
        Look up a live session.

        Raises:
            SessionExpiredError: no live session for this token
        """
        session = self._store.get(token) if token else None
        if session is None:
            if self._audit_logger:
                await self._audit_logger.log_session_rejected()
            raise SessionExpiredError("Your session has expired. Please log in again.")
        return session

    def _issue_token(self, session: Session) -> str:
        payload = json.dumps(
            {
                "sub": session.identity,
                "tenant": session.tenant_ref,
                "exp": int(session.expires_at.timestamp()),
            },
            separators=(",", ":"),
        )
        encoded = base64.urlsafe_b64encode(payload.encode("utf-8")).rstrip(b"=").decode("ascii")
        return f"{encoded}.{secrets.token_urlsafe(24)}"

    async def _audit_failure(self, email: str, reason: str) -> None:
        if self._audit_logger:
            await self._audit_logger.log_login_failed(email, reason)
