"""
Identity Provider Adapter.

Wraps ``AsyncClient.auth`` behind the narrow interface the session
reconciler needs, and classifies every provider failure into the
``clubhub.errors`` taxonomy before it leaves this module.

Callbacks registered with :meth:`SupabaseIdentityProvider.on_session_change`
run synchronously inside the Supabase auth client while it still holds
its own internal state; callers must not issue further Supabase calls
from inside the callback.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Mapping, Optional, Protocol

import httpx

from clubhub.database import DatabaseManager
from clubhub.errors import (
    ERRORS_BY_CODE,
    AuthError,
    CredentialError,
    NetworkError,
    UnknownAuthError,
)
from clubhub.logger import StructuredLogger
from clubhub.models.auth_models import SUPABASE_ERROR_MAP, AuthErrorCode
from clubhub.models.enums import SessionEvent
from clubhub.models.session_models import Session

SessionCallback = Callable[[SessionEvent, Optional[Session]], None]


class IdentityProvider(Protocol):
    """Interface of the external identity provider."""

    async def sign_in(self, email: str, password: str) -> Session: ...

    async def sign_up(
        self, email: str, password: str, metadata: Mapping[str, object],
    ) -> str: ...

    async def sign_out(self) -> None: ...

    async def get_current_session(self) -> Optional[Session]: ...

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]: ...


def classify_provider_error(exc: BaseException) -> AuthError:
    """Map a Supabase or transport exception to a typed ``AuthError``.

    The structured ``code`` attribute (newer Supabase auth errors) is
    checked first, then the lower-cased message is scanned for the known
    keys in ``SUPABASE_ERROR_MAP``.
    """
    if isinstance(exc, AuthError):
        return exc
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError, RuntimeError)):
        return NetworkError(f"Identity provider unreachable: {exc}", original_error=exc)

    code = getattr(exc, "code", None)
    error_code: Optional[AuthErrorCode] = None
    if isinstance(code, str):
        error_code = SUPABASE_ERROR_MAP.get(code.lower())

    if error_code is None:
        error_str = str(exc).lower()
        for key, mapped in SUPABASE_ERROR_MAP.items():
            if key in error_str:
                error_code = mapped
                break
        else:
            if "network" in error_str or "fetch" in error_str:
                error_code = AuthErrorCode.NETWORK_ERROR

    error_cls = ERRORS_BY_CODE.get(error_code or AuthErrorCode.UNKNOWN_ERROR, UnknownAuthError)
    original = exc if isinstance(exc, Exception) else None
    return error_cls(str(exc), original_error=original)


def session_from_supabase(raw: object) -> Optional[Session]:
    """Convert a Supabase ``Session`` into our opaque ``Session`` (or ``None``)."""
    if raw is None:
        return None
    user = getattr(raw, "user", None)
    if user is None or not getattr(user, "id", None):
        return None

    issued_at = datetime.now(timezone.utc)
    expires_at = getattr(raw, "expires_at", None)
    expires_in = getattr(raw, "expires_in", None)
    if isinstance(expires_at, int) and isinstance(expires_in, int):
        issued_at = datetime.fromtimestamp(expires_at - expires_in, tz=timezone.utc)

    return Session(
        subject_id=str(user.id),
        issued_at=issued_at,
        email=getattr(user, "email", None),
    )


def session_event_from_supabase(event: object, session: Optional[Session]) -> SessionEvent:
    """Map a Supabase ``AuthChangeEvent`` (enum or string) onto :class:`SessionEvent`.

    Event names this client does not know are reported by what they did
    to the session.
    """
    try:
        return SessionEvent(str(getattr(event, "value", event)))
    except ValueError:
        return SessionEvent.SIGNED_IN if session is not None else SessionEvent.SIGNED_OUT


class SupabaseIdentityProvider:
    """Supabase Auth implementation of :class:`IdentityProvider`."""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db: DatabaseManager = db
        self._logger: StructuredLogger = logger

    async def sign_in(self, email: str, password: str) -> Session:
        """Password sign-in.  Raises a classified ``AuthError`` on failure."""
        try:
            response = await self._db.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
        except Exception as exc:
            raise classify_provider_error(exc) from exc

        session = session_from_supabase(response.session)
        if session is None:
            raise CredentialError("Login failed - no session created")
        return session

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Mapping[str, object],
    ) -> str:
        """Create the identity account and return its subject id."""
        try:
            response = await self._db.supabase.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": dict(metadata)},
            })
        except Exception as exc:
            raise classify_provider_error(exc) from exc

        user = response.user
        if user is None or not user.id:
            raise UnknownAuthError("Sign-up returned no user")
        return str(user.id)

    async def sign_out(self) -> None:
        try:
            await self._db.supabase.auth.sign_out()
        except Exception as exc:
            raise classify_provider_error(exc) from exc

    async def get_current_session(self) -> Optional[Session]:
        try:
            raw = await self._db.supabase.auth.get_session()
        except Exception as exc:
            raise classify_provider_error(exc) from exc
        return session_from_supabase(raw)

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]:
        """Forward Supabase auth events as ``(SessionEvent, Session | None)``."""

        def _forward(event: object, raw_session: object) -> None:
            session = session_from_supabase(raw_session)
            callback(session_event_from_supabase(event, session), session)

        subscription = self._db.supabase.auth.on_auth_state_change(_forward)
        self._logger.debug("Subscribed to identity-provider session changes.")
        return subscription.unsubscribe
