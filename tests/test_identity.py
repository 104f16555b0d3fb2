from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from clubhub.database import DatabaseManager
from clubhub.errors import (
    CredentialError,
    DuplicateEmailError,
    InvalidEmailError,
    NetworkError,
    UnknownAuthError,
    WeakPasswordError,
)
from clubhub.identity import (
    SupabaseIdentityProvider,
    classify_provider_error,
    session_event_from_supabase,
    session_from_supabase,
)
from clubhub.models import SessionEvent


class ProviderError(Exception):
    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


def _raw_session(user_id="u-1", email="sam@example.com"):
    return SimpleNamespace(
        user=SimpleNamespace(id=user_id, email=email),
        expires_at=1_700_003_600,
        expires_in=3600,
    )


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ProviderError("bad", code="invalid_credentials"), CredentialError),
        (ProviderError("Invalid login credentials"), CredentialError),
        (ProviderError("User already registered"), DuplicateEmailError),
        (ProviderError("whatever", code="weak_password"), WeakPasswordError),
        (ProviderError("Unable to validate email address: invalid format"), InvalidEmailError),
        (httpx.ConnectError("connection refused"), NetworkError),
        (TimeoutError("timed out"), NetworkError),
        (ProviderError("Failed to fetch"), NetworkError),
        (ProviderError("something odd"), UnknownAuthError),
    ],
)
def test_classify_provider_error(exc, expected):
    classified = classify_provider_error(exc)
    assert type(classified) is expected
    assert classified.original_error is exc


def test_session_from_supabase():
    session = session_from_supabase(_raw_session())
    assert session.subject_id == "u-1"
    assert session.email == "sam@example.com"
    assert session.issued_at == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)


def test_session_from_supabase_without_user():
    assert session_from_supabase(None) is None
    assert session_from_supabase(SimpleNamespace(user=None)) is None


def _provider(logger):
    client = MagicMock()
    return SupabaseIdentityProvider(db=DatabaseManager(client, logger), logger=logger), client


@pytest.mark.asyncio
async def test_sign_in_returns_session(logger):
    provider, client = _provider(logger)
    client.auth.sign_in_with_password = AsyncMock(
        return_value=SimpleNamespace(session=_raw_session()),
    )
    session = await provider.sign_in("sam@example.com", "secret1")
    assert session.subject_id == "u-1"
    client.auth.sign_in_with_password.assert_awaited_once_with(
        {"email": "sam@example.com", "password": "secret1"},
    )


@pytest.mark.asyncio
async def test_sign_in_without_session_is_credential_error(logger):
    provider, client = _provider(logger)
    client.auth.sign_in_with_password = AsyncMock(return_value=SimpleNamespace(session=None))
    with pytest.raises(CredentialError):
        await provider.sign_in("sam@example.com", "secret1")


@pytest.mark.asyncio
async def test_sign_in_classifies_provider_errors(logger):
    provider, client = _provider(logger)
    client.auth.sign_in_with_password = AsyncMock(
        side_effect=ProviderError("Invalid login credentials", code="invalid_credentials"),
    )
    with pytest.raises(CredentialError):
        await provider.sign_in("sam@example.com", "nope")


@pytest.mark.asyncio
async def test_offline_sign_in_is_network_error(logger):
    provider = SupabaseIdentityProvider(db=DatabaseManager(None, logger), logger=logger)
    with pytest.raises(NetworkError):
        await provider.sign_in("sam@example.com", "secret1")


@pytest.mark.asyncio
async def test_sign_up_passes_metadata(logger):
    provider, client = _provider(logger)
    client.auth.sign_up = AsyncMock(return_value=SimpleNamespace(user=SimpleNamespace(id="u-9")))
    subject_id = await provider.sign_up(
        "jane@example.com", "secret1", {"first_name": "Jane", "role": "player"},
    )
    assert subject_id == "u-9"
    payload = client.auth.sign_up.await_args.args[0]
    assert payload["options"]["data"] == {"first_name": "Jane", "role": "player"}


@pytest.mark.asyncio
async def test_sign_up_without_user_is_unknown_error(logger):
    provider, client = _provider(logger)
    client.auth.sign_up = AsyncMock(return_value=SimpleNamespace(user=None))
    with pytest.raises(UnknownAuthError):
        await provider.sign_up("jane@example.com", "secret1", {})


@pytest.mark.asyncio
async def test_get_current_session(logger):
    provider, client = _provider(logger)
    client.auth.get_session = AsyncMock(return_value=None)
    assert await provider.get_current_session() is None


def test_on_session_change_forwards_events(logger):
    provider, client = _provider(logger)
    unsubscribe = MagicMock()
    client.auth.on_auth_state_change.return_value = SimpleNamespace(unsubscribe=unsubscribe)
    received = []

    stop = provider.on_session_change(lambda event, session: received.append((event, session)))
    forward = client.auth.on_auth_state_change.call_args.args[0]
    forward(SimpleNamespace(value="SIGNED_IN"), _raw_session())
    forward("SIGNED_OUT", None)
    stop()

    assert received[0][0] is SessionEvent.SIGNED_IN
    assert received[0][1].subject_id == "u-1"
    assert received[1] == (SessionEvent.SIGNED_OUT, None)
    unsubscribe.assert_called_once_with()


@pytest.mark.parametrize(
    ("event", "has_session", "expected"),
    [
        (SimpleNamespace(value="TOKEN_REFRESHED"), True, SessionEvent.TOKEN_REFRESHED),
        ("USER_DELETED", False, SessionEvent.USER_DELETED),
        ("SOMETHING_NEW", True, SessionEvent.SIGNED_IN),
        ("SOMETHING_NEW", False, SessionEvent.SIGNED_OUT),
    ],
)
def test_session_event_from_supabase(event, has_session, expected):
    session = session_from_supabase(_raw_session()) if has_session else None
    assert session_event_from_supabase(event, session) is expected
