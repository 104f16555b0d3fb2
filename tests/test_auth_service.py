import pytest

from clubhub.models import AuthErrorCode, UserRole
from clubhub.services.auth_service import AuthService
from tests.fakes import (
    FakeIdentityProvider,
    FakeProfileStore,
    RecordingSleep,
    build_reconciler,
    make_record,
)


def _service(logger, max_attempts=5):
    identity = FakeIdentityProvider()
    profiles = FakeProfileStore()
    reconciler, store = build_reconciler(identity, profiles, RecordingSleep(), logger, max_attempts)
    return AuthService(reconciler=reconciler, logger=logger), reconciler, identity, profiles


@pytest.mark.parametrize(
    ("email", "valid"),
    [
        ("sam@example.com", True),
        ("  sam.lee+club@sub.example.org ", True),
        ("", False),
        ("   ", False),
        ("not-an-email", False),
        ("sam@localhost", False),
    ],
)
def test_validate_email(email, valid):
    assert AuthService.validate_email(email).is_valid is valid


def test_validate_password_minimum():
    assert not AuthService.validate_password("12345").is_valid
    assert AuthService.validate_password("123456").is_valid


def test_validate_name():
    assert AuthService.validate_name("Jane", "First name").is_valid
    missing = AuthService.validate_name("  ", "First name")
    assert missing.error_message == "First name is required."
    assert not AuthService.validate_name("Ja\nne", "First name").is_valid


def test_normalize_email():
    assert AuthService.normalize_email("  Sam@Example.COM ") == "sam@example.com"


@pytest.mark.asyncio
async def test_login_success(logger):
    service, reconciler, identity, profiles = _service(logger)
    identity.add_account("sam@example.com", "secret1", "A")
    profiles.records["A"] = make_record("A", email="sam@example.com", role=UserRole.ADMIN)
    await reconciler.start()
    await service.store.ready()

    result = await service.login("Sam@Example.com ", "secret1")
    assert result.success
    assert result.user.id == "A"
    assert service.current_user == result.user
    assert service.has_role(UserRole.ADMIN, UserRole.COACH)
    assert not service.has_role(UserRole.PLAYER)
    reconciler.stop()


@pytest.mark.asyncio
async def test_login_invalid_credentials_message(logger):
    service, reconciler, identity, profiles = _service(logger)
    await reconciler.start()
    result = await service.login("sam@example.com", "wrong1")
    assert not result.success
    assert result.error_code == AuthErrorCode.INVALID_CREDENTIALS
    assert result.error_message == "Invalid email or password."
    reconciler.stop()


@pytest.mark.asyncio
async def test_login_exhaustion_message(logger):
    service, reconciler, identity, profiles = _service(logger, max_attempts=2)
    identity.add_account("sam@example.com", "secret1", "A")
    await reconciler.start()
    result = await service.login("sam@example.com", "secret1")
    assert not result.success
    assert result.error_code == AuthErrorCode.ACCOUNT_SETUP_PENDING
    assert "try again in a few moments" in result.error_message
    assert service.current_user is None
    reconciler.stop()


@pytest.mark.asyncio
async def test_login_validation_skips_provider(logger):
    service, reconciler, identity, profiles = _service(logger)
    bad_email = await service.login("nope", "secret1")
    no_password = await service.login("sam@example.com", "")
    assert bad_email.error_code == AuthErrorCode.VALIDATION_ERROR
    assert no_password.error_message == "Password is required."
    assert identity.sign_in_calls == 0


@pytest.mark.asyncio
async def test_register_success(logger):
    service, reconciler, identity, profiles = _service(logger)
    await reconciler.start()
    result = await service.register(
        "Jane@Example.com", "secret1", " Jane ", "Doe",
        role=UserRole.COACH, confirm_password="secret1",
    )
    assert result.success
    assert result.user.email == "jane@example.com"
    assert result.user.first_name == "Jane"
    assert result.user.role == UserRole.COACH
    assert service.has_role(UserRole.COACH)
    reconciler.stop()


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"confirm_password": "other1"}, "Passwords do not match."),
        ({"first_name": ""}, "First name is required."),
        ({"password": "123"}, "Password must be at least 6 characters long."),
        ({"email": "jane"}, "Please enter a valid email address."),
        ({"role": "referee"}, "Unknown role: referee."),
    ],
)
@pytest.mark.asyncio
async def test_register_validation(logger, kwargs, message):
    service, reconciler, identity, profiles = _service(logger)
    fields = {
        "email": "jane@example.com",
        "password": "secret1",
        "first_name": "Jane",
        "last_name": "Doe",
        **kwargs,
    }
    result = await service.register(**fields)
    assert not result.success
    assert result.error_code == AuthErrorCode.VALIDATION_ERROR
    assert result.error_message == message
    assert identity.sign_up_calls == []


@pytest.mark.asyncio
async def test_register_write_failure_message(logger):
    service, reconciler, identity, profiles = _service(logger)
    profiles.insert_error = RuntimeError("insert rejected")
    await reconciler.start()
    result = await service.register("jane@example.com", "secret1", "Jane", "Doe")
    assert result.error_code == AuthErrorCode.REGISTRATION_WRITE_FAILED
    reconciler.stop()


@pytest.mark.asyncio
async def test_logout_always_succeeds(logger):
    service, reconciler, identity, profiles = _service(logger)
    result = await service.logout()
    assert result.success
    assert service.current_user is None


@pytest.mark.asyncio
async def test_login_and_register_before_start_fail_cleanly(logger):
    service, reconciler, identity, profiles = _service(logger)
    login = await service.login("sam@example.com", "secret1")
    register = await service.register("jane@example.com", "secret1", "Jane", "Doe")

    for result in (login, register):
        assert not result.success
        assert result.error_code == AuthErrorCode.UNKNOWN_ERROR
        assert result.error_message == "An unexpected error occurred. Please try again."
    assert identity.sign_in_calls == 0
    assert identity.sign_up_calls == []
