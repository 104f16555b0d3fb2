"""
Authentication Service.

UI-facing facade over the session reconciler: login, registration and
logout with client-side validation and error classification, so that
login and registration forms stay thin form handlers.

All methods return typed ``AuthResult`` or ``ValidationResult`` models;
the UI never inspects raw exceptions or retry state. Calls made before
the reconciler is started fail with ``UNKNOWN_ERROR``.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from clubhub.auth import SessionStore, SnapshotListener
from clubhub.errors import AuthError
from clubhub.logger import StructuredLogger
from clubhub.models.auth_models import (
    AUTH_ERROR_MESSAGES,
    AuthErrorCode,
    AuthResult,
    ValidationResult,
)
from clubhub.models.enums import UserRole
from clubhub.models.user import User
from clubhub.services.base_service import BaseService
from clubhub.services.session_reconciler import SessionReconciler


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

# Matches the identity provider's default minimum.
_MIN_PASSWORD_LENGTH: int = 6

# Matches C0 controls (U+0000–U+001F), DEL (U+007F), and C1 controls (U+0080–U+009F).
_CONTROL_CHAR_RE: re.Pattern[str] = re.compile(r"[\x00-\x1f\x7f-\x9f]")


class AuthService(BaseService):
    """Centralised authentication facade.

    Parameters
    ----------
    reconciler:
        The running session reconciler; every credential operation is
        delegated to it.
    logger:
        Structured JSON logger.
    """

    def __init__(self, reconciler: SessionReconciler, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._reconciler: SessionReconciler = reconciler

    # ==================================================================
    # Session state for consumers
    # ==================================================================

    @property
    def store(self) -> SessionStore:
        return self._reconciler.store

    @property
    def current_user(self) -> Optional[User]:
        return self.store.user

    @property
    def loading(self) -> bool:
        return self.store.loading

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def has_role(self, *roles: UserRole) -> bool:
        """``True`` when the current user's role equals one of *roles*."""
        user = self.store.user
        return user is not None and user.role in roles

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Validate an email address against a simplified RFC 5322 regex."""
        if not email or not email.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Email address is required.",
            )
        if not _EMAIL_RE.match(email.strip()):
            return ValidationResult(
                is_valid=False,
                error_message=AUTH_ERROR_MESSAGES[AuthErrorCode.INVALID_EMAIL],
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_password(password: str) -> ValidationResult:
        """Enforce the minimum password length before calling sign-up."""
        if len(password) < _MIN_PASSWORD_LENGTH:
            return ValidationResult(
                is_valid=False,
                error_message=AUTH_ERROR_MESSAGES[AuthErrorCode.WEAK_PASSWORD],
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_name(name: str, field_label: str) -> ValidationResult:
        """Validate a first or last name.

        Rejects control characters, including newlines and tabs, to
        prevent log injection and display corruption.

        Parameters
        ----------
        name:
            The raw name string.
        field_label:
            Human label for the error message (e.g. ``"First name"``).
        """
        stripped = name.strip()
        if not stripped:
            return ValidationResult(
                is_valid=False,
                error_message=f"{field_label} is required.",
            )
        if _CONTROL_CHAR_RE.search(stripped):
            return ValidationResult(
                is_valid=False,
                error_message=(
                    f"{field_label} contains invalid characters. "
                    "Only printable characters are allowed."
                ),
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def normalize_email(email: str) -> str:
        """Normalise an email address: strip whitespace and lowercase."""
        return email.strip().lower()

    # ==================================================================
    # Login
    # ==================================================================

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate and wait for the profile to be reconciled.

        Returns
        -------
        AuthResult
            ``success=True`` with the published ``user``, or one of a
            small set of human-readable failures.
        """
        email_check = self.validate_email(email)
        if not email_check.is_valid:
            return _validation_failure(email_check)
        if not password:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.VALIDATION_ERROR,
                error_message="Password is required.",
            )

        if not self._reconciler.is_live:
            return self._not_running("Login")

        email = self.normalize_email(email)
        try:
            user = await self._reconciler.login(email, password)
        except AuthError as exc:
            return self._failure(exc, "Login", email)

        self._logger.info(
            "User authenticated: %s (role: %s)",
            user.full_name,
            user.role,
            extra={"event": "LOGIN", "email": user.email, "user_id": user.id},
        )
        return AuthResult(success=True, user=user)

    # ==================================================================
    # Registration
    # ==================================================================

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.PLAYER,
        confirm_password: Optional[str] = None,
    ) -> AuthResult:
        """Register a new member and publish their profile.

        Validates all fields client-side before calling the provider.

        Returns
        -------
        AuthResult
        """
        if confirm_password is not None and confirm_password != password:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.VALIDATION_ERROR,
                error_message="Passwords do not match.",
            )

        for check in (
            self.validate_name(first_name, "First name"),
            self.validate_name(last_name, "Last name"),
            self.validate_email(email),
            self.validate_password(password),
        ):
            if not check.is_valid:
                return _validation_failure(check)

        try:
            role = UserRole(role)
        except ValueError:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.VALIDATION_ERROR,
                error_message=f"Unknown role: {role}.",
            )

        if not self._reconciler.is_live:
            return self._not_running("Registration")

        email = self.normalize_email(email)
        try:
            user = await self._reconciler.register(
                email,
                password,
                first_name.strip(),
                last_name.strip(),
                role,
            )
        except AuthError as exc:
            return self._failure(exc, "Registration", email)

        self._logger.info(
            "User registered: %s (%s).",
            user.full_name,
            email,
            extra={"event": "REGISTER", "email": email, "user_id": user.id},
        )
        return AuthResult(success=True, user=user)

    # ==================================================================
    # Logout
    # ==================================================================

    async def logout(self) -> AuthResult:
        """Sign out.  Always succeeds locally, even when already signed out."""
        await self._reconciler.logout()
        return AuthResult(success=True)

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _not_running(self, operation: str) -> AuthResult:
        self._logger.error(
            "%s attempted before the session reconciler was started.", operation,
            extra={"event": f"{operation.upper()}_FAILED", "error_code": str(AuthErrorCode.UNKNOWN_ERROR)},
        )
        return AuthResult(
            success=False,
            error_code=AuthErrorCode.UNKNOWN_ERROR,
            error_message=AUTH_ERROR_MESSAGES[AuthErrorCode.UNKNOWN_ERROR],
        )

    def _failure(self, exc: AuthError, operation: str, email: str) -> AuthResult:
        self._logger.warning(
            "%s failed for %s (%s): %s", operation, email, exc.error_code, exc.message,
            extra={"event": f"{operation.upper()}_FAILED", "error_code": str(exc.error_code)},
        )
        return AuthResult(
            success=False,
            error_code=exc.error_code,
            error_message=exc.user_message,
        )


def _validation_failure(check: ValidationResult) -> AuthResult:
    return AuthResult(
        success=False,
        error_code=AuthErrorCode.VALIDATION_ERROR,
        error_message=check.error_message,
    )
