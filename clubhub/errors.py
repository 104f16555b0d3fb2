"""
Authentication Error Taxonomy.

Terminal conditions raised to Login / Register callers.  Expected,
recoverable conditions (profile row not replicated yet, transient read
failure) are never raised: the profile repository returns them as
classified fetch outcomes and the reconciler's retry loop consumes them.
"""

from __future__ import annotations

from typing import Optional

from clubhub.models.auth_models import AUTH_ERROR_MESSAGES, AuthErrorCode


class AuthError(Exception):
    """Base class for every error surfaced by the session core.

    ``message`` is the diagnostic text for logs; ``user_message`` is the
    short human-readable text the UI shows.
    """

    error_code: AuthErrorCode = AuthErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        self.message: str = message
        self.original_error: Optional[Exception] = original_error
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return AUTH_ERROR_MESSAGES[self.error_code]


class CredentialError(AuthError):
    """Invalid email/password.  Never retried."""

    error_code = AuthErrorCode.INVALID_CREDENTIALS


class NetworkError(AuthError):
    """The identity provider could not be reached."""

    error_code = AuthErrorCode.NETWORK_ERROR


class DuplicateEmailError(AuthError):
    error_code = AuthErrorCode.EMAIL_ALREADY_EXISTS


class WeakPasswordError(AuthError):
    error_code = AuthErrorCode.WEAK_PASSWORD


class InvalidEmailError(AuthError):
    error_code = AuthErrorCode.INVALID_EMAIL


class ReconciliationExhausted(AuthError):
    """The profile row never became visible within the retry ceiling.

    The login session has already been signed back out when this is
    raised.
    """

    error_code = AuthErrorCode.ACCOUNT_SETUP_PENDING

    def __init__(
        self,
        subject_id: str,
        email: str,
        attempts: int,
        reason: str,
    ) -> None:
        self.subject_id: str = subject_id
        self.attempts: int = attempts
        self.reason: str = reason
        super().__init__(
            f"Unable to retrieve account data for {email} after {attempts} attempts. "
            "This could be due to a delay in account creation. Please try again in "
            "a few moments. If the problem persists, contact support with this "
            f"error: {reason}",
        )


class RegistrationWriteError(AuthError):
    """The identity account exists but its profile row could not be written."""

    error_code = AuthErrorCode.REGISTRATION_WRITE_FAILED

    def __init__(self, subject_id: str, original_error: Optional[Exception] = None) -> None:
        self.subject_id: str = subject_id
        super().__init__(
            f"Failed to create user account: identity {subject_id} exists "
            f"without a profile record ({original_error})",
            original_error=original_error,
        )


class SessionSupersededError(AuthError):
    """Login's session was replaced (or the reconciler stopped) mid-resolution."""

    error_code = AuthErrorCode.SESSION_SUPERSEDED


class UnknownAuthError(AuthError):
    error_code = AuthErrorCode.UNKNOWN_ERROR


ERRORS_BY_CODE: dict[AuthErrorCode, type[AuthError]] = {
    AuthErrorCode.INVALID_CREDENTIALS: CredentialError,
    AuthErrorCode.NETWORK_ERROR: NetworkError,
    AuthErrorCode.EMAIL_ALREADY_EXISTS: DuplicateEmailError,
    AuthErrorCode.WEAK_PASSWORD: WeakPasswordError,
    AuthErrorCode.INVALID_EMAIL: InvalidEmailError,
    AuthErrorCode.UNKNOWN_ERROR: UnknownAuthError,
}
