"""
Login / Registration Result Models.

What the login and registration forms get back from ``AuthService``:
a field-level ``ValidationResult`` or a form-level ``AuthResult``, each
carrying one of the short messages in ``AUTH_ERROR_MESSAGES``.  Also
holds the table used to map Supabase Auth error codes onto
``AuthErrorCode``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel

from clubhub.models.user import User


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Every failure a credential operation can end in.

    ``clubhub.errors`` pins one code to each exception class; the forms
    branch on it (e.g. offer "log in instead" on a duplicate email).
    """

    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    WEAK_PASSWORD = "weak_password"
    INVALID_EMAIL = "invalid_email"
    NETWORK_ERROR = "network_error"
    ACCOUNT_SETUP_PENDING = "account_setup_pending"
    REGISTRATION_WRITE_FAILED = "registration_write_failed"
    SESSION_SUPERSEDED = "session_superseded"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_ERROR = "unknown_error"


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

AUTH_ERROR_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Invalid email or password.",
    AuthErrorCode.EMAIL_ALREADY_EXISTS: (
        "An account with this email already exists. Please try logging in instead."
    ),
    AuthErrorCode.WEAK_PASSWORD: "Password must be at least 6 characters long.",
    AuthErrorCode.INVALID_EMAIL: "Please enter a valid email address.",
    AuthErrorCode.NETWORK_ERROR: (
        "Network error. Please check your connection and try again."
    ),
    AuthErrorCode.ACCOUNT_SETUP_PENDING: (
        "Account setup in progress. Please try again in a few moments."
    ),
    AuthErrorCode.REGISTRATION_WRITE_FAILED: (
        "Failed to create user account. Please contact support."
    ),
    AuthErrorCode.SESSION_SUPERSEDED: (
        "Sign-in was interrupted because the session changed. Please try again."
    ),
    AuthErrorCode.UNKNOWN_ERROR: "An unexpected error occurred. Please try again.",
}


# ---------------------------------------------------------------------------
# Supabase error-code mapping
# ---------------------------------------------------------------------------

# Keys are matched against the error ``code`` first, then as substrings
# of the lower-cased error message.
SUPABASE_ERROR_MAP: dict[str, AuthErrorCode] = {
    "invalid_credentials": AuthErrorCode.INVALID_CREDENTIALS,
    "invalid login credentials": AuthErrorCode.INVALID_CREDENTIALS,
    "invalid_grant": AuthErrorCode.INVALID_CREDENTIALS,
    "email_not_confirmed": AuthErrorCode.INVALID_CREDENTIALS,
    "user_already_exists": AuthErrorCode.EMAIL_ALREADY_EXISTS,
    "email_exists": AuthErrorCode.EMAIL_ALREADY_EXISTS,
    "user already registered": AuthErrorCode.EMAIL_ALREADY_EXISTS,
    "weak_password": AuthErrorCode.WEAK_PASSWORD,
    "invalid_password": AuthErrorCode.WEAK_PASSWORD,
    "password should be at least": AuthErrorCode.WEAK_PASSWORD,
    "email_address_invalid": AuthErrorCode.INVALID_EMAIL,
    "invalid_email": AuthErrorCode.INVALID_EMAIL,
    "unable to validate email address": AuthErrorCode.INVALID_EMAIL,
}


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Outcome of checking one form field before any network call."""

    is_valid: bool
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Form-level response
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """What a login, registration or logout form receives.

    ``error_message`` is always one of the short human-readable texts
    keyed by ``error_code``; retry attempts and fetch outcomes never
    reach the form.  ``user`` is set only on success.
    """

    success: bool
    error_code: Optional[AuthErrorCode] = None
    error_message: Optional[str] = None
    user: Optional[User] = None
