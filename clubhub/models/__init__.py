from __future__ import annotations

"""
Data Models Package.

Re-exports all Pydantic models for short imports:
    from clubhub.models import User, ProfileRecord, Session, UserRole
    from clubhub.models import AuthSnapshot, Resolved, NoSession
"""

from clubhub.models.auth_models import (
    AUTH_ERROR_MESSAGES,
    AuthErrorCode,
    AuthResult,
    ValidationResult,
)
from clubhub.models.enums import FetchStatus, ReconcileStatus, SessionEvent, UserRole
from clubhub.models.session_models import (
    AuthSnapshot,
    Failed,
    NoSession,
    ProfileFetchFailed,
    ProfileFetchOutcome,
    ProfileFound,
    ProfileNotFound,
    ReconciliationAttempt,
    ReconciliationState,
    Resolved,
    Resolving,
    Session,
)
from clubhub.models.user import PROFILE_COLUMNS, ProfileRecord, User

__all__ = [
    "AUTH_ERROR_MESSAGES",
    "AuthErrorCode",
    "AuthResult",
    "AuthSnapshot",
    "Failed",
    "FetchStatus",
    "NoSession",
    "PROFILE_COLUMNS",
    "ProfileFetchFailed",
    "ProfileFetchOutcome",
    "ProfileFound",
    "ProfileNotFound",
    "ProfileRecord",
    "ReconcileStatus",
    "ReconciliationAttempt",
    "ReconciliationState",
    "Resolved",
    "Resolving",
    "Session",
    "SessionEvent",
    "User",
    "UserRole",
    "ValidationResult",
]
