"""
Shared Enumerations for ClubHub Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents,
so role checks like ``if user.role == 'coach'`` keep working.
"""

from __future__ import annotations
from enum import StrEnum


class UserRole(StrEnum):
    """Roles a club member can hold.

    Role checks are plain equality tests performed by callers; the
    session core never enforces permissions.
    """

    PLAYER = "player"
    COACH = "coach"
    ADMIN = "admin"


class ReconcileStatus(StrEnum):
    """Discriminator for the reconciliation state variants."""

    NO_SESSION = "no_session"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


class FetchStatus(StrEnum):
    """Discriminator for a single profile-fetch outcome."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class SessionEvent(StrEnum):
    """Identity-provider notification kinds (Supabase ``AuthChangeEvent``)."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    MFA_CHALLENGE_VERIFIED = "MFA_CHALLENGE_VERIFIED"
    USER_DELETED = "USER_DELETED"
