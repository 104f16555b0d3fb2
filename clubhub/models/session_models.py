"""
Session Reconciliation Models.

Tagged-variant models for the reconciliation state machine and for the
classified outcome of a single profile fetch.  Every variant carries a
``status`` discriminator so callers (and tests) can match on it instead
of probing ``None`` fields:

    NoSession | Resolving(attempt) | Resolved(user) | Failed(reason)
    ProfileFound(record) | ProfileNotFound | ProfileFetchFailed(cause)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from clubhub.models.enums import FetchStatus, ReconcileStatus
from clubhub.models.user import ProfileRecord, User


# ---------------------------------------------------------------------------
# Identity-provider session
# ---------------------------------------------------------------------------

class Session(BaseModel):
    """Opaque identity-provider session; only presence and subject matter."""

    subject_id: str
    issued_at: datetime
    email: Optional[str] = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Profile fetch outcomes
# ---------------------------------------------------------------------------

class ProfileFound(BaseModel):
    status: Literal[FetchStatus.FOUND] = FetchStatus.FOUND
    record: ProfileRecord


class ProfileNotFound(BaseModel):
    """The read succeeded with zero rows (store not caught up yet)."""

    status: Literal[FetchStatus.NOT_FOUND] = FetchStatus.NOT_FOUND


class ProfileFetchFailed(BaseModel):
    """The read itself failed (network or backend fault)."""

    status: Literal[FetchStatus.FAILED] = FetchStatus.FAILED
    error: str
    cause: Optional[BaseException] = Field(default=None, exclude=True, repr=False)

    model_config = {"arbitrary_types_allowed": True}


ProfileFetchOutcome = Annotated[
    Union[ProfileFound, ProfileNotFound, ProfileFetchFailed],
    Field(discriminator="status"),
]


# ---------------------------------------------------------------------------
# Reconciliation state machine
# ---------------------------------------------------------------------------

class NoSession(BaseModel):
    status: Literal[ReconcileStatus.NO_SESSION] = ReconcileStatus.NO_SESSION

    model_config = {"frozen": True}


class Resolving(BaseModel):
    status: Literal[ReconcileStatus.RESOLVING] = ReconcileStatus.RESOLVING
    subject_id: str
    attempt: int

    model_config = {"frozen": True}


class Resolved(BaseModel):
    status: Literal[ReconcileStatus.RESOLVED] = ReconcileStatus.RESOLVED
    user: User

    model_config = {"frozen": True}


class Failed(BaseModel):
    status: Literal[ReconcileStatus.FAILED] = ReconcileStatus.FAILED
    subject_id: str
    reason: str

    model_config = {"frozen": True}


ReconciliationState = Annotated[
    Union[NoSession, Resolving, Resolved, Failed],
    Field(discriminator="status"),
]


class AuthSnapshot(BaseModel):
    """What consumers observe: the reconciliation state plus ``loading``."""

    state: ReconciliationState = Field(default_factory=NoSession)
    loading: bool = True

    model_config = {"frozen": True}

    @property
    def user(self) -> Optional[User]:
        """The published user, or ``None`` unless the state is ``Resolved``."""
        if isinstance(self.state, Resolved):
            return self.state.user
        return None


class ReconciliationAttempt(BaseModel):
    """One pass of the fetch-retry loop, kept for attempt logging."""

    subject_id: str
    attempt_number: int
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def log_fields(self) -> dict[str, object]:
        return {
            "subject_id": self.subject_id,
            "attempt": self.attempt_number,
            "started_at": self.started_at.isoformat(),
        }
