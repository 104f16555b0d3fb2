"""
Profile and User Models.

``ProfileRecord`` mirrors a row of the profile store exactly as it is
stored (snake_case column names).  ``User`` is the reconciled view that
consumers read; it is only ever built from a complete ``ProfileRecord``
so a partially populated user can never be published.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from clubhub.models.enums import UserRole

# Columns read from the profile store, in storage naming.
PROFILE_COLUMNS: tuple[str, ...] = (
    "id",
    "email",
    "first_name",
    "last_name",
    "role",
    "team_id",
    "profile_image_url",
    "created_at",
)


class ProfileRecord(BaseModel):
    """Persisted application profile, keyed by the identity subject id."""

    id: str  # Supabase auth UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    team_id: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True, "extra": "ignore"}


class User(BaseModel):
    """The authenticated club member exposed to consumers.

    Immutable: every reconciliation replaces the published ``User``
    wholesale instead of mutating it.
    """

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    team_id: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @classmethod
    def from_profile(cls, record: ProfileRecord) -> "User":
        """Map a stored profile row onto the consumer-facing shape."""
        return cls(
            id=record.id,
            email=record.email,
            first_name=record.first_name,
            last_name=record.last_name,
            role=record.role,
            team_id=record.team_id,
            profile_image_url=record.profile_image_url,
            created_at=record.created_at,
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
