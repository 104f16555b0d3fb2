"""
Profile Repository.

Reads and writes club-member profile rows in the Supabase ``users``
table.  The read path never raises: it classifies every attempt as
found / not found / failed so the reconciler's retry loop can decide
what to do.  The write path is only used by registration and lets
failures propagate.
"""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from clubhub.database import DatabaseManager
from clubhub.logger import StructuredLogger
from clubhub.models.session_models import (
    ProfileFetchFailed,
    ProfileFetchOutcome,
    ProfileFound,
    ProfileNotFound,
)
from clubhub.models.user import PROFILE_COLUMNS, ProfileRecord
from clubhub.repositories.base_repository import BaseRepository


class ProfileRepository(BaseRepository):
    """Data access layer for ``ProfileRecord`` rows.

    Stateless and read-only apart from :meth:`insert`, so concurrent
    and repeated fetches for the same subject are safe.
    """

    TABLE = "users"

    def __init__(
        self,
        db: DatabaseManager,
        logger: StructuredLogger,
        table: Optional[str] = None,
    ) -> None:
        super().__init__(db, logger)
        if table:
            self.TABLE = table

    async def fetch(self, subject_id: str) -> ProfileFetchOutcome:
        """One keyed read of the profile for *subject_id*."""
        try:
            response = await (
                self.supabase.table(self.TABLE)
                .select(", ".join(PROFILE_COLUMNS))
                .eq("id", subject_id)
                .maybe_single()
                .execute()
            )
        except Exception as exc:
            self._logger.warning(
                "Profile read failed for %s: %s", subject_id, exc,
                extra={"event": "PROFILE_READ_FAILED", "subject_id": subject_id},
            )
            return ProfileFetchFailed(error=str(exc), cause=exc)

        # postgrest returns ``None`` (older releases: empty data) for zero rows.
        if response is None or not response.data:
            return ProfileNotFound()

        try:
            record = ProfileRecord.model_validate(response.data)
        except ValidationError as exc:
            self._logger.error(
                "Profile row for %s does not match the expected shape: %s",
                subject_id,
                exc,
            )
            return ProfileFetchFailed(error=f"malformed profile row: {exc}", cause=exc)

        return ProfileFound(record=record)

    async def insert(self, record: ProfileRecord) -> ProfileRecord:
        """Insert a single profile row.  Exceptions propagate to the caller."""
        response = await (
            self.supabase.table(self.TABLE)
            .insert(record.model_dump(mode="json"))
            .execute()
        )
        self._logger.info("Profile created: %s", record.id)
        if response.data:
            return ProfileRecord.model_validate(response.data[0])
        return record
