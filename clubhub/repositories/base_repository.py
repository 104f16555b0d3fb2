"""
Base Repository.

Provides shared infrastructure for all repositories:
- DatabaseManager reference (Supabase client)
- Logger reference
- Convenience property for accessing the client
"""

from __future__ import annotations

from supabase import AsyncClient

from clubhub.database import DatabaseManager
from clubhub.logger import StructuredLogger


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> AsyncClient:
        """Returns the Supabase client for cloud operations."""
        return self._db.supabase
