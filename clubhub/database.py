"""
Database Abstraction Layer.

Owns the asynchronous Supabase client that fronts both external
services the session core talks to:

- **Supabase Auth**: the identity provider (sessions, sign-in/up/out,
  push notifications of session changes).
- **Supabase PostgREST**: the profile store (``users`` table).

Data access is performed through repositories and the identity adapter.
This module only manages the client *connection*; it contains no query
logic.

Usage (dependency injection at app startup)::

    from clubhub.database import DatabaseManager
    from clubhub.logger import StructuredLogger

    db = await DatabaseManager.connect(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="database"),
    )
    # Inject `db` into repositories / services that need it.
"""

from __future__ import annotations

from typing import Optional

from supabase import AsyncClient, acreate_client

from clubhub.logger import StructuredLogger


class DatabaseManager:
    """Holds the Supabase client shared by the identity adapter and repositories.

    When credentials are missing the client is **not** created and the
    manager runs in offline mode: the ``supabase`` property raises
    ``RuntimeError``, which callers classify like any other transport
    failure.

    Parameters
    ----------
    client:
        An initialised ``AsyncClient``, or ``None`` for offline mode.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(self, client: Optional[AsyncClient], logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger
        self._supabase: Optional[AsyncClient] = client

    @classmethod
    async def connect(
        cls,
        supabase_url: str,
        supabase_key: str,
        logger: StructuredLogger,
    ) -> "DatabaseManager":
        """Create the async Supabase client, falling back to offline mode on bad config."""
        client: Optional[AsyncClient] = None
        if supabase_url and supabase_key:
            try:
                client = await acreate_client(supabase_url, supabase_key)
                logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                logger.warning(
                    "Supabase credential format error: %s. Running in offline mode.",
                    exc,
                )
            except Exception as exc:
                logger.error(
                    "Unexpected Supabase initialization failure: %s. "
                    "Running in offline mode.",
                    exc,
                    exc_info=True,
                )
        else:
            logger.warning(
                "Supabase credentials not configured, running in offline mode."
            )
        return cls(client, logger)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> AsyncClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the Supabase client was not initialised (offline mode).
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "The application is running in offline mode."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        """``True`` when the Supabase client is available."""
        return self._supabase is not None
