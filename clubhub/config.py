"""
Application Configuration.

Pydantic Settings model for the ClubHub session core.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import SecretStr, model_validator


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Profile store ---
    PROFILE_TABLE: str = "users"

    # --- Profile reconciliation retry policy ---
    # Defaults reproduce the login loop: settle 2s, then 2s, 4s, 8s, 16s.
    PROFILE_FETCH_MAX_ATTEMPTS: int = 5
    PROFILE_SETTLE_DELAY_S: float = 2.0
    PROFILE_BACKOFF_BASE_S: float = 1.0

    # --- Logging ---
    LOG_FILE: str = "clubhub.log"
    LOG_LEVEL: str = "INFO"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_settings(self) -> "AppConfig":
        """Reject unusable retry settings and warn about missing Supabase config.

        Pydantic silently falls back to defaults when ``.env`` is missing.
        The warnings tell operators the app is running with placeholder
        values.
        """
        if self.PROFILE_FETCH_MAX_ATTEMPTS < 1:
            raise ValueError("PROFILE_FETCH_MAX_ATTEMPTS must be at least 1")
        if self.PROFILE_SETTLE_DELAY_S < 0 or self.PROFILE_BACKOFF_BASE_S < 0:
            raise ValueError("Profile retry delays must not be negative")

        _log = logging.getLogger("clubhub.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL or not self.SUPABASE_ANON_KEY.get_secret_value():
            _log.warning(
                "SUPABASE_URL or SUPABASE_ANON_KEY is empty; identity and "
                "profile services are unavailable."
            )

        return self

    @property
    def log_level(self) -> int:
        """Numeric ``logging`` level for ``LOG_LEVEL`` (INFO when unknown)."""
        level = logging.getLevelName(self.LOG_LEVEL.upper())
        return level if isinstance(level, int) else logging.INFO


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern so the fast path never takes the lock.

    Prefer direct constructor injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next ``get_config()`` re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None
