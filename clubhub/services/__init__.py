"""
Session Core Services Package.

The ``create_services()`` factory wires the profile repository, identity
adapter, retry policy, state cell and reconciler together, returning a
typed dict that the application layer can consume without knowing the
internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from clubhub.auth import SessionStore
from clubhub.config import AppConfig
from clubhub.database import DatabaseManager
from clubhub.identity import SupabaseIdentityProvider
from clubhub.logger import get_logger
from clubhub.repositories.profile_repository import ProfileRepository
from clubhub.services.auth_service import AuthService
from clubhub.services.backoff import BackoffScheduler
from clubhub.services.session_reconciler import SessionReconciler


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    session_store: SessionStore
    session_reconciler: SessionReconciler
    auth_service: AuthService


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    backoff: Optional[BackoffScheduler] = None,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup.

    Args:
        db: DatabaseManager holding the Supabase client.
        config: Application configuration.
        backoff: Optional retry policy override (defaults to ``config``).

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("clubhub.services")

    profile_repo = ProfileRepository(db=db, logger=logger, table=config.PROFILE_TABLE)
    identity = SupabaseIdentityProvider(db=db, logger=logger)
    store = SessionStore(logger=get_logger("clubhub.session"))

    reconciler = SessionReconciler(
        identity=identity,
        profiles=profile_repo,
        backoff=backoff or BackoffScheduler.from_config(config),
        store=store,
        logger=get_logger("clubhub.reconciler"),
    )
    auth_service = AuthService(reconciler=reconciler, logger=logger)

    return ServiceContainer(
        session_store=store,
        session_reconciler=reconciler,
        auth_service=auth_service,
    )
