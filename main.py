"""
ClubHub Session Core Entry Point.

Bootstraps the dependency graph via constructor injection, starts the
session reconciler and keeps it subscribed to identity-provider
notifications until interrupted.  Every subsystem is wired here; no
module-level globals.

Usage::

    python main.py
"""

from __future__ import annotations

import asyncio
import sys

from clubhub.config import get_config
from clubhub.database import DatabaseManager
from clubhub.logger import StructuredLogger, get_logger
from clubhub.models.session_models import AuthSnapshot
from clubhub.services import create_services


async def run() -> None:
    """Wire dependencies, reconcile the current session and stay subscribed."""
    logger: StructuredLogger = get_logger("clubhub.main")
    logger.info("Starting ClubHub session core...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Supabase client (identity provider + profile store)
    # ------------------------------------------------------------------
    db = await DatabaseManager.connect(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="clubhub.database"),
    )
    if not db.is_online:
        logger.error("Supabase is not configured; nothing to reconcile.")
        return

    # ------------------------------------------------------------------
    # 3. Service container (single composition root)
    # ------------------------------------------------------------------
    services = create_services(db=db, config=config)
    reconciler = services["session_reconciler"]
    store = services["session_store"]

    def report(snapshot: AuthSnapshot) -> None:
        user = snapshot.user
        logger.info(
            "Session state: %s",
            snapshot.state.status,
            extra={
                "loading": snapshot.loading,
                "user_id": user.id if user else "",
                "role": str(user.role) if user else "",
            },
        )

    unsubscribe = store.subscribe(report)

    # ------------------------------------------------------------------
    # 4. Reconcile and stay subscribed until interrupted
    # ------------------------------------------------------------------
    await reconciler.start()
    try:
        snapshot = await store.ready()
        if snapshot.user is not None:
            logger.info("Signed in as %s.", snapshot.user.email)
        else:
            logger.info("No signed-in user.")
        await asyncio.Event().wait()
    finally:
        unsubscribe()
        reconciler.stop()
        logger.info("ClubHub session core shut down.")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:
        sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n")
        sys.exit(1)
