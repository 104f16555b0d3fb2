"""
Authentication & Session State.

Provides an injectable ``SessionStore``: the single owned cell holding
the current ``AuthSnapshot`` (reconciliation state + ``loading``) for
the lifetime of the process.

The session reconciler is the only writer.  Consumers read the
snapshot or subscribe to changes::

    from clubhub.auth import SessionStore

    store = SessionStore(logger=get_logger("session"))
    unsubscribe = store.subscribe(lambda snap: render(snap.user, snap.loading))
    ...
    unsubscribe()

All access happens on the event-loop thread, so no locking is needed.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from clubhub.logger import StructuredLogger
from clubhub.models.session_models import AuthSnapshot, ReconciliationState
from clubhub.models.user import User

SnapshotListener = Callable[[AuthSnapshot], None]


class SessionStore:
    """Injectable holder for the reconciled user and the ``loading`` flag.

    Each instance maintains its own state, eliminating the need for
    module-level globals.  Pass a single ``SessionStore`` through the
    composition root so every component shares the same view.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger
        self._snapshot: AuthSnapshot = AuthSnapshot()
        self._listeners: list[SnapshotListener] = []
        self._ready: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> AuthSnapshot:
        return self._snapshot

    @property
    def state(self) -> ReconciliationState:
        return self._snapshot.state

    @property
    def user(self) -> Optional[User]:
        """The published user, or ``None`` when nobody is signed in."""
        return self._snapshot.user

    @property
    def loading(self) -> bool:
        return self._snapshot.loading

    @property
    def is_authenticated(self) -> bool:
        return self._snapshot.user is not None

    async def ready(self) -> AuthSnapshot:
        """Wait until the first reconciliation has completed."""
        if self._snapshot.loading:
            await self._ready_event().wait()
        return self._snapshot

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register *listener* for every new snapshot; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Writes (session reconciler only)
    # ------------------------------------------------------------------

    def publish(self, state: ReconciliationState) -> None:
        """Replace the reconciliation state wholesale and notify listeners."""
        self._replace(AuthSnapshot(state=state, loading=self._snapshot.loading))

    def finish_loading(self) -> None:
        """Flip ``loading`` to ``False``.  Only the first call has any effect."""
        if not self._snapshot.loading:
            return
        self._replace(AuthSnapshot(state=self._snapshot.state, loading=False))
        self._ready_event().set()
        self._logger.debug("Initial session reconciliation complete.")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ready_event(self) -> asyncio.Event:
        # Created lazily so the store can be built outside a running loop.
        if self._ready is None:
            self._ready = asyncio.Event()
            if not self._snapshot.loading:
                self._ready.set()
        return self._ready

    def _replace(self, snapshot: AuthSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                self._logger.error(
                    "Session listener %r failed: %s", listener, exc, exc_info=True,
                )
