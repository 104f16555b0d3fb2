"""
Session Reconciliation Engine.

Keeps one answer to "who is the current user" consistent across three
sources that disagree in time:

- the identity provider, which issues sessions immediately;
- the profile store, which may lag behind identity writes;
- push notifications of session changes, which can race with the
  startup check and with each other.

Every reconciliation cycle captures an *epoch* when it starts.  The
epoch advances whenever the observed session subject changes (including
to "no session"), on logout, and on teardown.  A cycle may publish only
while its epoch is still current and the reconciler is live, so the most
recently observed session always wins regardless of which fetch loop
finishes last.  In-flight I/O is never cancelled; stale cycles notice at
their next checkpoint and discard their result.

Per-cycle state machine::

    Start -> CheckSession -> NoSession                    -> publish NoSession
                          -> HasSession -> FetchLoop -> Found      -> publish Resolved(user)
                                                     -> Exhausted  -> publish Failed(reason)

All methods run on the asyncio event loop; there is no locking.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Coroutine, Optional

from clubhub.auth import SessionStore
from clubhub.errors import (
    AuthError,
    RegistrationWriteError,
    ReconciliationExhausted,
    SessionSupersededError,
)
from clubhub.identity import IdentityProvider
from clubhub.logger import StructuredLogger
from clubhub.models.enums import SessionEvent, UserRole
from clubhub.models.session_models import (
    Failed,
    NoSession,
    ProfileFound,
    ProfileNotFound,
    ReconciliationAttempt,
    ReconciliationState,
    Resolved,
    Resolving,
    Session,
)
from clubhub.models.user import ProfileRecord, User
from clubhub.repositories.profile_repository import ProfileRepository
from clubhub.services.backoff import BackoffScheduler
from clubhub.services.base_service import BaseService
from clubhub.utils.audit import log_audit_event


class SessionReconciler(BaseService):
    """Single writer of the process-wide ``SessionStore``.

    Parameters
    ----------
    identity:
        Identity-provider adapter (sessions, sign-in/up/out, notifications).
    profiles:
        Profile store; only ``fetch`` and ``insert`` are used.
    backoff:
        Retry policy for the fetch loop.
    store:
        The state cell consumers read.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        profiles: ProfileRepository,
        backoff: BackoffScheduler,
        store: SessionStore,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._identity: IdentityProvider = identity
        self._profiles: ProfileRepository = profiles
        self._backoff: BackoffScheduler = backoff
        self._store: SessionStore = store

        self._live: bool = False
        self._epoch: int = 0
        self._subject_id: Optional[str] = None
        self._signout_count: int = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._inflight: dict[int, asyncio.Task[None]] = {}

    # ==================================================================
    # Lifecycle
    # ==================================================================

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def is_live(self) -> bool:
        return self._live

    async def start(self) -> None:
        """Subscribe to session changes and launch the startup check.

        Returns immediately; await ``store.ready()`` for the first
        reconciliation.  Idempotent while running.
        """
        if self._live:
            self._logger.debug("Session reconciler already running.")
            return

        self._loop = asyncio.get_running_loop()
        self._live = True
        self._unsubscribe = self._identity.on_session_change(self._on_session_change)
        self._spawn(self._initial_check(self._epoch))
        self._logger.info("Session reconciler started.")

    def stop(self) -> None:
        """Clear the liveness flag and unsubscribe.

        Fetch loops still in flight run to their next checkpoint and then
        discard their results.  Safe to call when not running.
        """
        if not self._live:
            return
        self._live = False
        self._epoch += 1
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._logger.info("Session reconciler stopped.")

    async def drain(self) -> None:
        """Wait for every background reconciliation cycle to finish."""
        # Let deferred notification callbacks spawn their cycles first.
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ==================================================================
    # Credential operations
    # ==================================================================

    async def login(self, email: str, password: str) -> User:
        """Sign in and resolve the profile before returning.

        Raises
        ------
        CredentialError, NetworkError
            Straight from sign-in; the profile store is never touched.
        ReconciliationExhausted
            The profile never appeared; the session was signed back out.
        SessionSupersededError
            A logout, another sign-in or teardown overtook this login.
        """
        self._ensure_live()
        self._logger.info("Logging in: %s", email, extra={"event": "LOGIN_STARTED"})
        signouts_before = self._signout_count

        try:
            session: Session = await self._identity.sign_in(email, password)
        except AuthError as exc:
            self._logger.warning(
                "Sign-in rejected for %s (%s): %s", email, exc.error_code, exc.message,
                extra={"event": "LOGIN_FAILED", "error_code": str(exc.error_code)},
            )
            raise

        if signouts_before != self._signout_count or not self._live:
            raise SessionSupersededError(
                f"Session for {email} was signed out while signing in",
            )

        subject_id = session.subject_id
        epoch = self._observe(subject_id)
        self._logger.info(
            "Sign-in accepted; resolving profile for %s", subject_id,
            extra={"event": "LOGIN_SESSION", "subject_id": subject_id},
        )

        # Claim the epoch so the SIGNED_IN notification for this same
        # session does not start a second fetch loop.
        current = asyncio.current_task()
        if current is not None:
            self._inflight.setdefault(epoch, current)
        try:
            result = await self._resolve_profile(subject_id, epoch, settle=True)
        finally:
            if current is not None and self._inflight.get(epoch) is current:
                del self._inflight[epoch]

        if result is None:
            raise SessionSupersededError(
                f"Login for {email} was superseded before its profile resolved",
            )

        if isinstance(result, Failed):
            # Only the session this login created may be signed back out.
            if not self._is_current(epoch):
                raise SessionSupersededError(
                    f"Login for {email} was superseded before its profile resolved",
                )
            await self._abort_login(subject_id)
            log_audit_event(
                logger=self._logger,
                action="LOGIN_FAILED",
                entity_type="User",
                entity_id=subject_id,
                user_id=subject_id,
                details={"reason": result.reason, "attempts": self._backoff.max_attempts},
            )
            raise ReconciliationExhausted(
                subject_id=subject_id,
                email=email,
                attempts=self._backoff.max_attempts,
                reason=result.reason,
            )

        if not self._publish(epoch, result):
            raise SessionSupersededError(
                f"Login for {email} was superseded before its profile resolved",
            )
        self._store.finish_loading()

        log_audit_event(
            logger=self._logger,
            action="LOGIN",
            entity_type="User",
            entity_id=result.user.id,
            user_id=result.user.id,
            details={"email": result.user.email, "role": str(result.user.role)},
        )
        return result.user

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole,
    ) -> User:
        """Create the identity account and its profile row, then publish the user.

        The profile insert is a single write and is not retried; the row
        was written by this call, so no fetch loop is needed.

        Raises
        ------
        DuplicateEmailError, WeakPasswordError, InvalidEmailError, NetworkError
            From sign-up.
        RegistrationWriteError
            The identity account exists but the profile insert failed.
        """
        self._ensure_live()
        self._logger.info("Registering user: %s", email, extra={"event": "REGISTER_STARTED"})

        try:
            subject_id = await self._identity.sign_up(
                email,
                password,
                {"first_name": first_name, "last_name": last_name, "role": str(role)},
            )
        except AuthError as exc:
            self._logger.warning(
                "Sign-up rejected for %s (%s): %s", email, exc.error_code, exc.message,
                extra={"event": "REGISTER_FAILED", "error_code": str(exc.error_code)},
            )
            raise

        record = ProfileRecord(
            id=subject_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            team_id=None,
            profile_image_url=None,
            created_at=datetime.now(timezone.utc),
        )
        try:
            record = await self._profiles.insert(record)
        except Exception as exc:
            self._logger.error(
                "Error inserting profile for %s: %s", subject_id, exc,
                extra={"event": "REGISTER_FAILED", "subject_id": subject_id},
            )
            raise RegistrationWriteError(subject_id, original_error=exc) from exc

        user = User.from_profile(record)
        epoch = self._observe(subject_id)
        if self._publish(epoch, Resolved(user=user)):
            self._store.finish_loading()

        log_audit_event(
            logger=self._logger,
            action="REGISTER",
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            details={"email": user.email, "role": str(user.role)},
        )
        return user

    async def logout(self) -> None:
        """Sign out and publish ``NoSession``.  Safe when already signed out.

        A provider sign-out failure is logged and local state is cleared
        anyway.
        """
        user = self._store.user
        try:
            await self._identity.sign_out()
        except AuthError as exc:
            self._logger.warning(
                "Server-side sign_out failed for %s: %s",
                user.email if user else "anonymous session",
                exc,
            )

        self._signout_count += 1
        epoch = self._observe(None, force=True)
        if self._publish(epoch, NoSession()):
            self._store.finish_loading()

        if user is not None:
            log_audit_event(
                logger=self._logger,
                action="LOGOUT",
                entity_type="User",
                entity_id=user.id,
                user_id=user.id,
                details={"email": user.email},
            )

    async def refresh(self) -> Optional[User]:
        """Re-run reconciliation for the provider's current session.

        Returns the published user (``None`` without a session or when
        the profile never appeared).  Re-running for a subject that is
        already resolved is a pure re-read and yields an equal ``User``.
        """
        self._ensure_live()
        session = await self._current_session()
        subject_id = session.subject_id if session else None
        epoch = self._observe(subject_id)

        if subject_id is None:
            self._publish(epoch, NoSession())
            self._store.finish_loading()
            return None

        result = await self._resolve_profile(subject_id, epoch, settle=False)
        if result is None or not self._publish(epoch, result):
            raise SessionSupersededError(
                f"Refresh for {subject_id} was superseded by a newer session",
            )
        self._store.finish_loading()
        return result.user if isinstance(result, Resolved) else None

    # ==================================================================
    # Reconciliation cycles
    # ==================================================================

    async def _initial_check(self, epoch: int) -> None:
        session = await self._current_session()
        if not self._is_current(epoch):
            self._logger.debug(
                "Startup session check overtaken by a session change; discarding.",
            )
            return

        subject_id = session.subject_id if session else None
        epoch = self._observe(subject_id)
        if subject_id is None:
            self._logger.info("No session at startup.", extra={"event": "NO_SESSION"})
            if self._publish(epoch, NoSession()):
                self._store.finish_loading()
            return

        await self._reconcile(epoch, subject_id, trigger="startup")

    def _on_session_change(self, event: SessionEvent, session: Optional[Session]) -> None:
        """Identity-provider callback.

        Runs inside the provider's own notification dispatch, so the
        profile fetch is deferred to the next loop turn.
        """
        if not self._live:
            return

        subject_id = session.subject_id if session else None
        epoch = self._observe(subject_id)
        self._logger.info(
            "Auth state changed: %s", event,
            extra={"event": "SESSION_CHANGE", "auth_event": event.value,
                   "subject_id": subject_id or "", "epoch": epoch},
        )

        if subject_id is None:
            if self._publish(epoch, NoSession()):
                self._store.finish_loading()
            return

        if self._loop is None:
            return
        self._loop.call_soon(self._schedule_reconcile, epoch, subject_id, event.value)

    def _schedule_reconcile(self, epoch: int, subject_id: str, trigger: str) -> None:
        if not self._is_current(epoch):
            return
        running = self._inflight.get(epoch)
        if running is not None and not running.done():
            self._logger.debug(
                "Reconciliation for %s already in flight; skipping %s.", subject_id, trigger,
            )
            return

        task = self._spawn(self._reconcile(epoch, subject_id, trigger=trigger))
        self._inflight[epoch] = task
        task.add_done_callback(lambda _t, e=epoch: self._inflight.pop(e, None))

    async def _reconcile(self, epoch: int, subject_id: str, *, trigger: str) -> None:
        result = await self._resolve_profile(subject_id, epoch, settle=False)
        if result is None:
            return
        if isinstance(result, Failed):
            self._logger.error(
                "Could not reconcile profile for %s (%s): %s",
                subject_id, trigger, result.reason,
                extra={"event": "RECONCILIATION_EXHAUSTED", "subject_id": subject_id},
            )
        if self._publish(epoch, result):
            self._store.finish_loading()

    async def _resolve_profile(
        self,
        subject_id: str,
        epoch: int,
        *,
        settle: bool,
    ) -> Optional[ReconciliationState]:
        """Fetch loop.  Returns ``Resolved`` or ``Failed``, or ``None`` once stale."""
        if settle:
            await self._backoff.settle()

        log = self._logger.bind(subject_id=subject_id, epoch=epoch)
        attempts_made = 0
        last_reason = f"User record not found for subject {subject_id}"
        while True:
            if not self._is_current(epoch):
                log.debug("Discarding stale fetch loop for %s.", subject_id)
                return None

            attempt = ReconciliationAttempt(
                subject_id=subject_id, attempt_number=attempts_made + 1,
            )
            self._publish_progress(epoch, attempt)
            log.info(
                "Attempt %d: fetching profile for %s", attempt.attempt_number, subject_id,
                extra=attempt.log_fields(),
            )

            outcome = await self._profiles.fetch(subject_id)
            attempts_made += 1

            if isinstance(outcome, ProfileFound):
                log.info(
                    "Profile resolved for %s on attempt %d", subject_id, attempts_made,
                    extra={**attempt.log_fields(), "outcome": str(outcome.status)},
                )
                return Resolved(user=User.from_profile(outcome.record))

            if isinstance(outcome, ProfileNotFound):
                last_reason = f"User record not found for subject {subject_id}"
                log.info(
                    "Attempt %d: profile for %s not replicated yet",
                    attempts_made, subject_id,
                    extra={**attempt.log_fields(), "outcome": str(outcome.status)},
                )
            else:
                last_reason = outcome.error
                log.warning(
                    "Attempt %d: transient store error for %s: %s",
                    attempts_made, subject_id, outcome.error,
                    extra={**attempt.log_fields(), "outcome": str(outcome.status)},
                )

            if not self._backoff.has_attempts_left(attempts_made):
                if not self._is_current(epoch):
                    log.debug("Session changed during the last attempt for %s.", subject_id)
                    return None
                break
            if not self._is_current(epoch):
                continue
            delay = await self._backoff.wait(attempts_made)
            log.debug("Waited %.1fs before next profile attempt.", delay)

        return Failed(subject_id=subject_id, reason=last_reason)

    async def _abort_login(self, subject_id: str) -> None:
        """Sign the half-authenticated session back out after exhaustion."""
        self._logger.warning(
            "Signing out %s: profile never became available.", subject_id,
            extra={"event": "LOGIN_ABORTED", "subject_id": subject_id},
        )
        try:
            await self._identity.sign_out()
        except AuthError as exc:
            self._logger.warning("Sign-out after failed login also failed: %s", exc)
        self._signout_count += 1
        epoch = self._observe(None, force=True)
        if self._publish(epoch, NoSession()):
            self._store.finish_loading()

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _observe(self, subject_id: Optional[str], *, force: bool = False) -> int:
        """Record the latest session subject; advance the epoch when it changes."""
        if force or subject_id != self._subject_id:
            self._subject_id = subject_id
            self._epoch += 1
        return self._epoch

    def _is_current(self, epoch: int) -> bool:
        return self._live and epoch == self._epoch

    def _publish(self, epoch: int, state: ReconciliationState) -> bool:
        if not self._is_current(epoch):
            self._logger.debug(
                "Discarding stale %s result (epoch %d, current %d).",
                state.status, epoch, self._epoch,
            )
            return False
        self._store.publish(state)
        return True

    def _publish_progress(self, epoch: int, attempt: ReconciliationAttempt) -> None:
        # A routine re-sync for the already-published user must not blank it.
        current = self._store.user
        if current is not None and current.id == attempt.subject_id:
            return
        self._publish(
            epoch,
            Resolving(subject_id=attempt.subject_id, attempt=attempt.attempt_number),
        )

    async def _current_session(self) -> Optional[Session]:
        try:
            return await self._identity.get_current_session()
        except AuthError as exc:
            self._logger.error(
                "Authentication check failed: %s", exc,
                extra={"event": "SESSION_CHECK_FAILED"},
            )
            return None

    def _ensure_live(self) -> None:
        if not self._live:
            raise RuntimeError("Session reconciler is not running. Call start() first.")

    def _spawn(self, coro: Coroutine[object, object, None]) -> asyncio.Task[None]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "Background reconciliation failed: %s", exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
