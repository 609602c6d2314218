"""
Session Lease Synchronizer: client-side state machine for one conversation.

Keeps a locally usable view of the session's lease while intents are in
flight, and never lets two exclusive intents overlap for the same session.

States:
  BOT ──lock──▶ INBOX(expiry) ──unlock / expiry──▶ BOT
  INBOX(expiry) ──extend──▶ INBOX(later expiry)

Lock and unlock open a settle window: the gate stays closed until the
window elapses and a forced reconciliation read has replaced the
optimistic state. Extend is non-exclusive and skips the window.
The remote side always wins a reconciliation.
"""

import asyncio
import math
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from loguru import logger

from lease_relay.models.lease import Lease, LeaseAction, Route, parse_timestamp, utcnow
from lease_relay.models.synchronizer import ActionOutcome, ClientMirror, SynchronizerConfig
from lease_relay.session_ids import normalize_session_id
from lease_relay.synchronizer.cache import MirrorCache
from lease_relay.synchronizer.client import GatewayClient, GatewayClientError

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[None]]


class SessionLeaseSynchronizer:
    """Owns the mirror of a single session inside one UI context."""

    def __init__(
        self,
        session_id: str,
        client: GatewayClient,
        config: Optional[SynchronizerConfig] = None,
        cache: Optional[MirrorCache] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.session_id = normalize_session_id(session_id)
        self.client = client
        self.config = config or SynchronizerConfig()
        self.cache = cache if cache is not None else MirrorCache()
        self._clock = clock or utcnow
        self._sleep = sleep or asyncio.sleep
        self._running = False

        mirror = self.cache.get(self.session_id)
        if mirror is None:
            mirror = ClientMirror(
                session_id=self.session_id,
                settle_seconds=self.config.settle_seconds,
            )
            if self.session_id:
                self.cache.put(mirror)
        self._mirror = mirror

    # --- Read side ---

    @property
    def mirror(self) -> ClientMirror:
        return self._mirror

    @property
    def route(self) -> Route:
        return self._mirror.lease.route

    @property
    def lock_until(self) -> Optional[datetime]:
        return self._mirror.lease.expiry

    @property
    def pending_action(self) -> bool:
        return self._mirror.pending_action

    @property
    def error(self) -> Optional[str]:
        return self._mirror.error

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    def remaining_ms(self, current_time: Optional[datetime] = None) -> int:
        return self._mirror.remaining_ms(self._now(current_time))

    def settle_progress(self, current_time: Optional[datetime] = None) -> float:
        return self._mirror.settle_progress(self._now(current_time))

    def _now(self, current_time: Optional[datetime] = None) -> datetime:
        return current_time or self._clock()

    # --- Reconciliation ---

    async def open(self) -> ClientMirror:
        """Initial read when the UI opens the session. Falls back to BOT."""
        if not self.session_id:
            return self._mirror
        lease = await self.reconcile()
        if lease is None:
            self._mirror.lease = Lease.bot()
        return self._mirror

    async def reconcile(self, current_time: Optional[datetime] = None) -> Optional[Lease]:
        """
        Read the authoritative lease and replace the local view with it.
        Returns None when the read failed; local state is left untouched.
        """
        if not self.session_id:
            return None
        try:
            data = await self.client.fetch_status(self.session_id)
        except GatewayClientError as e:
            logger.warning(f"Status read failed for {self.session_id}: {e.message}")
            return None

        now = self._now(current_time)
        remote = Lease.from_remote(
            data.get("route"),
            data.get("lockUntil", data.get("lock_until")),
            now,
        )
        self._adopt_remote(remote, now)
        return self._mirror.lease

    def _adopt_remote(self, remote: Lease, now: datetime) -> None:
        local = self._mirror.lease.effective(now)
        keep_local = (
            remote.route == Route.INBOX
            and local.route == Route.INBOX
            and abs((remote.expiry - local.expiry).total_seconds())
            <= self.config.skew_tolerance_seconds
        )
        if keep_local:
            # Same lease give or take clock skew; avoid a visible jump.
            self._mirror.lease = local
        else:
            if remote != self._mirror.lease:
                logger.debug(
                    f"Reconciled {self.session_id}: {self._mirror.lease.route.value} "
                    f"-> {remote.route.value}"
                )
            self._mirror.lease = remote
        self._mirror.last_known_good = remote

    async def on_focus(self) -> Optional[Lease]:
        """Window regained focus."""
        return await self.reconcile()

    def tick(self, current_time: Optional[datetime] = None) -> bool:
        """
        Local countdown step. Drops an expired INBOX lease to BOT without a
        network round trip; the next reconciliation corrects it if needed.
        """
        lease = self._mirror.lease
        if lease.route == Route.INBOX and lease.is_expired(self._now(current_time)):
            self._mirror.lease = Lease.bot()
            logger.info(f"Live-chat lease for {self.session_id} expired locally")
            return True
        return False

    # --- Intents ---

    async def lock(
        self,
        ttl_hours: Optional[int] = None,
        current_time: Optional[datetime] = None,
    ) -> ActionOutcome:
        """Hand the session to the human inbox."""
        action = LeaseAction.LOCK
        if not self.session_id:
            return self._missing_session(action)
        if self._mirror.pending_action:
            return self._blocked(action)

        now = self._now(current_time)
        current = self._mirror.lease.effective(now)
        if current.route == Route.INBOX:
            return ActionOutcome(action=action.value, ok=True, lease=current)

        ttl = ttl_hours if ttl_hours is not None else self.config.lock_ttl_hours
        optimistic = Lease.inbox(
            now + timedelta(hours=ttl or self.config.default_ttl_hours)
        )
        return await self._exclusive(action, optimistic, ttl, now)

    async def unlock(self, current_time: Optional[datetime] = None) -> ActionOutcome:
        """Hand the session back to the bot."""
        action = LeaseAction.UNLOCK
        if not self.session_id:
            return self._missing_session(action)
        if self._mirror.pending_action:
            return self._blocked(action)

        now = self._now(current_time)
        current = self._mirror.lease.effective(now)
        if current.route == Route.BOT:
            self._mirror.lease = current
            return ActionOutcome(action=action.value, ok=True, lease=current)

        return await self._exclusive(action, Lease.bot(), None, now)

    async def extend(
        self,
        hours: Optional[int] = None,
        current_time: Optional[datetime] = None,
    ) -> ActionOutcome:
        """Push the expiry of an active lease further out."""
        action = LeaseAction.EXTEND
        if not self.session_id:
            return self._missing_session(action)

        now = self._now(current_time)
        current = self._mirror.lease.effective(now)
        if current.route == Route.BOT:
            return ActionOutcome(action=action.value, ok=True, lease=current)

        max_hours = self.config.max_ttl_hours
        base = max(current.expiry, now)
        ceiling = now + timedelta(hours=max_hours)
        headroom = (ceiling - base).total_seconds() / 3600
        if headroom <= 0:
            # already at the ceiling
            return ActionOutcome(action=action.value, ok=True, lease=current)

        requested = hours if hours is not None else self.config.extend_hours
        hours = max(1, min(requested, max_hours, math.ceil(headroom)))
        optimistic = Lease.inbox(min(base + timedelta(hours=hours), ceiling))

        previous = self._mirror.lease
        self._mirror.error = None
        self._mirror.lease = optimistic
        try:
            data = await self.client.send_action(self.session_id, action, hours)
        except GatewayClientError as e:
            return self._rollback(action, previous, e)

        self._adopt_response(data, now)
        return ActionOutcome(
            action=action.value, ok=True, forwarded=True, lease=self._mirror.lease
        )

    async def _exclusive(
        self,
        action: LeaseAction,
        optimistic: Lease,
        ttl_hours: Optional[int],
        now: datetime,
    ) -> ActionOutcome:
        """Lock/unlock under the settle-window gate."""
        previous = self._mirror.lease.effective(now)
        self._mirror.pending_action = True
        self._mirror.settle_started_at = now
        self._mirror.error = None
        self._mirror.lease = optimistic
        try:
            try:
                data = await self.client.send_action(self.session_id, action, ttl_hours)
            except GatewayClientError as e:
                return self._rollback(action, previous, e)

            self._adopt_response(data, now)
            await self._sleep(self.config.settle_seconds)
            await self.reconcile()
            return ActionOutcome(
                action=action.value, ok=True, forwarded=True, lease=self._mirror.lease
            )
        finally:
            self._mirror.pending_action = False
            self._mirror.settle_started_at = None

    def _adopt_response(self, data: dict, now: datetime) -> None:
        """Replace the optimistic lease with what the engine answered."""
        if not isinstance(data, dict):
            return
        if "route" in data:
            lease = Lease.from_remote(data.get("route"), data.get("lock_until"), now)
        elif self._mirror.lease.route == Route.INBOX and parse_timestamp(data.get("lock_until")):
            lease = Lease.from_remote(Route.INBOX, data.get("lock_until"), now)
        else:
            return
        self._mirror.lease = lease
        self._mirror.last_known_good = lease

    def _rollback(
        self, action: LeaseAction, previous: Lease, error: GatewayClientError
    ) -> ActionOutcome:
        self._mirror.lease = previous
        self._mirror.error = error.message
        logger.warning(
            f"{action.value} failed for {self.session_id}, reverted: {error.message}"
        )
        return ActionOutcome(
            action=action.value,
            ok=False,
            forwarded=True,
            error=error.message,
            status_code=error.status_code,
            lease=previous,
        )

    def _blocked(self, action: LeaseAction) -> ActionOutcome:
        logger.debug(f"{action.value} for {self.session_id} blocked by settle window")
        return ActionOutcome(
            action=action.value,
            ok=False,
            blocked=True,
            error="Another lease change is still settling",
            lease=self._mirror.lease,
        )

    def _missing_session(self, action: LeaseAction) -> ActionOutcome:
        self._mirror.error = "Missing sessionId"
        return ActionOutcome(action=action.value, ok=False, error="Missing sessionId")

    # --- Background loop ---

    async def _wait(self, stop_event: asyncio.Event, timeout: float) -> bool:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _countdown(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            self.tick()
            if await self._wait(stop_event, self.config.countdown_interval_seconds):
                break

    async def _poll(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            if await self._wait(stop_event, self.config.poll_interval_seconds):
                break
            await self.reconcile()

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Tick the countdown every second and reconcile on the poll interval."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            await asyncio.gather(self._countdown(stop_event), self._poll(stop_event))
        finally:
            self._running = False
