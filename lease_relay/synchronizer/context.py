"""
Lease Synchronizer: one per UI context.

Owns the mirror cache and the per-session synchronizers of a single view
(a browser tab, an operator console). Sessions are independent of each
other; nothing is shared across contexts.
"""

import asyncio
from typing import Dict, List, Optional

from loguru import logger

from lease_relay.models.synchronizer import SynchronizerConfig
from lease_relay.session_ids import normalize_session_id
from lease_relay.synchronizer.cache import MirrorCache
from lease_relay.synchronizer.client import GatewayClient
from lease_relay.synchronizer.session import Clock, SessionLeaseSynchronizer, Sleep


class LeaseSynchronizer:
    def __init__(
        self,
        client: GatewayClient,
        config: Optional[SynchronizerConfig] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.client = client
        self.config = config or SynchronizerConfig()
        self.cache = MirrorCache()
        self._clock = clock
        self._sleep = sleep
        self._sessions: Dict[str, SessionLeaseSynchronizer] = {}
        self._stops: Dict[str, asyncio.Event] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def open_sessions(self) -> List[str]:
        return list(self._sessions)

    def session(self, session_id: str) -> Optional[SessionLeaseSynchronizer]:
        return self._sessions.get(normalize_session_id(session_id))

    async def open_session(
        self, raw_session_id, background: bool = False
    ) -> SessionLeaseSynchronizer:
        """
        Mount a session: read its authoritative state and, with
        ``background=True``, start its countdown and polling loop.
        """
        session_id = normalize_session_id(raw_session_id)
        existing = self._sessions.get(session_id)
        if existing is not None:
            return existing

        sync = SessionLeaseSynchronizer(
            session_id,
            self.client,
            config=self.config,
            cache=self.cache,
            clock=self._clock,
            sleep=self._sleep,
        )
        if not session_id:
            return sync

        self._sessions[session_id] = sync
        await sync.open()
        if background:
            stop = asyncio.Event()
            self._stops[session_id] = stop
            self._tasks[session_id] = asyncio.create_task(sync.run_async(stop))
        logger.debug(f"Opened session {session_id}")
        return sync

    async def close_session(self, session_id: str) -> bool:
        """Unmount a session and drop its cached mirror."""
        session_id = normalize_session_id(session_id)
        sync = self._sessions.pop(session_id, None)
        if sync is None:
            return False

        stop = self._stops.pop(session_id, None)
        task = self._tasks.pop(session_id, None)
        if stop is not None:
            stop.set()
        if task is not None:
            await task
        self.cache.discard(session_id)
        return True

    async def on_focus(self) -> None:
        """Window regained focus: reconcile every open session."""
        await asyncio.gather(*(s.on_focus() for s in self._sessions.values()))

    async def close(self) -> None:
        for session_id in list(self._sessions):
            await self.close_session(session_id)
        self.cache.clear()
