"""Online-user set fed by push deltas and a periodic authoritative snapshot."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from chat_sync.application.exceptions import RequestFailed
from chat_sync.application.ports.api import ChatApi
from chat_sync.application.ports.clock import Clock, SystemClock
from chat_sync.domain.value_objects.enums import PresenceStatus

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Poll snapshots are the baseline; push events are low-latency deltas.

    Both are applied in arrival order, last write wins per user id.
    """

    def __init__(self) -> None:
        self._online: set[int] = set()

    def current_online_set(self) -> frozenset[int]:
        return frozenset(self._online)

    def is_online(self, user_id: int) -> bool:
        return user_id in self._online

    def apply_push_event(self, user_id: int, status: PresenceStatus) -> None:
        if status == PresenceStatus.ONLINE:
            self._online.add(user_id)
        else:
            self._online.discard(user_id)

    def reconcile_full_snapshot(self, user_ids: Iterable[int]) -> None:
        snapshot = set(user_ids)
        if snapshot != self._online:
            logger.debug(
                "Presence snapshot: +%d -%d",
                len(snapshot - self._online), len(self._online - snapshot),
            )
        self._online = snapshot

    def clear(self) -> None:
        self._online.clear()


class PresencePoller:
    """Background task that pulls the online-user snapshot on a fixed interval."""

    def __init__(
        self,
        api: ChatApi,
        tracker: PresenceTracker,
        *,
        interval: float = 30.0,
        clock: Clock | None = None,
    ) -> None:
        self._api = api
        self._tracker = tracker
        self._interval = interval
        self._clock = clock or SystemClock()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="presence-poller")
        logger.info("Presence poller started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Presence poller stopped")

    async def poll_once(self) -> bool:
        try:
            online = await self._api.fetch_online_users()
        except RequestFailed as exc:
            logger.warning("Presence poll failed: %s", exc.detail)
            return False
        self._tracker.reconcile_full_snapshot(online)
        return True

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Presence poller loop error")
            await self._clock.sleep(self._interval)
