# chatrooms/services/sweeper.py

from __future__ import annotations

import asyncio
import time
from typing import Callable, List, Optional

from chatrooms.core.logging import get_logger
from chatrooms.services.directory import RoomDirectory

logger = get_logger(__name__)


class ExpirySweeper:
    """
    Periodically evicts rooms that have been idle longer than the TTL.

    A room is idle when now - last_activity > ttl. Joins, leaves, messages
    and disconnects all touch the room, so an active room is never in range.
    Each tick emits at most one directory-changed notification no matter how
    many rooms expired together.

    Usage:
        sweeper = ExpirySweeper(directory, ttl=1800, interval=60)
        sweeper.start()      # inside a running event loop
        ...
        await sweeper.stop()
    """

    def __init__(
        self,
        directory: RoomDirectory,
        ttl: float = 30 * 60,
        interval: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = directory
        self.ttl = ttl
        self.interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    def sweep(self) -> List[str]:
        """
        Run one sweep.

        Returns:
            Ids of the rooms that were evicted
        """
        now = self._clock()
        cutoff = now - self.ttl
        evicted: List[str] = []

        for room_id, last_activity in self.directory.activity().items():
            if last_activity >= cutoff:
                continue
            try:
                if self.directory.evict(room_id, idle_before=cutoff):
                    evicted.append(room_id)
            except Exception:
                logger.exception("Failed to evict room %s", room_id)

        if evicted:
            logger.info("🧹 Sweep evicted %d room(s) idle > %ss", len(evicted), self.ttl)
            self.directory.notify_changed()
        return evicted

    async def run(self) -> None:
        """Sweep every `interval` seconds until cancelled."""
        logger.info("✓ Expiry sweeper running (ttl=%ss, every %ss)", self.ttl, self.interval)
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Sweep failed")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
