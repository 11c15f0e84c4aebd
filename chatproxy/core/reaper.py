"""
Periodic garbage collection for the quota store.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from chatproxy.core.clock import now_ms
from chatproxy.core.config import QuotaLimits
from chatproxy.core.store import QuotaStore

logger = logging.getLogger(__name__)


class Reaper:
    """
    Sweeps the store on a fixed interval, pruning timestamps older than the
    retention window and evicting users with nothing left who have been idle
    past the inactivity threshold.
    """

    def __init__(
        self,
        store: QuotaStore,
        limits: QuotaLimits,
        interval_seconds: float = 3600,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.limits = limits
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self, now: Optional[int] = None) -> int:
        now = self.clock() if now is None else now
        removed = 0
        for key in self.store.keys():
            if self.store.evict_if_idle(key, now, self.limits.retention_ms, self.limits.idle_ms):
                removed += 1
        logger.info("Removed %d inactive users. Active: %d", removed, len(self.store))
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sweep()
            except Exception:
                logger.exception("Quota sweep failed")

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="quota_reaper")
        logger.info("Reaper started, interval %ss", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reaper stopped")
