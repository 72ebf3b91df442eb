"""Periodic runner: one cycle at a time, next wait starts when a cycle ends."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class CycleScheduler:
    """Drive an async cycle every ``interval_minutes`` until stopped."""

    def __init__(
        self,
        cycle: Callable[[], Awaitable[Any]],
        interval_minutes: float,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self._cycle = cycle
        self._interval_seconds = interval_minutes * 60
        self._stop_event = stop_event or asyncio.Event()
        self.cycles_run = 0
        self.cycles_failed = 0

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to exit; an in-flight cycle is allowed to finish."""
        self._stop_event.set()

    async def run_once(self) -> Any:
        """Run a single cycle, logging instead of raising on failure."""
        self.cycles_run += 1
        try:
            return await self._cycle()
        except Exception as e:
            self.cycles_failed += 1
            logger.error("Cycle failed: %s", e, exc_info=True)
            return None

    async def run_forever(self) -> None:
        """Run cycles until ``stop()`` is called."""
        logger.info(
            "Starting periodic cycles (every %.1f minutes)", self._interval_seconds / 60
        )
        while not self.stopped:
            await self.run_once()
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._interval_seconds
                )
            except asyncio.TimeoutError:
                continue
        logger.info("Periodic cycles stopped after %d runs", self.cycles_run)
