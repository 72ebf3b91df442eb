"""Integration tests for the periodic cycle runner."""
from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from yield_allocator.config import ScoringConfig, StrategyConfig
from yield_allocator.services import CycleScheduler, LifecycleManager
from yield_allocator.storage import InMemoryPositionStore


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_returns_cycle_result(self) -> None:
        async def cycle() -> str:
            return "done"

        scheduler = CycleScheduler(cycle, interval_minutes=15)
        assert await scheduler.run_once() == "done"
        assert scheduler.cycles_run == 1
        assert scheduler.cycles_failed == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        async def cycle() -> None:
            raise RuntimeError("boom")

        scheduler = CycleScheduler(cycle, interval_minutes=15)
        assert await scheduler.run_once() is None
        assert scheduler.cycles_failed == 1
        assert "Cycle failed: boom" in caplog.text


class TestRunForever:
    @pytest.mark.asyncio
    async def test_keeps_running_after_failures_until_stopped(self) -> None:
        calls: list[int] = []
        scheduler: CycleScheduler

        async def cycle() -> None:
            calls.append(len(calls))
            if len(calls) == 1:
                raise RuntimeError("transient")
            if len(calls) == 3:
                scheduler.stop()

        scheduler = CycleScheduler(cycle, interval_minutes=0)
        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert len(calls) == 3
        assert scheduler.cycles_failed == 1
        assert scheduler.stopped

    @pytest.mark.asyncio
    async def test_cycles_never_overlap(self) -> None:
        running = 0
        peak = 0
        scheduler: CycleScheduler

        async def cycle() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            if scheduler.cycles_run >= 3:
                scheduler.stop()

        scheduler = CycleScheduler(cycle, interval_minutes=0)
        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert peak == 1

    @pytest.mark.asyncio
    async def test_stop_before_start_runs_nothing(self) -> None:
        event = asyncio.Event()
        event.set()
        calls = 0

        async def cycle() -> None:
            nonlocal calls
            calls += 1

        await CycleScheduler(cycle, interval_minutes=15, stop_event=event).run_forever()
        assert calls == 0

    @pytest.mark.asyncio
    async def test_drives_lifecycle_manager(
        self, make_feed, make_pool, now: datetime
    ) -> None:
        store = InMemoryPositionStore()
        manager = LifecycleManager(
            StrategyConfig(), ScoringConfig(), make_feed([make_pool()]), store
        )
        scheduler = CycleScheduler(manager.run_cycle, interval_minutes=15)

        result = await scheduler.run_once()

        assert result.status == "completed"
        assert len(store.list_active()) == 1
