"""Unit tests for the in-memory position store."""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from yield_allocator.exceptions import PersistenceError
from yield_allocator.models import NewPosition, PositionPatch, PositionStatus
from yield_allocator.storage import InMemoryPositionStore


def _refresh(position_id: int, now: datetime, apy: float = 700.0) -> PositionPatch:
    return PositionPatch(
        position_id=position_id, current_apy=apy, current_tvl=1_900_000, updated_at=now
    )


def _closure(position_id: int, now: datetime) -> PositionPatch:
    return PositionPatch(
        position_id=position_id, current_apy=480.0, current_tvl=1_800_000, updated_at=now,
        exit_at=now, exit_apy=480.0, exit_tvl=1_800_000, exit_reason="APR dropped to 40.0%/month",
    )


class TestListing:
    def test_newest_first(self, make_position, now: datetime) -> None:
        older = make_position(position_id=1, entry_at=now - timedelta(days=5))
        newer = make_position(position_id=2, pool_id="pool-2", entry_at=now - timedelta(days=1))
        store = InMemoryPositionStore([older, newer])
        assert [p.id for p in store.list_all()] == [2, 1]

    def test_newest_first_with_naive_and_aware_entries(
        self, make_position, now: datetime
    ) -> None:
        legacy = make_position(
            position_id=1, entry_at=(now - timedelta(days=1)).replace(tzinfo=None)
        )
        aware = make_position(position_id=2, pool_id="pool-2", entry_at=now - timedelta(days=3))
        store = InMemoryPositionStore([aware, legacy])
        assert [p.id for p in store.list_all()] == [1, 2]

    def test_list_active_skips_closed(self, make_position, make_closed_position) -> None:
        store = InMemoryPositionStore([make_position(position_id=1), make_closed_position(position_id=2)])
        assert [p.id for p in store.list_active()] == [1]


class TestApplyBatch:
    def test_refresh_closure_and_creation(self, make_position, make_pool, now: datetime) -> None:
        store = InMemoryPositionStore(
            [make_position(position_id=1), make_position(position_id=2, pool_id="pool-2")]
        )
        created = store.apply_batch(
            [_refresh(1, now)],
            [_closure(2, now)],
            [NewPosition.from_pool(make_pool(pool_id="pool-3"), now)],
        )

        refreshed = store.get(1)
        assert refreshed.current_apy == 700.0
        assert refreshed.entry_apy == 720.0

        closed = store.get(2)
        assert closed.status == PositionStatus.UNSTAKED
        assert closed.exit_reason == "APR dropped to 40.0%/month"
        assert closed.current_apy == closed.exit_apy == 480.0

        assert [p.id for p in created] == [3]
        assert created[0].status == PositionStatus.FARMING
        assert created[0].current_apy == created[0].entry_apy
        assert store.get(3) == created[0]

    def test_closed_positions_are_read_only(
        self, make_closed_position, now: datetime
    ) -> None:
        store = InMemoryPositionStore([make_closed_position(position_id=1)])
        with pytest.raises(PersistenceError, match="read-only"):
            store.apply_batch([_refresh(1, now)], [], [])

    def test_unknown_id_rejected(self, now: datetime) -> None:
        with pytest.raises(PersistenceError, match="Unknown position"):
            InMemoryPositionStore().apply_batch([], [_closure(9, now)], [])

    def test_incomplete_closure_rejected(self, make_position, now: datetime) -> None:
        store = InMemoryPositionStore([make_position(position_id=1)])
        patch = PositionPatch(
            position_id=1, current_apy=1.0, current_tvl=1.0, updated_at=now, exit_at=now
        )
        with pytest.raises(PersistenceError, match="missing exit fields"):
            store.apply_batch([], [patch], [])

    def test_failed_batch_applies_nothing(self, make_position, make_pool, now: datetime) -> None:
        store = InMemoryPositionStore([make_position(position_id=1)])
        before = store.list_all()

        with pytest.raises(PersistenceError):
            store.apply_batch(
                [_refresh(1, now)],
                [_closure(42, now)],
                [NewPosition.from_pool(make_pool(pool_id="pool-3"), now)],
            )

        assert store.list_all() == before
        created = store.apply_batch([], [], [NewPosition.from_pool(make_pool(pool_id="x"), now)])
        assert created[0].id == 2
