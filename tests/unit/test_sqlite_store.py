"""Unit tests for the SQLite position store."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from yield_allocator.exceptions import PersistenceError
from yield_allocator.models import NewPosition, PositionPatch, PositionStatus
from yield_allocator.storage import SqlitePositionStore


@pytest.fixture()
def store(tmp_path: Path) -> SqlitePositionStore:
    db = SqlitePositionStore(str(tmp_path / "data" / "positions.db"))
    db.initialize()
    return db


def _open(store: SqlitePositionStore, make_pool, now: datetime, *pool_ids: str) -> list:
    creations = [
        NewPosition.from_pool(make_pool(pool_id=pid), now - timedelta(days=i))
        for i, pid in enumerate(pool_ids)
    ]
    return store.apply_batch([], [], creations)


class TestInitialize:
    def test_creates_directory_and_table(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "positions.db"
        SqlitePositionStore(str(path)).initialize()

        conn = sqlite3.connect(path)
        try:
            tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master")}
        finally:
            conn.close()
        assert "positions" in tables

    def test_idempotent(self, store: SqlitePositionStore) -> None:
        store.initialize()
        assert store.list_all() == []


class TestRoundTrip:
    def test_created_positions_are_listed(
        self, store: SqlitePositionStore, make_pool, now: datetime
    ) -> None:
        created = _open(store, make_pool, now, "pool-a", "pool-b")

        assert [p.id for p in created] == [1, 2]
        listed = store.list_all()
        assert [p.pool_id for p in listed] == ["pool-a", "pool-b"]
        assert listed[0].entry_at == now
        assert listed[0].status == PositionStatus.FARMING
        assert listed[0] == created[0]

    def test_closure_persists_exit_fields(
        self, store: SqlitePositionStore, make_pool, now: datetime
    ) -> None:
        [position] = _open(store, make_pool, now, "pool-a")
        later = now + timedelta(hours=6)
        store.apply_batch(
            [],
            [
                PositionPatch(
                    position_id=position.id, current_apy=900.0, current_tvl=400_000,
                    updated_at=later, exit_at=later, exit_apy=900.0, exit_tvl=400_000,
                    exit_reason="TVL dropped to 400,000",
                )
            ],
            [],
        )

        [closed] = store.list_all()
        assert closed.status == PositionStatus.UNSTAKED
        assert closed.exit_at == later
        assert closed.exit_tvl == 400_000
        assert closed.current_tvl == 400_000
        assert closed.entry_tvl == position.entry_tvl
        assert store.list_active() == []


class TestAtomicity:
    def test_rejected_patch_rolls_back_whole_batch(
        self, store: SqlitePositionStore, make_pool, now: datetime
    ) -> None:
        [position] = _open(store, make_pool, now, "pool-a")
        refresh = PositionPatch(
            position_id=position.id, current_apy=1.0, current_tvl=1.0, updated_at=now
        )
        unknown = PositionPatch(
            position_id=999, current_apy=1.0, current_tvl=1.0, updated_at=now,
            exit_at=now, exit_apy=1.0, exit_tvl=1.0, exit_reason="Pool removed",
        )

        with pytest.raises(PersistenceError):
            store.apply_batch(
                [refresh], [unknown], [NewPosition.from_pool(make_pool(pool_id="pool-b"), now)]
            )

        [unchanged] = store.list_all()
        assert unchanged == position

    def test_sqlite_errors_are_wrapped(self, tmp_path: Path, make_pool, now: datetime) -> None:
        missing_table = SqlitePositionStore(str(tmp_path / "empty.db"))
        with pytest.raises(PersistenceError, match="Failed to read"):
            missing_table.list_all()
        with pytest.raises(PersistenceError, match="Failed to apply"):
            missing_table.apply_batch([], [], [NewPosition.from_pool(make_pool(), now)])
