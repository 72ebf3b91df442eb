"""SQLite position store: one transaction per batch."""
from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime
from typing import Any, Sequence

from ..exceptions import PersistenceError, YieldAllocatorError
from ..models import NewPosition, Position, PositionPatch, PositionStatus
from .base import apply_patch, materialize

logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS positions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        pool_id TEXT NOT NULL,
        symbol TEXT NOT NULL,
        project TEXT NOT NULL,
        chain TEXT NOT NULL,
        entry_apy REAL NOT NULL,
        entry_tvl REAL NOT NULL,
        current_apy REAL NOT NULL,
        current_tvl REAL NOT NULL,
        status TEXT NOT NULL,
        entry_at TEXT NOT NULL,
        exit_at TEXT,
        exit_apy REAL,
        exit_tvl REAL,
        exit_reason TEXT,
        created_at TEXT,
        updated_at TEXT
    )
"""

_COLUMNS = (
    "id", "pool_id", "symbol", "project", "chain", "entry_apy", "entry_tvl",
    "current_apy", "current_tvl", "status", "entry_at", "exit_at", "exit_apy",
    "exit_tvl", "exit_reason", "created_at", "updated_at",
)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_position(row: sqlite3.Row) -> Position:
    return Position(
        id=row["id"],
        pool_id=row["pool_id"],
        symbol=row["symbol"],
        project=row["project"],
        chain=row["chain"],
        entry_apy=row["entry_apy"],
        entry_tvl=row["entry_tvl"],
        current_apy=row["current_apy"],
        current_tvl=row["current_tvl"],
        status=PositionStatus(row["status"]),
        entry_at=_parse_ts(row["entry_at"]),
        exit_at=_parse_ts(row["exit_at"]),
        exit_apy=row["exit_apy"],
        exit_tvl=row["exit_tvl"],
        exit_reason=row["exit_reason"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _position_values(p: Position) -> dict[str, Any]:
    return {
        "id": p.id,
        "pool_id": p.pool_id,
        "symbol": p.symbol,
        "project": p.project,
        "chain": p.chain,
        "entry_apy": p.entry_apy,
        "entry_tvl": p.entry_tvl,
        "current_apy": p.current_apy,
        "current_tvl": p.current_tvl,
        "status": p.status.value,
        "entry_at": _ts(p.entry_at),
        "exit_at": _ts(p.exit_at),
        "exit_apy": p.exit_apy,
        "exit_tvl": p.exit_tvl,
        "exit_reason": p.exit_reason,
        "created_at": _ts(p.created_at),
        "updated_at": _ts(p.updated_at),
    }


class SqlitePositionStore:
    """Durable position history in a single SQLite file."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the positions table if it does not exist."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        conn = self._connect()
        try:
            with conn:
                conn.execute(_SCHEMA)
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_positions_status ON positions (status)"
                )
        finally:
            conn.close()
        logger.info("Position store ready at %s", self.db_path)

    def _select(self, where: str = "", params: tuple[Any, ...] = ()) -> list[Position]:
        query = f"SELECT * FROM positions {where} ORDER BY entry_at DESC, id DESC"
        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read positions: {e}") from e
        finally:
            conn.close()
        return [_row_to_position(row) for row in rows]

    def list_all(self) -> list[Position]:
        return self._select()

    def list_active(self) -> list[Position]:
        return self._select("WHERE status = ?", (PositionStatus.FARMING.value,))

    def apply_batch(
        self,
        updates: Sequence[PositionPatch],
        closures: Sequence[PositionPatch],
        creations: Sequence[NewPosition],
    ) -> list[Position]:
        conn = self._connect()
        created: list[Position] = []
        try:
            with conn:
                for patch in updates:
                    self._write_patch(conn, patch, closing=False)
                for patch in closures:
                    self._write_patch(conn, patch, closing=True)
                for new in creations:
                    created.append(self._insert(conn, new))
        except YieldAllocatorError:
            raise
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to apply position batch: {e}") from e
        finally:
            conn.close()

        logger.debug(
            "Committed batch: %d updated, %d closed, %d created",
            len(updates), len(closures), len(created),
        )
        return created

    @staticmethod
    def _write_patch(conn: sqlite3.Connection, patch: PositionPatch, closing: bool) -> None:
        row = conn.execute(
            "SELECT * FROM positions WHERE id = ?", (patch.position_id,)
        ).fetchone()
        current = _row_to_position(row) if row is not None else None
        patched = apply_patch(current, patch, closing=closing)

        values = _position_values(patched)
        assignments = ", ".join(f"{col} = :{col}" for col in _COLUMNS if col != "id")
        conn.execute(f"UPDATE positions SET {assignments} WHERE id = :id", values)

    @staticmethod
    def _insert(conn: sqlite3.Connection, new: NewPosition) -> Position:
        draft = materialize(new, position_id=0)
        values = _position_values(draft)
        del values["id"]
        columns = ", ".join(values)
        placeholders = ", ".join(f":{col}" for col in values)
        cursor = conn.execute(
            f"INSERT INTO positions ({columns}) VALUES ({placeholders})", values
        )
        return materialize(new, position_id=cursor.lastrowid)
