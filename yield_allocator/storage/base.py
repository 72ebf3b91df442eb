"""Pure helpers shared by the store implementations: no I/O."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from ..exceptions import PersistenceError
from ..models import NewPosition, Position, PositionPatch, PositionStatus, as_utc


def apply_patch(
    position: Position | None, patch: PositionPatch, closing: bool = False
) -> Position:
    """Return ``position`` with ``patch`` applied.

    Raises:
        PersistenceError: unknown or already closed position, a refresh that
            carries exit fields, or an incomplete closure.
    """
    if position is None:
        raise PersistenceError(f"Unknown position id {patch.position_id}")
    if not position.is_active:
        raise PersistenceError(
            f"Position {position.id} is {position.status.value}; closed positions are read-only"
        )

    if not closing:
        if patch.is_closure:
            raise PersistenceError(
                f"Refresh for position {position.id} must not carry exit fields"
            )
        return replace(
            position,
            current_apy=patch.current_apy,
            current_tvl=patch.current_tvl,
            updated_at=patch.updated_at,
        )

    if not patch.is_complete_closure:
        raise PersistenceError(f"Closure for position {position.id} is missing exit fields")

    return replace(
        position,
        status=PositionStatus.UNSTAKED,
        current_apy=patch.current_apy,
        current_tvl=patch.current_tvl,
        exit_at=patch.exit_at,
        exit_apy=patch.exit_apy,
        exit_tvl=patch.exit_tvl,
        exit_reason=patch.exit_reason,
        updated_at=patch.updated_at,
    )


def materialize(new: NewPosition, position_id: int, now: datetime | None = None) -> Position:
    """Turn a pending entry into a FARMING position record."""
    stamp = now or new.entry_at
    return Position(
        id=position_id,
        pool_id=new.pool_id,
        symbol=new.symbol,
        project=new.project,
        chain=new.chain,
        entry_apy=new.entry_apy,
        entry_tvl=new.entry_tvl,
        current_apy=new.entry_apy,
        current_tvl=new.entry_tvl,
        status=PositionStatus.FARMING,
        entry_at=new.entry_at,
        created_at=stamp,
        updated_at=stamp,
    )


def newest_first(positions: list[Position]) -> list[Position]:
    return sorted(positions, key=lambda p: (as_utc(p.entry_at), p.id), reverse=True)
