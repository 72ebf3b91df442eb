"""In-memory position store: staging copy swapped in on success."""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ..models import NewPosition, Position, PositionPatch
from .base import apply_patch, materialize, newest_first

logger = logging.getLogger(__name__)


class InMemoryPositionStore:
    """Dict-backed store; every batch is applied to a copy first."""

    def __init__(self, positions: Iterable[Position] = ()) -> None:
        self._positions: dict[int, Position] = {p.id: p for p in positions}
        self._next_id = max(self._positions, default=0) + 1

    def list_all(self) -> list[Position]:
        return newest_first(list(self._positions.values()))

    def list_active(self) -> list[Position]:
        return [p for p in self.list_all() if p.is_active]

    def get(self, position_id: int) -> Position | None:
        return self._positions.get(position_id)

    def apply_batch(
        self,
        updates: Sequence[PositionPatch],
        closures: Sequence[PositionPatch],
        creations: Sequence[NewPosition],
    ) -> list[Position]:
        staged = dict(self._positions)
        next_id = self._next_id

        for patch in updates:
            staged[patch.position_id] = apply_patch(staged.get(patch.position_id), patch)
        for patch in closures:
            staged[patch.position_id] = apply_patch(
                staged.get(patch.position_id), patch, closing=True
            )

        created: list[Position] = []
        for new in creations:
            position = materialize(new, next_id)
            staged[next_id] = position
            created.append(position)
            next_id += 1

        self._positions = staged
        self._next_id = next_id
        logger.debug(
            "Applied batch: %d updated, %d closed, %d created",
            len(updates), len(closures), len(created),
        )
        return created
