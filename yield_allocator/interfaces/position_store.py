"""Position store protocol: durable position history."""
from typing import Protocol, Sequence

from ..models import NewPosition, Position, PositionPatch


class PositionStore(Protocol):
    """Abstract interface for reading and writing positions.

    ``apply_batch`` is all-or-nothing and raises ``PersistenceError`` on failure.
    """

    def list_active(self) -> list[Position]: ...

    def list_all(self) -> list[Position]: ...

    def apply_batch(
        self,
        updates: Sequence[PositionPatch],
        closures: Sequence[PositionPatch],
        creations: Sequence[NewPosition],
    ) -> list[Position]: ...
