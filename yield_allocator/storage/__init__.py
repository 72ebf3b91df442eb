"""Position store implementations."""
from .memory import InMemoryPositionStore
from .sqlite import SqlitePositionStore

__all__ = ["InMemoryPositionStore", "SqlitePositionStore"]
