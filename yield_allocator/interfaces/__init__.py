"""Protocol interfaces for the yield allocator."""
from .pool_feed import PoolFeed
from .position_store import PositionStore

__all__ = ["PoolFeed", "PositionStore"]
