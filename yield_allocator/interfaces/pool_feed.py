"""Pool feed protocol: yield-aggregator abstraction."""
from typing import Protocol

from ..models import Pool


class PoolFeed(Protocol):
    """Abstract interface for fetching the current pool universe."""

    async def fetch_pools(self) -> list[Pool]: ...
