"""Pool feed clients."""
from .defillama import DefiLlamaFeed

__all__ = ["DefiLlamaFeed"]
