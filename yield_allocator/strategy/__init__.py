"""Pool selection strategy."""
from .scorer import ScoredPool, filter_and_rank, is_eligible, risk_multiplier, select_candidates

__all__ = [
    "ScoredPool",
    "filter_and_rank",
    "is_eligible",
    "risk_multiplier",
    "select_candidates",
]
