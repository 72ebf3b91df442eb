"""Pool eligibility filter and risk-adjusted ranking: pure functions, no I/O."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable

from ..config import ScoringConfig, StrategyConfig
from ..models import Pool

# (threshold, multiplier) tiers; only the first match applies
_APY_TIERS: tuple[tuple[float, float], ...] = ((2000.0, 0.70), (1000.0, 0.85), (500.0, 0.95))
_TVL_TIERS: tuple[tuple[float, float], ...] = ((500_000.0, 0.80), (1_000_000.0, 0.90))

SAFE_CHAIN_BONUS = 1.10
ESTABLISHED_CHAIN_BONUS = 1.05
REPUTABLE_PROJECT_BONUS = 1.15


@dataclass(frozen=True)
class ScoredPool:
    """An admissible pool with its ranking score."""

    pool: Pool
    score: float
    risk_multiplier: float


def monthly_yield(annual_yield: float) -> float:
    """Convert an annualized yield percentage to its monthly equivalent."""
    return annual_yield / 12


def is_eligible(
    pool: Pool,
    strategy: StrategyConfig,
    excluded_pool_ids: Collection[str] = (),
) -> bool:
    """Return True when ``pool`` passes every admission threshold."""
    return (
        monthly_yield(pool.apy) >= strategy.min_monthly_yield
        and pool.tvl_usd >= strategy.min_tvl_usd
        and 0 < pool.apy <= strategy.max_yearly_yield
        and pool.pool_id not in excluded_pool_ids
    )


def risk_multiplier(pool: Pool, scoring: ScoringConfig) -> float:
    """Compose the risk adjustments that apply to ``pool``."""
    multiplier = 1.0

    for threshold, factor in _APY_TIERS:
        if pool.apy > threshold:
            multiplier *= factor
            break

    for threshold, factor in _TVL_TIERS:
        if pool.tvl_usd < threshold:
            multiplier *= factor
            break

    chain = pool.chain.lower()
    if chain in scoring.safe_chains:
        multiplier *= SAFE_CHAIN_BONUS
    elif chain in scoring.established_chains:
        multiplier *= ESTABLISHED_CHAIN_BONUS

    project = pool.project.lower()
    if any(name in project for name in scoring.reputable_projects):
        multiplier *= REPUTABLE_PROJECT_BONUS

    return multiplier


def score_pool(pool: Pool, scoring: ScoringConfig) -> ScoredPool:
    """score = TVL x monthly yield x risk multiplier"""
    multiplier = risk_multiplier(pool, scoring)
    return ScoredPool(
        pool=pool,
        score=pool.tvl_usd * monthly_yield(pool.apy) * multiplier,
        risk_multiplier=multiplier,
    )


def filter_and_rank(
    pools: Iterable[Pool],
    strategy: StrategyConfig,
    scoring: ScoringConfig,
    excluded_pool_ids: Collection[str] = (),
) -> list[ScoredPool]:
    """Return admissible pools ranked by descending score.

    Pool ids already ranked are skipped, so the result never holds the same
    pool twice. Ties keep feed order.
    """
    excluded = set(excluded_pool_ids)
    ranked: list[ScoredPool] = []

    for pool in pools:
        if not is_eligible(pool, strategy, excluded):
            continue
        excluded.add(pool.pool_id)
        ranked.append(score_pool(pool, scoring))

    ranked.sort(key=lambda s: s.score, reverse=True)
    return ranked


def select_candidates(ranked: list[ScoredPool], vacancies: int) -> list[ScoredPool]:
    """Take the top ``vacancies`` candidates; fewer when the ranking runs out."""
    if vacancies <= 0:
        return []
    return ranked[:vacancies]
