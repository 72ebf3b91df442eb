"""Grouping utilities for report charts: chains, seasonality, correlation."""
from __future__ import annotations

import math
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

import numpy as np

from ..config import AnalyticsConfig
from ..models import Position, PositionStatus, as_utc
from .portfolio import PortfolioStats
from .profit import compute_profit

MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# Half-width of the uniform noise added to synthesized daily returns
DAILY_NOISE = 0.01
MIN_SERIES_DAYS = 7


@dataclass(frozen=True)
class MonthBucket:
    month: int
    month_name: str
    count: int
    avg_profit: float
    avg_roi: float


@dataclass(frozen=True)
class Seasonality:
    months: tuple[MonthBucket, ...] = ()
    best_month: MonthBucket | None = None
    worst_month: MonthBucket | None = None

    @property
    def has_seasonality(self) -> bool:
        return len(self.months) > 1


@dataclass(frozen=True)
class PairCorrelation:
    pool1: str
    pool2: str
    correlation: float


@dataclass(frozen=True)
class CorrelationAnalysis:
    """Pairwise correlation of synthesized daily returns.

    Illustrative only: the series are built from entry APR plus seeded
    noise, not from observed returns.
    """

    correlation: float = 0.0
    analysis: str = "Insufficient data"
    explanation: str = ""
    pairs: tuple[PairCorrelation, ...] = field(default_factory=tuple)
    approximate: bool = True


def _now(now: datetime | None) -> datetime:
    return as_utc(now or datetime.now(timezone.utc))


def chain_distribution(stats: PortfolioStats) -> list[dict]:
    """Flatten per-chain aggregates for a distribution chart."""
    return [
        {
            "chain": chain,
            "count": cs.count,
            "total_value": cs.total_value,
            "total_profit": cs.total_profit,
            "avg_roi": cs.avg_roi,
        }
        for chain, cs in stats.chain_stats.items()
    ]


def pool_roi_data(
    positions: Iterable[Position], config: AnalyticsConfig, now: datetime | None = None
) -> list[dict]:
    now = _now(now)
    rows = []
    for p in positions:
        b = compute_profit(p, config, now)
        rows.append(
            {
                "pool": p.symbol,
                "chain": p.chain,
                "roi": b.roi,
                "profit": b.net_profit,
                "days": b.days_in_pool,
                "status": p.status.value,
            }
        )
    return rows


def timeline(
    positions: Iterable[Position], config: AnalyticsConfig, now: datetime | None = None
) -> list[dict]:
    """Entry/exit events ordered by entry time."""
    now = _now(now)
    rows = []
    for p in sorted(positions, key=lambda p: as_utc(p.entry_at)):
        b = compute_profit(p, config, now)
        rows.append(
            {
                "id": p.id,
                "pool": p.symbol,
                "chain": p.chain,
                "entry_at": p.entry_at,
                "exit_at": p.exit_at,
                "status": p.status.value,
                "profit": b.net_profit,
                "roi": b.roi,
                "days": b.days_in_pool,
            }
        )
    return rows


def portfolio_growth(
    positions: Iterable[Position], config: AnalyticsConfig, now: datetime | None = None
) -> list[dict]:
    """Running portfolio value, adding each position's net profit in entry order."""
    now = _now(now)
    value = config.initial_capital
    points = []
    for p in sorted(positions, key=lambda p: as_utc(p.entry_at)):
        b = compute_profit(p, config, now)
        value += b.net_profit
        points.append(
            {
                "date": as_utc(p.entry_at).date().isoformat(),
                "value": value,
                "profit": b.net_profit,
                "pool": p.symbol,
            }
        )
    return points


def seasonality(
    positions: Iterable[Position], config: AnalyticsConfig, now: datetime | None = None
) -> Seasonality:
    """Average profit and ROI grouped by calendar month of entry."""
    now = _now(now)
    buckets: dict[int, list[float]] = {}
    for p in positions:
        b = compute_profit(p, config, now)
        month = as_utc(p.entry_at).month - 1
        count_profit_roi = buckets.setdefault(month, [0, 0.0, 0.0])
        count_profit_roi[0] += 1
        count_profit_roi[1] += b.net_profit
        count_profit_roi[2] += b.roi

    months = tuple(
        MonthBucket(
            month=month,
            month_name=MONTH_NAMES[month],
            count=int(count),
            avg_profit=profit / count,
            avg_roi=roi / count,
        )
        for month, (count, profit, roi) in sorted(buckets.items())
    )
    if not months:
        return Seasonality()

    return Seasonality(
        months=months,
        best_month=max(months, key=lambda m: m.avg_roi),
        worst_month=min(months, key=lambda m: m.avg_roi),
    )


def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation; 0 for mismatched, empty or constant series."""
    a = np.asarray(x, dtype=np.float64)
    b = np.asarray(y, dtype=np.float64)
    if a.size < 2 or a.size != b.size:
        return 0.0
    if np.ptp(a) == 0 or np.ptp(b) == 0:
        return 0.0

    value = float(np.corrcoef(a, b)[0, 1])
    return value if np.isfinite(value) else 0.0


def _seed(positions: Sequence[Position]) -> int:
    key = "|".join(f"{p.id}:{p.pool_id}:{as_utc(p.entry_at).isoformat()}" for p in positions)
    return zlib.crc32(key.encode("utf-8"))


def synthesize_daily_returns(
    positions: Sequence[Position], now: datetime | None = None
) -> list[tuple[Position, np.ndarray]]:
    """Build a noisy daily-return series per position over its holding days.

    The noise generator is seeded from the positions themselves, so the same
    history always yields the same series.
    """
    if not positions:
        return []

    now = _now(now)
    rng = np.random.default_rng(_seed(positions))
    start = min(as_utc(p.entry_at) for p in positions)
    end = max(as_utc(p.exit_at) if p.exit_at else now for p in positions)
    total = max(math.floor((end - start).total_seconds() / 86400), 0)
    days = [start + timedelta(days=i) for i in range(total + 1)]

    series = []
    for p in positions:
        entry = as_utc(p.entry_at)
        exit_ = as_utc(p.exit_at) if p.exit_at else now
        held = sum(1 for d in days if entry <= d <= exit_)
        if held < MIN_SERIES_DAYS:
            continue
        noise = rng.uniform(-DAILY_NOISE, DAILY_NOISE, size=held)
        series.append((p, p.entry_apy / 365 + noise))
    return series


def correlation_analysis(
    positions: Iterable[Position], now: datetime | None = None
) -> CorrelationAnalysis:
    """Average pairwise correlation across synthesized per-pool daily returns."""
    positions = sorted(positions, key=lambda p: (as_utc(p.entry_at), p.id))
    if len(positions) < 2:
        return CorrelationAnalysis(
            explanation="Need at least 2 positions for correlation analysis"
        )

    series = synthesize_daily_returns(positions, now)
    if len(series) < 2:
        return CorrelationAnalysis(
            explanation="Need overlapping time periods for correlation analysis"
        )

    pairs = []
    for i, (left, left_returns) in enumerate(series):
        for right, right_returns in series[i + 1:]:
            length = min(len(left_returns), len(right_returns))
            pairs.append(
                PairCorrelation(
                    pool1=left.symbol,
                    pool2=right.symbol,
                    correlation=pearson(left_returns[:length], right_returns[:length]),
                )
            )

    average = float(np.mean([p.correlation for p in pairs])) if pairs else 0.0
    if average > 0.5:
        label = "High correlation"
    elif average > 0.2:
        label = "Medium correlation"
    else:
        label = "Low correlation"

    return CorrelationAnalysis(
        correlation=average,
        analysis=label,
        explanation=(
            f"Analyzed {len(pairs)} pool pairs over {len(series[0][1])} time periods"
        ),
        pairs=tuple(pairs),
    )


def status_counts(positions: Iterable[Position]) -> dict[str, int]:
    counts = {status.value: 0 for status in PositionStatus}
    for p in positions:
        counts[p.status.value] += 1
    return counts
