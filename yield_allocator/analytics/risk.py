"""Risk statistics over per-position returns: no I/O."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

import numpy as np

from ..config import AnalyticsConfig
from ..models import Position, as_utc
from .profit import compute_profit

# Spreads below this are treated as zero volatility
_EPSILON = 1e-12


@dataclass(frozen=True)
class RiskMetrics:
    """Return and risk figures; returns are ROI percentages per position."""

    mean: float = 0.0
    variance: float = 0.0
    std_dev: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown: float = 0.0
    volatility: float = 0.0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0


@dataclass(frozen=True)
class VolatilityAnalysis:
    volatility: float = 0.0
    risk_level: str = "Low"
    avg_return: float = 0.0
    variance: float = 0.0


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def variance(values: Sequence[float]) -> float:
    """Population variance; 0 for an empty or constant series."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0 or np.ptp(arr) == 0:
        return 0.0
    return float(np.var(arr))


def sharpe_ratio(returns: Sequence[float]) -> float:
    """Mean over standard deviation with a zero risk-free rate."""
    std = float(np.sqrt(variance(returns)))
    if std < _EPSILON:
        return 0.0
    return mean(returns) / std


def downside_deviation(returns: Sequence[float]) -> float:
    """Root mean square of the negative returns only."""
    arr = np.asarray(returns, dtype=np.float64)
    downside = arr[arr < 0]
    if downside.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(downside**2)))


def sortino_ratio(returns: Sequence[float]) -> float:
    downside = downside_deviation(returns)
    if downside < _EPSILON:
        return 0.0
    return mean(returns) / downside


def max_drawdown(returns_pct: Iterable[float]) -> float:
    """Largest fractional fall from a peak of the compounded return series.

    The peak is taken over the series itself, so a loss on the very first
    position does not count as a drawdown.
    """
    returns = np.fromiter(returns_pct, dtype=np.float64)
    if returns.size == 0:
        return 0.0

    equity = np.cumprod(1 + returns / 100)
    running_max = np.maximum.accumulate(equity)
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdowns = (running_max - equity) / running_max
    drawdowns = np.where(np.isfinite(drawdowns) & (running_max > 0), drawdowns, 0.0)
    return max(0.0, float(np.max(drawdowns)))


def _chronological(positions: Iterable[Position]) -> list[Position]:
    return sorted(positions, key=lambda p: (as_utc(p.entry_at), p.id))


def compute_risk_metrics(
    positions: Iterable[Position],
    config: AnalyticsConfig,
    now: datetime | None = None,
) -> RiskMetrics:
    """Sharpe, Sortino, drawdown and win/loss statistics over the history."""
    now = now or datetime.now(timezone.utc)
    breakdowns = [compute_profit(p, config, now) for p in _chronological(positions)]
    if not breakdowns:
        return RiskMetrics()

    returns = [b.roi for b in breakdowns]
    var = variance(returns)
    std = float(np.sqrt(var))

    wins = [b.net_profit for b in breakdowns if b.net_profit > 0]
    losses = [b.net_profit for b in breakdowns if b.net_profit <= 0]

    return RiskMetrics(
        mean=mean(returns),
        variance=var,
        std_dev=std,
        sharpe_ratio=sharpe_ratio(returns),
        sortino_ratio=sortino_ratio(returns),
        max_drawdown=max_drawdown(returns),
        volatility=std,
        win_rate=len(wins) / len(breakdowns),
        avg_win=mean(wins),
        avg_loss=abs(mean(losses)),
    )


def compute_volatility_analysis(
    positions: Iterable[Position],
    config: AnalyticsConfig,
    now: datetime | None = None,
) -> VolatilityAnalysis:
    """Classify the spread of position returns as Low / Medium / High risk."""
    now = now or datetime.now(timezone.utc)
    returns = [compute_profit(p, config, now).roi for p in positions]
    if len(returns) < 2:
        return VolatilityAnalysis()

    var = variance(returns)
    volatility = float(np.sqrt(var))
    if volatility > 50:
        level = "High"
    elif volatility > 25:
        level = "Medium"
    else:
        level = "Low"

    return VolatilityAnalysis(
        volatility=volatility,
        risk_level=level,
        avg_return=mean(returns),
        variance=var,
    )
