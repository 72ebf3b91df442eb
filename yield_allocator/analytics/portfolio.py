"""Portfolio-level aggregation over the position history: no I/O."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

from ..config import AnalyticsConfig
from ..models import Position, PositionStatus, ProfitBreakdown, as_utc
from .profit import compute_profit
from .risk import sharpe_ratio


@dataclass(frozen=True)
class ChainStats:
    count: int = 0
    total_profit: float = 0.0
    total_value: float = 0.0
    total_fees: float = 0.0
    total_il: float = 0.0
    avg_roi: float = 0.0


@dataclass(frozen=True)
class PortfolioStats:
    """Aggregates shown on the report cards.

    ``total_roi`` is measured on gross profit and ``total_net_roi`` on net
    profit; the report displays them on different cards.
    """

    active_positions: int = 0
    closed_positions: int = 0
    total_positions: int = 0
    active_total_profit: float = 0.0
    closed_total_profit: float = 0.0
    total_gross_profit: float = 0.0
    total_fees: float = 0.0
    total_il: float = 0.0
    total_net_profit: float = 0.0
    total_value: float = 0.0
    total_roi: float = 0.0
    total_net_roi: float = 0.0
    chain_stats: dict[str, ChainStats] = field(default_factory=dict)
    best_position: ProfitBreakdown | None = None
    worst_position: ProfitBreakdown | None = None
    avg_holding_days: float = 0.0
    total_days: int = 0
    avg_daily_roi: float = 0.0
    sharpe_ratio: float = 0.0
    total_switches: int = 0
    breakdowns: tuple[ProfitBreakdown, ...] = ()


@dataclass(frozen=True)
class HodlComparison:
    hodl_value: float
    strategy_value: float
    difference: float
    outperformance: float
    total_days: int
    daily_outperformance: float


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def filter_by_lookback(
    positions: Iterable[Position],
    lookback_days: int,
    now: datetime | None = None,
) -> list[Position]:
    """Keep positions entered within the last ``lookback_days`` (0 keeps all)."""
    positions = list(positions)
    if not lookback_days:
        return positions
    cutoff = as_utc(_now(now)) - timedelta(days=lookback_days)
    return [p for p in positions if as_utc(p.entry_at) >= cutoff]


def total_days(positions: list[Position], now: datetime | None = None) -> int:
    """Whole days from the first entry to the last exit (or now)."""
    if not positions:
        return 0
    current = as_utc(_now(now))
    start = min(as_utc(p.entry_at) for p in positions)
    end = max(as_utc(p.exit_at) if p.exit_at else current for p in positions)
    return max(math.floor((end - start).total_seconds() / 86400), 0)


def avg_holding_days(positions: Iterable[Position]) -> float:
    """Mean whole-day holding period of closed positions."""
    closed = [p for p in positions if p.status == PositionStatus.UNSTAKED and p.exit_at]
    if not closed:
        return 0.0
    days = [
        math.floor((as_utc(p.exit_at) - as_utc(p.entry_at)).total_seconds() / 86400)
        for p in closed
    ]
    return sum(days) / len(closed)


def chain_stats(
    breakdowns: Iterable[ProfitBreakdown], stake: float
) -> dict[str, ChainStats]:
    """Group breakdowns by chain; avg ROI is profit over the capital staked there."""
    totals: dict[str, dict[str, float]] = {}
    for b in breakdowns:
        t = totals.setdefault(
            b.chain, {"count": 0, "profit": 0.0, "value": 0.0, "fees": 0.0, "il": 0.0}
        )
        t["count"] += 1
        t["profit"] += b.net_profit
        t["value"] += b.total_value
        t["fees"] += b.fees
        t["il"] += b.impermanent_loss

    return {
        chain: ChainStats(
            count=int(t["count"]),
            total_profit=t["profit"],
            total_value=t["value"],
            total_fees=t["fees"],
            total_il=t["il"],
            avg_roi=t["profit"] / (t["count"] * stake) * 100 if stake > 0 else 0.0,
        )
        for chain, t in totals.items()
    }


def compute_portfolio_stats(
    positions: Iterable[Position],
    config: AnalyticsConfig,
    now: datetime | None = None,
) -> PortfolioStats:
    """Aggregate profit and performance over the lookback window."""
    now = _now(now)
    window = filter_by_lookback(positions, config.lookback_days, now)
    if not window:
        return PortfolioStats(total_value=config.initial_capital)

    active = [p for p in window if p.status == PositionStatus.FARMING]
    closed = [p for p in window if p.status == PositionStatus.UNSTAKED]

    active_profits = [compute_profit(p, config, now) for p in active]
    closed_profits = [compute_profit(p, config, now) for p in closed]
    everything = active_profits + closed_profits

    total_gross = sum(b.gross_profit for b in everything)
    total_net = sum(b.net_profit for b in everything)
    capital = config.initial_capital
    total_roi = total_gross / capital * 100
    days = total_days(window, now)

    return PortfolioStats(
        active_positions=len(active),
        closed_positions=len(closed),
        total_positions=len(window),
        active_total_profit=sum(b.net_profit for b in active_profits),
        closed_total_profit=sum(b.net_profit for b in closed_profits),
        total_gross_profit=total_gross,
        total_fees=sum(b.fees for b in everything),
        total_il=sum(b.impermanent_loss for b in everything),
        total_net_profit=total_net,
        total_value=capital + total_net,
        total_roi=total_roi,
        total_net_roi=total_net / capital * 100,
        chain_stats=chain_stats(everything, config.stake_per_position),
        best_position=max(everything, key=lambda b: b.roi),
        worst_position=min(everything, key=lambda b: b.roi),
        avg_holding_days=avg_holding_days(window),
        total_days=days,
        avg_daily_roi=total_roi / days if days > 0 else 0.0,
        sharpe_ratio=sharpe_ratio([b.roi for b in everything]),
        total_switches=len(closed),
        breakdowns=tuple(everything),
    )


def compute_hodl_comparison(
    positions: Iterable[Position],
    config: AnalyticsConfig,
    now: datetime | None = None,
) -> HodlComparison:
    """Compare the strategy against holding the initial capital idle."""
    positions = list(positions)
    now = _now(now)
    stats = compute_portfolio_stats(positions, config, now)
    window = filter_by_lookback(positions, config.lookback_days, now)
    days = total_days(window, now)

    hodl = config.initial_capital
    difference = stats.total_value - hodl
    outperformance = difference / hodl * 100
    return HodlComparison(
        hodl_value=hodl,
        strategy_value=stats.total_value,
        difference=difference,
        outperformance=outperformance,
        total_days=days,
        daily_outperformance=outperformance / days if days > 0 else 0.0,
    )
