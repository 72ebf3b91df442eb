"""Per-position profit breakdown with an impermanent-loss approximation: no I/O."""
from __future__ import annotations

import math
from datetime import datetime, timezone

import numpy as np

from ..config import AnalyticsConfig
from ..models import Position, ProfitBreakdown, as_utc

# (price-change multiple, IL fraction) for a 50/50 constant-product pool
IL_TABLE: tuple[tuple[float, float], ...] = (
    (1.0, 0.000),
    (1.25, 0.006),
    (1.5, 0.020),
    (2.0, 0.057),
    (3.0, 0.134),
    (5.0, 0.255),
    (10.0, 0.425),
    (50.0, 0.717),
    (100.0, 0.800),
)

_IL_MULTIPLES = np.array([m for m, _ in IL_TABLE])
_IL_FRACTIONS = np.array([il for _, il in IL_TABLE])

# Positions auto-exit before IL grows past this
MAX_IL_FRACTION = 0.06

HOURS_PER_BUCKET = 6
DAYS_PER_BUCKET = 0.25


def interpolate_il(multiple: float) -> float:
    """Linearly interpolate the IL table; multiples outside it clamp to the ends."""
    return float(np.interp(multiple, _IL_MULTIPLES, _IL_FRACTIONS))


def price_change_multiple(entry_tvl: float | None, end_tvl: float | None) -> float:
    """TVL ratio as a symmetric price-divergence proxy (always >= 1)."""
    if not entry_tvl or not end_tvl or entry_tvl <= 0 or end_tvl <= 0:
        return 1.0
    ratio = end_tvl / entry_tvl
    return max(ratio, 1 / ratio)


def raw_il(entry_tvl: float | None, end_tvl: float | None) -> float:
    """Uncapped IL fraction; 0 when either TVL is missing or zero."""
    return interpolate_il(price_change_multiple(entry_tvl, end_tvl))


def approximate_il(entry_tvl: float | None, end_tvl: float | None) -> float:
    """IL fraction estimated from TVL change, capped at ``MAX_IL_FRACTION``.

    This is a heuristic: TVL also moves with deposits and withdrawals, not
    only with price divergence.
    """
    return min(raw_il(entry_tvl, end_tvl), MAX_IL_FRACTION)


def days_in_pool(position: Position, now: datetime | None = None) -> float:
    """Elapsed days quantized to 6-hour buckets (0.25 day each)."""
    end = position.exit_at or now or datetime.now(timezone.utc)
    hours = (as_utc(end) - as_utc(position.entry_at)).total_seconds() / 3600
    if hours <= 0:
        return 0.0
    return math.floor(hours / HOURS_PER_BUCKET) * DAYS_PER_BUCKET


def gross_profit(stake: float, entry_apy: float, days: float, compound: bool = True) -> float:
    """Yield earned on ``stake`` over ``days`` at ``entry_apy`` percent per year."""
    daily_rate = entry_apy / 365 / 100
    if compound:
        return stake * (1 + daily_rate) ** days - stake
    return stake * daily_rate * days


def compute_profit(
    position: Position,
    config: AnalyticsConfig,
    now: datetime | None = None,
) -> ProfitBreakdown:
    """Break down the profit of one position.

    net = gross - flat fee - IL; ROI and total value are relative to the
    fixed per-position stake.
    """
    stake = config.stake_per_position
    days = days_in_pool(position, now)

    gross = gross_profit(stake, position.entry_apy, days, compound=config.compound)
    fees = config.fees.fee_for(position.chain)

    il_rate = 0.0
    if config.impermanent_loss:
        il_rate = approximate_il(position.entry_tvl, position.end_tvl)
    il_amount = stake * il_rate

    net = gross - fees - il_amount
    roi = net / stake * 100
    day_divisor = max(days, 1)

    return ProfitBreakdown(
        position_id=position.id,
        symbol=position.symbol,
        chain=position.chain,
        status=position.status,
        gross_profit=gross,
        fees=fees,
        impermanent_loss=il_amount,
        impermanent_loss_rate=il_rate * 100,
        net_profit=net,
        roi=roi,
        days_in_pool=days,
        total_value=stake + net,
        daily_profit=gross / day_divisor,
        monthly_roi=roi * 30 / day_divisor,
        annualized_roi=roi * 365 / day_divisor,
    )
