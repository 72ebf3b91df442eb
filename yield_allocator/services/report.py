"""Plain-text performance report assembled from the analytics engine."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from ..analytics import (
    compute_hodl_comparison,
    compute_portfolio_stats,
    compute_risk_metrics,
    compute_volatility_analysis,
    correlation_analysis,
)
from ..analytics.breakdowns import status_counts
from ..config import AnalyticsConfig
from ..models import Position


def build_report(
    positions: Iterable[Position],
    config: AnalyticsConfig,
    now: datetime | None = None,
) -> str:
    """Summarize portfolio, risk and per-chain figures as a multi-line string."""
    positions = list(positions)
    now = now or datetime.now(timezone.utc)

    stats = compute_portfolio_stats(positions, config, now)
    risk = compute_risk_metrics(positions, config, now)
    volatility = compute_volatility_analysis(positions, config, now)
    hodl = compute_hodl_comparison(positions, config, now)
    correlation = correlation_analysis(positions, now)
    counts = status_counts(positions)

    lines = [
        "Yield Allocation Report",
        "",
        f"Positions: {stats.total_positions} "
        f"({stats.active_positions} farming · {stats.closed_positions} unstaked)",
        f"History: {counts['FARMING']} farming · {counts['UNSTAKED']} unstaked overall",
        f"Portfolio value: ${stats.total_value:,.2f}",
        f"Gross profit: ${stats.total_gross_profit:,.2f} · ROI {stats.total_roi:.2f}%",
        f"Net profit: ${stats.total_net_profit:,.2f} · ROI {stats.total_net_roi:.2f}%",
        f"Fees: ${stats.total_fees:,.2f} · Impermanent loss: ${stats.total_il:,.2f}",
        f"Avg holding: {stats.avg_holding_days:.1f} days · Switches: {stats.total_switches}",
        f"vs HODL: {hodl.outperformance:+.2f}% over {hodl.total_days} days",
        "",
        f"Sharpe: {risk.sharpe_ratio:.2f} · Sortino: {risk.sortino_ratio:.2f}",
        f"Max drawdown: {risk.max_drawdown * 100:.2f}% · Win rate: {risk.win_rate * 100:.1f}%",
        f"Volatility: {volatility.volatility:.2f} ({volatility.risk_level})",
        f"Correlation: {correlation.correlation:.2f} ({correlation.analysis}, approximate)",
    ]

    if stats.best_position is not None and stats.worst_position is not None:
        lines.append(
            f"Best: {stats.best_position.symbol} {stats.best_position.roi:.2f}% · "
            f"Worst: {stats.worst_position.symbol} {stats.worst_position.roi:.2f}%"
        )

    if stats.chain_stats:
        lines.append("")
        for chain, cs in sorted(stats.chain_stats.items()):
            lines.append(
                f"  {chain}: {cs.count} positions · ${cs.total_profit:,.2f} · "
                f"avg ROI {cs.avg_roi:.2f}%"
            )

    lines.extend(["", f"{now.strftime('%Y-%m-%d %H:%M')} UTC"])
    return "\n".join(lines)
