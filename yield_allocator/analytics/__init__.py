"""Profit, portfolio and risk analytics over the position history."""
from .breakdowns import (
    chain_distribution,
    correlation_analysis,
    pool_roi_data,
    portfolio_growth,
    seasonality,
    timeline,
)
from .portfolio import compute_hodl_comparison, compute_portfolio_stats
from .profit import compute_profit
from .risk import compute_risk_metrics, compute_volatility_analysis

__all__ = [
    "chain_distribution",
    "compute_hodl_comparison",
    "compute_portfolio_stats",
    "compute_profit",
    "compute_risk_metrics",
    "compute_volatility_analysis",
    "correlation_analysis",
    "pool_roi_data",
    "portfolio_growth",
    "seasonality",
    "timeline",
]
