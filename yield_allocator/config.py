"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StrategyConfig:
    tick_interval_minutes: int = 15
    min_monthly_yield: float = 50.0
    min_tvl_usd: float = 500_000.0
    max_yearly_yield: float = 5000.0
    max_active_positions: int = 5
    exit_monthly_yield: float = 48.0
    exit_tvl_usd: float = 450_000.0


@dataclass(frozen=True)
class ScoringConfig:
    safe_chains: tuple[str, ...] = ("ethereum",)
    established_chains: tuple[str, ...] = ("bsc", "polygon", "avalanche")
    reputable_projects: tuple[str, ...] = (
        "uniswap",
        "sushiswap",
        "curve",
        "aave",
        "compound",
    )


@dataclass(frozen=True)
class FeeSchedule:
    primary_chain: str = "Ethereum"
    primary_fee: float = 10.0
    other_fee: float = 1.0

    def fee_for(self, chain: str) -> float:
        """Flat fee charged for a position on ``chain``."""
        if chain and chain.lower() == self.primary_chain.lower():
            return self.primary_fee
        return self.other_fee


@dataclass(frozen=True)
class AnalyticsConfig:
    initial_capital: float = 100_000.0
    stake_per_position: float = 20_000.0
    fees: FeeSchedule = field(default_factory=FeeSchedule)
    lookback_days: int = 365
    impermanent_loss: bool = True
    compound: bool = True


@dataclass(frozen=True)
class FeedConfig:
    url: str = "https://yields.llama.fi/pools"
    timeout_seconds: int = 30
    max_attempts: int = 3
    retry_delay_seconds: float = 5.0
    user_agent: str = "yield-allocator/0.1"


@dataclass(frozen=True)
class StorageConfig:
    path: str = "data/positions.db"


@dataclass(frozen=True)
class AppConfig:
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _as_bool(value: Any, default: bool) -> bool:
    # Interpolated env vars arrive as strings
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_strategy(raw: dict[str, Any]) -> StrategyConfig:
    d = StrategyConfig()
    return StrategyConfig(
        tick_interval_minutes=int(raw.get("tick_interval_minutes", d.tick_interval_minutes)),
        min_monthly_yield=float(raw.get("min_monthly_yield", d.min_monthly_yield)),
        min_tvl_usd=float(raw.get("min_tvl_usd", d.min_tvl_usd)),
        max_yearly_yield=float(raw.get("max_yearly_yield", d.max_yearly_yield)),
        max_active_positions=int(raw.get("max_active_positions", d.max_active_positions)),
        exit_monthly_yield=float(raw.get("exit_monthly_yield", d.exit_monthly_yield)),
        exit_tvl_usd=float(raw.get("exit_tvl_usd", d.exit_tvl_usd)),
    )


def _build_scoring(raw: dict[str, Any]) -> ScoringConfig:
    d = ScoringConfig()
    return ScoringConfig(
        safe_chains=tuple(c.lower() for c in raw.get("safe_chains", d.safe_chains)),
        established_chains=tuple(
            c.lower() for c in raw.get("established_chains", d.established_chains)
        ),
        reputable_projects=tuple(
            p.lower() for p in raw.get("reputable_projects", d.reputable_projects)
        ),
    )


def _build_analytics(raw: dict[str, Any]) -> AnalyticsConfig:
    d = AnalyticsConfig()
    fees_raw = raw.get("fees", {})
    return AnalyticsConfig(
        initial_capital=float(raw.get("initial_capital", d.initial_capital)),
        stake_per_position=float(raw.get("stake_per_position", d.stake_per_position)),
        fees=FeeSchedule(
            primary_chain=fees_raw.get("primary_chain", FeeSchedule.primary_chain),
            primary_fee=float(fees_raw.get("primary_fee", FeeSchedule.primary_fee)),
            other_fee=float(fees_raw.get("other_fee", FeeSchedule.other_fee)),
        ),
        lookback_days=int(raw.get("lookback_days", d.lookback_days) or 0),
        impermanent_loss=_as_bool(raw.get("impermanent_loss"), d.impermanent_loss),
        compound=_as_bool(raw.get("compound"), d.compound),
    )


def _build_feed(raw: dict[str, Any]) -> FeedConfig:
    return FeedConfig(
        url=raw.get("url") or FeedConfig.url,
        timeout_seconds=int(raw.get("timeout_seconds", FeedConfig.timeout_seconds)),
        max_attempts=int(raw.get("max_attempts", FeedConfig.max_attempts)),
        retry_delay_seconds=float(
            raw.get("retry_delay_seconds", FeedConfig.retry_delay_seconds)
        ),
        user_agent=raw.get("user_agent") or FeedConfig.user_agent,
    )


def _build_storage(raw: dict[str, Any]) -> StorageConfig:
    return StorageConfig(path=raw.get("path") or StorageConfig.path)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        strategy=_build_strategy(raw.get("strategy", {})),
        scoring=_build_scoring(raw.get("scoring", {})),
        analytics=_build_analytics(raw.get("analytics", {})),
        feed=_build_feed(raw.get("feed", {})),
        storage=_build_storage(raw.get("storage", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    s = cfg.strategy
    if s.max_active_positions < 1:
        raise ValueError("max_active_positions must be at least 1")
    if s.tick_interval_minutes < 1:
        raise ValueError("tick_interval_minutes must be at least 1")
    if s.max_yearly_yield <= 0:
        raise ValueError("max_yearly_yield must be positive")
    if s.min_monthly_yield < 0 or s.min_tvl_usd < 0:
        raise ValueError("Admission thresholds must not be negative")
    if s.exit_monthly_yield > s.min_monthly_yield:
        raise ValueError(
            "exit_monthly_yield must not exceed min_monthly_yield "
            f"({s.exit_monthly_yield} > {s.min_monthly_yield})"
        )
    if s.exit_tvl_usd > s.min_tvl_usd:
        raise ValueError(
            f"exit_tvl_usd must not exceed min_tvl_usd ({s.exit_tvl_usd} > {s.min_tvl_usd})"
        )

    a = cfg.analytics
    if a.initial_capital <= 0:
        raise ValueError("initial_capital must be positive")
    if a.stake_per_position <= 0:
        raise ValueError("stake_per_position must be positive")
    if a.lookback_days < 0:
        raise ValueError("lookback_days must not be negative")

    if cfg.feed.max_attempts < 1:
        raise ValueError("feed max_attempts must be at least 1")
    if not cfg.feed.url:
        raise ValueError("feed url is required")
