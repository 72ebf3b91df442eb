"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest

from yield_allocator.config import AnalyticsConfig, ScoringConfig, StrategyConfig
from yield_allocator.exceptions import FeedUnavailableError
from yield_allocator.models import Pool, Position, PositionStatus

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def strategy() -> StrategyConfig:
    return StrategyConfig()


@pytest.fixture()
def scoring() -> ScoringConfig:
    return ScoringConfig()


@pytest.fixture()
def analytics_config() -> AnalyticsConfig:
    return AnalyticsConfig()


@pytest.fixture()
def now() -> datetime:
    return NOW


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


def build_pool(
    pool_id: str = "pool-1",
    apy: float = 720.0,
    tvl_usd: float = 2_000_000.0,
    symbol: str = "ETH-USDC",
    project: str = "uniswap-v3",
    chain: str = "Ethereum",
) -> Pool:
    return Pool(
        pool_id=pool_id, symbol=symbol, project=project, chain=chain, apy=apy, tvl_usd=tvl_usd
    )


def build_position(
    position_id: int = 1,
    pool_id: str = "pool-1",
    entry_apy: float = 720.0,
    entry_tvl: float = 2_000_000.0,
    current_apy: float | None = None,
    current_tvl: float | None = None,
    status: PositionStatus = PositionStatus.FARMING,
    entry_at: datetime = NOW - timedelta(days=10),
    exit_at: datetime | None = None,
    exit_apy: float | None = None,
    exit_tvl: float | None = None,
    exit_reason: str | None = None,
    symbol: str = "ETH-USDC",
    chain: str = "Ethereum",
    project: str = "uniswap-v3",
) -> Position:
    return Position(
        id=position_id,
        pool_id=pool_id,
        symbol=symbol,
        project=project,
        chain=chain,
        entry_apy=entry_apy,
        entry_tvl=entry_tvl,
        current_apy=entry_apy if current_apy is None else current_apy,
        current_tvl=entry_tvl if current_tvl is None else current_tvl,
        status=status,
        entry_at=entry_at,
        exit_at=exit_at,
        exit_apy=exit_apy,
        exit_tvl=exit_tvl,
        exit_reason=exit_reason,
        created_at=entry_at,
        updated_at=entry_at,
    )


def build_closed_position(
    position_id: int = 1,
    days: float = 10,
    entry_apy: float = 365.0,
    entry_tvl: float = 1_000_000.0,
    exit_tvl: float | None = None,
    entry_at: datetime = NOW - timedelta(days=30),
    **kwargs,
) -> Position:
    exit_tvl = entry_tvl if exit_tvl is None else exit_tvl
    return build_position(
        position_id=position_id,
        pool_id=kwargs.pop("pool_id", f"pool-{position_id}"),
        entry_apy=entry_apy,
        entry_tvl=entry_tvl,
        current_apy=entry_apy,
        current_tvl=exit_tvl,
        status=PositionStatus.UNSTAKED,
        entry_at=entry_at,
        exit_at=entry_at + timedelta(days=days),
        exit_apy=entry_apy,
        exit_tvl=exit_tvl,
        exit_reason="Pool removed",
        **kwargs,
    )


@pytest.fixture()
def make_pool() -> Callable[..., Pool]:
    return build_pool


@pytest.fixture()
def make_position() -> Callable[..., Position]:
    return build_position


@pytest.fixture()
def make_closed_position() -> Callable[..., Position]:
    return build_closed_position


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeFeed:
    """PoolFeed double returning a canned pool list or raising."""

    def __init__(self, pools: list[Pool] | None = None, error: Exception | None = None) -> None:
        self.pools = pools or []
        self.error = error
        self.calls = 0

    async def fetch_pools(self) -> list[Pool]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.pools)


@pytest.fixture()
def fake_feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture()
def unavailable_feed() -> FakeFeed:
    return FakeFeed(error=FeedUnavailableError("All 3 attempts to fetch pools failed"))


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    strategy:
      tick_interval_minutes: 10
      min_monthly_yield: 40
      min_tvl_usd: 750000
      max_yearly_yield: 3000
      max_active_positions: 3
      exit_monthly_yield: 35
      exit_tvl_usd: 600000
    scoring:
      safe_chains: [Ethereum, Arbitrum]
      established_chains: [BSC]
      reputable_projects: [Curve]
    analytics:
      initial_capital: 50000
      stake_per_position: 10000
      lookback_days: 0
      impermanent_loss: false
      compound: "${COMPOUND_FLAG}"
      fees:
        primary_chain: Ethereum
        primary_fee: 15
        other_fee: 2
    feed:
      url: "https://yields.example.com/pools"
      timeout_seconds: 10
      max_attempts: 2
      retry_delay_seconds: 0.5
    storage:
      path: "${TEST_DB_PATH}"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


@pytest.fixture()
def make_feed() -> Callable[..., FakeFeed]:
    return FakeFeed
