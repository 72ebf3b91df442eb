"""Data models: all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class PositionStatus(str, Enum):
    FARMING = "FARMING"
    UNSTAKED = "UNSTAKED"


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (as legacy rows may carry) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Pool:
    """Snapshot of one pool from the yield feed."""

    pool_id: str
    symbol: str
    project: str
    chain: str
    apy: float
    tvl_usd: float


@dataclass(frozen=True)
class Position:
    """A simulated allocation into one pool.

    Entry fields never change after creation. Exit fields are set together
    with the switch to ``UNSTAKED`` and are never cleared.
    """

    id: int
    pool_id: str
    symbol: str
    project: str
    chain: str
    entry_apy: float
    entry_tvl: float
    current_apy: float
    current_tvl: float
    status: PositionStatus
    entry_at: datetime
    exit_at: datetime | None = None
    exit_apy: float | None = None
    exit_tvl: float | None = None
    exit_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PositionStatus.FARMING

    @property
    def end_tvl(self) -> float | None:
        """TVL at exit for closed positions, latest observed TVL otherwise."""
        if self.status == PositionStatus.UNSTAKED:
            return self.exit_tvl
        return self.current_tvl


@dataclass(frozen=True)
class NewPosition:
    """Position selected for entry, not yet persisted."""

    pool_id: str
    symbol: str
    project: str
    chain: str
    entry_apy: float
    entry_tvl: float
    entry_at: datetime

    @classmethod
    def from_pool(cls, pool: Pool, now: datetime) -> NewPosition:
        return cls(
            pool_id=pool.pool_id,
            symbol=pool.symbol,
            project=pool.project,
            chain=pool.chain,
            entry_apy=pool.apy,
            entry_tvl=pool.tvl_usd,
            entry_at=now,
        )


@dataclass(frozen=True)
class PositionPatch:
    """Change to an existing position: a refresh, or a closure when exit fields are set."""

    position_id: int
    current_apy: float
    current_tvl: float
    updated_at: datetime
    exit_at: datetime | None = None
    exit_apy: float | None = None
    exit_tvl: float | None = None
    exit_reason: str | None = None

    @property
    def is_closure(self) -> bool:
        return self.exit_at is not None

    @property
    def is_complete_closure(self) -> bool:
        return (
            self.exit_at is not None
            and self.exit_apy is not None
            and self.exit_tvl is not None
            and bool(self.exit_reason)
        )


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one reconciliation cycle."""

    status: str
    started_at: datetime
    updated: tuple[PositionPatch, ...] = ()
    closed: tuple[PositionPatch, ...] = ()
    opened: tuple[Position, ...] = ()
    reason: str = ""

    COMPLETED = "completed"
    SKIPPED = "skipped"

    @property
    def transitions(self) -> int:
        return len(self.closed) + len(self.opened)

    @classmethod
    def skipped(cls, started_at: datetime, reason: str) -> CycleResult:
        return cls(status=cls.SKIPPED, started_at=started_at, reason=reason)


@dataclass(frozen=True)
class ProfitBreakdown:
    """Derived profit figures for one position; never persisted."""

    position_id: int
    symbol: str
    chain: str
    status: PositionStatus
    gross_profit: float
    fees: float
    impermanent_loss: float
    impermanent_loss_rate: float
    net_profit: float
    roi: float
    days_in_pool: float
    total_value: float
    daily_profit: float = 0.0
    monthly_roi: float = 0.0
    annualized_roi: float = 0.0
