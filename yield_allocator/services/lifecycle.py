"""Position lifecycle: one reconciliation of held positions against the pool feed."""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from ..config import ScoringConfig, StrategyConfig
from ..exceptions import FeedUnavailableError, PersistenceError, ReconciliationError
from ..interfaces.pool_feed import PoolFeed
from ..interfaces.position_store import PositionStore
from ..models import CycleResult, NewPosition, Pool, Position, PositionPatch
from ..strategy.scorer import filter_and_rank, monthly_yield, select_candidates

logger = logging.getLogger(__name__)

POOL_REMOVED = "Pool removed"


@dataclass(frozen=True)
class Decision:
    """Everything one cycle wants to write, applied as a single batch."""

    updates: tuple[PositionPatch, ...] = ()
    closures: tuple[PositionPatch, ...] = ()
    creations: tuple[NewPosition, ...] = ()
    surviving_pool_ids: tuple[str, ...] = ()


def _close(
    position: Position,
    now: datetime,
    exit_apy: float,
    exit_tvl: float,
    reason: str,
) -> PositionPatch:
    # Current values freeze at the exit values
    return PositionPatch(
        position_id=position.id,
        current_apy=exit_apy,
        current_tvl=exit_tvl,
        updated_at=now,
        exit_at=now,
        exit_apy=exit_apy,
        exit_tvl=exit_tvl,
        exit_reason=reason,
    )


class LifecycleManager:
    """Keeps a bounded set of FARMING positions in step with the pool feed."""

    def __init__(
        self,
        strategy: StrategyConfig,
        scoring: ScoringConfig,
        feed: PoolFeed,
        store: PositionStore,
    ) -> None:
        self._strategy = strategy
        self._scoring = scoring
        self._feed = feed
        self._store = store

    # ------------------------------------------------------------------
    # Decisioning
    # ------------------------------------------------------------------

    def _exit_reason(self, pool: Pool) -> str | None:
        """Return why a held position on ``pool`` must close, or None to keep it."""
        monthly = monthly_yield(pool.apy)
        if monthly < self._strategy.exit_monthly_yield:
            return f"APR dropped to {monthly:.1f}%/month"
        if pool.tvl_usd < self._strategy.exit_tvl_usd:
            return f"TVL dropped to {pool.tvl_usd:,.0f}"
        return None

    def reconcile(
        self,
        pools: Iterable[Pool],
        positions: Iterable[Position],
        now: datetime,
    ) -> Decision:
        """Decide which active positions to refresh, close and open.

        Closed positions in ``positions`` are history and are never touched.
        """
        pools = list(pools)
        by_id: dict[str, Pool] = {}
        for pool in pools:
            by_id.setdefault(pool.pool_id, pool)

        updates: list[PositionPatch] = []
        closures: list[PositionPatch] = []
        surviving: list[str] = []

        for position in positions:
            if not position.is_active:
                continue

            pool = by_id.get(position.pool_id)
            if pool is None:
                closures.append(
                    _close(
                        position, now,
                        exit_apy=position.current_apy,
                        exit_tvl=position.current_tvl,
                        reason=POOL_REMOVED,
                    )
                )
                continue

            reason = self._exit_reason(pool)
            if reason is not None:
                closures.append(
                    _close(position, now, exit_apy=pool.apy, exit_tvl=pool.tvl_usd, reason=reason)
                )
                continue

            updates.append(
                PositionPatch(
                    position_id=position.id,
                    current_apy=pool.apy,
                    current_tvl=pool.tvl_usd,
                    updated_at=now,
                )
            )
            surviving.append(position.pool_id)

        creations: list[NewPosition] = []
        vacancies = self._strategy.max_active_positions - len(surviving)
        if vacancies > 0:
            ranked = filter_and_rank(pools, self._strategy, self._scoring, surviving)
            creations = [
                NewPosition.from_pool(candidate.pool, now)
                for candidate in select_candidates(ranked, vacancies)
            ]
            if len(creations) < vacancies:
                logger.info(
                    "Only %d eligible pools for %d vacancies", len(creations), vacancies
                )

        decision = Decision(
            updates=tuple(updates),
            closures=tuple(closures),
            creations=tuple(creations),
            surviving_pool_ids=tuple(surviving),
        )
        self._check_invariants(decision)
        return decision

    def _check_invariants(self, decision: Decision) -> None:
        """Raise ReconciliationError when the decision would break position invariants."""
        capacity = self._strategy.max_active_positions
        active_after = len(decision.surviving_pool_ids) + len(decision.creations)

        if decision.creations and active_after > capacity:
            raise ReconciliationError(
                f"Cycle would hold {active_after} active positions (capacity {capacity})"
            )
        if active_after > capacity:
            logger.warning(
                "%d active positions exceed capacity %d; no new entries until they close",
                active_after, capacity,
            )

        pool_ids = list(decision.surviving_pool_ids) + [c.pool_id for c in decision.creations]
        duplicates = [pid for pid, count in Counter(pool_ids).items() if count > 1]
        if duplicates:
            raise ReconciliationError(
                f"Cycle would hold duplicate active pools: {', '.join(sorted(duplicates))}"
            )

        touched = [p.position_id for p in decision.updates + decision.closures]
        if len(touched) != len(set(touched)):
            raise ReconciliationError("A position is both refreshed and closed in one cycle")

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self, now: datetime | None = None) -> CycleResult:
        """Run one fetch → decide → persist cycle.

        A feed outage skips the cycle without writing anything. Invariant and
        persistence failures are raised; nothing is applied in either case.
        """
        started = now or datetime.now(timezone.utc)
        logger.info("Reconciliation cycle started at %s", started.isoformat())

        try:
            pools = await self._feed.fetch_pools()
        except FeedUnavailableError as e:
            logger.warning("Pool feed unavailable, skipping cycle: %s", e)
            return CycleResult.skipped(started, str(e))

        if not pools:
            logger.warning("No pools data available, skipping cycle")
            return CycleResult.skipped(started, "Pool feed returned no pools")

        logger.info("Processing %d pools", len(pools))
        # Store calls are blocking; keep them off the event loop
        positions = await asyncio.to_thread(self._store.list_all)

        try:
            decision = self.reconcile(pools, positions, started)
        except ReconciliationError as e:
            logger.error("Reconciliation aborted before persisting: %s", e)
            raise

        try:
            opened = await asyncio.to_thread(
                self._store.apply_batch,
                decision.updates,
                decision.closures,
                decision.creations,
            )
        except PersistenceError as e:
            logger.error("Failed to persist cycle outcome, nothing applied: %s", e)
            raise

        for patch in decision.closures:
            logger.info("Closed position %s: %s", patch.position_id, patch.exit_reason)
        for position in opened:
            logger.info(
                "Opened position %s in %s (%s · %s) at %.2f%% APY, TVL $%.0f",
                position.id, position.symbol, position.project, position.chain,
                position.entry_apy, position.entry_tvl,
            )
        logger.info(
            "Cycle completed: %d active, %d closed, %d new",
            len(decision.updates), len(decision.closures), len(opened),
        )

        return CycleResult(
            status=CycleResult.COMPLETED,
            started_at=started,
            updated=decision.updates,
            closed=decision.closures,
            opened=tuple(opened),
        )
