"""Pure parsing functions for DefiLlama yield pool payloads: no I/O."""
from __future__ import annotations

import logging
import math
from typing import Any

from ..models import Pool

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> float | None:
    """Coerce a numeric field; missing reads as 0, garbage as None."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_pool(raw: dict[str, Any]) -> Pool | None:
    """Parse one pool record, returning None when it is unusable.

    Example record::

        {"pool": "747c1d2a-...", "symbol": "STETH", "project": "lido",
         "chain": "Ethereum", "apy": 3.1, "tvlUsd": 1.2e10}
    """
    if not isinstance(raw, dict):
        return None

    pool_id = raw.get("pool")
    if not pool_id:
        return None

    apy = _to_float(raw.get("apy"))
    tvl = _to_float(raw.get("tvlUsd"))
    if apy is None or tvl is None:
        return None

    return Pool(
        pool_id=str(pool_id),
        symbol=str(raw.get("symbol") or ""),
        project=str(raw.get("project") or ""),
        chain=str(raw.get("chain") or ""),
        apy=apy,
        tvl_usd=tvl,
    )


def parse_pools(payload: Any) -> list[Pool]:
    """Parse a full ``/pools`` response body.

    Raises:
        ValueError: the body has no ``data`` list.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise ValueError("Malformed pool payload: missing 'data' list")

    pools: list[Pool] = []
    seen: set[str] = set()
    dropped = 0

    for raw in payload["data"]:
        pool = parse_pool(raw)
        if pool is None:
            dropped += 1
            continue
        if pool.pool_id in seen:
            continue
        seen.add(pool.pool_id)
        pools.append(pool)

    if dropped:
        logger.debug("Dropped %d unusable pool records", dropped)
    return pools
