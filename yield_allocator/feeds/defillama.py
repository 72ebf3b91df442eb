"""DefiLlama yields client with fixed-delay retries."""
from __future__ import annotations

import asyncio
import logging
import ssl

import aiohttp
import certifi

from ..config import FeedConfig
from ..exceptions import FeedUnavailableError
from ..models import Pool
from .parser import parse_pools

logger = logging.getLogger(__name__)


class DefiLlamaFeed:
    """Fetch the pool universe from the DefiLlama yields API."""

    def __init__(self, config: FeedConfig) -> None:
        self.url = config.url
        self.timeout = config.timeout_seconds
        self.max_attempts = config.max_attempts
        self.retry_delay = config.retry_delay_seconds
        self.headers = {
            "User-Agent": config.user_agent,
            "Accept": "application/json",
        }

    async def _fetch_once(self) -> list[Pool]:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(
                self.url,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    raise RuntimeError(f"Pool feed returned HTTP {response.status}")
                data = await response.json()
                return parse_pools(data)

    async def fetch_pools(self) -> list[Pool]:
        """Fetch and parse all pools.

        Raises:
            FeedUnavailableError: every attempt failed.
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                pools = await self._fetch_once()
                logger.info(
                    "Fetched %d pools from %s (attempt %d)", len(pools), self.url, attempt
                )
                return pools
            except Exception as e:
                last_error = e
                logger.warning(
                    "Pool feed attempt %d/%d failed: %s", attempt, self.max_attempts, e
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay)

        raise FeedUnavailableError(
            f"All {self.max_attempts} attempts to fetch pools failed. Last error: {last_error}"
        )
