"""
CoverService - Resolves game covers through the bounded cover cache.

Responsibilities:
- Serve covers from the cache without touching the network
- Resolve unknown titles through the lookup provider with linear backoff
- Record failed and empty lookups as negative results so they are not retried
- Accept manual cover overrides
- Warm the cache for many titles with bounded parallelism
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional

from ..cache.cover_cache import CoverCache
from ..config import MAX_FETCH_ATTEMPTS, RETRY_DELAY
from ..errors import LookupFailed, LookupRateLimited
from ..sources.base import LookupProvider

logger = logging.getLogger(__name__)


class CoverService:
    """Service for looking up and caching cover URLs."""

    def __init__(self, provider: Optional[LookupProvider], cache: CoverCache,
                 max_attempts: int = MAX_FETCH_ATTEMPTS, retry_delay: float = RETRY_DELAY):
        """Initialize CoverService with a lookup provider and the process-wide cache.

        Args:
            provider: LookupProvider used on cache misses (None disables lookups)
            cache: CoverCache shared by every consumer in the process
            max_attempts: Lookup attempts on transient failures
            retry_delay: Backoff unit; attempt N waits N * retry_delay
        """
        self.provider = provider
        self.cache = cache
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._in_flight: Dict[str, asyncio.Task] = {}

    def get_cached_cover(self, title: str) -> Optional[str]:
        """Cached cover for ``title``; never triggers a lookup."""
        return self.cache.get(title)

    async def get_cover(self, title: str) -> Optional[str]:
        """Cover URL for ``title``, resolving it on a cache miss.

        Returns None when the title has no cover (now or from an earlier lookup).
        """
        if title in self.cache or self.cache.has_been_fetched(title):
            return self.cache.get(title)

        if not self.provider:
            return None

        task = self._in_flight.get(title)
        if task is None:
            task = asyncio.create_task(self._resolve_and_store(title))
            self._in_flight[title] = task
            task.add_done_callback(lambda _t, key=title: self._in_flight.pop(key, None))
        return await asyncio.shield(task)

    async def _resolve_and_store(self, title: str) -> Optional[str]:
        url = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                url = await self.provider.resolve(title)
                break
            except LookupRateLimited as e:
                if attempt < self.max_attempts:
                    logger.debug(f"Cover lookup for '{title}' rate limited, retry {attempt}: {e}")
                    await asyncio.sleep(self.retry_delay * attempt)
                    continue
                logger.warning(f"Giving up on cover for '{title}' after {attempt} attempts: {e}")
            except LookupFailed as e:
                logger.warning(f"Cover lookup failed for '{title}': {e}")
                break

        self.cache.set(title, url)
        self.cache.mark_fetched(title)
        if url:
            logger.debug(f"Cached cover for '{title}'")
        return self.cache.get(title)

    def set_manual_cover(self, title: str, url: Optional[str]):
        """Override the cover for ``title``; automatic lookups will not replace it."""
        self.cache.set(title, url, manual=True)
        logger.info(f"Manual cover set for '{title}'")

    async def prefetch(self, titles: Iterable[str], concurrency: int = 5) -> int:
        """Resolve covers for ``titles`` with bounded parallelism.

        Returns:
            Number of titles that have a cover afterwards
        """
        unique = list(dict.fromkeys(titles))
        semaphore = asyncio.Semaphore(concurrency)

        async def limited_lookup(title):
            async with semaphore:
                return await self.get_cover(title)

        results = await asyncio.gather(*[limited_lookup(t) for t in unique], return_exceptions=True)
        for title, result in zip(unique, results):
            if isinstance(result, Exception):
                logger.error(f"Error prefetching cover for '{title}': {result}")
        found = sum(1 for r in results if isinstance(r, str) and r)
        logger.info(f"Cover prefetch complete: {found}/{len(unique)} found")
        return found
