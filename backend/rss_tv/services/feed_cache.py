"""
In-memory feed cache.

Keys are fingerprints of the canonical feed URL, values are immutable
CacheEntry records. Upstream fetches are single-flight per fingerprint:
concurrent callers for the same URL share one in-flight task.

The entry map is only touched from the event loop thread, and never across
an await, so no lock is needed around it.
"""

import asyncio
import hashlib
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from rss_tv.exceptions import UpstreamFetchError
from rss_tv.services.rss_fetcher import ParsedFeed

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 24

FetchAndParse = Callable[[str], Awaitable[ParsedFeed]]


def fingerprint(url: str) -> str:
    """
    Fixed-length cache key for a URL.

    SHA-256 truncated to 24 hex chars. Not a security boundary, it only
    keeps keys fixed-size and free of caller-controlled characters.
    """
    return hashlib.sha256(str(url).encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    fetched_at_ms: int
    feed: ParsedFeed


class FeedCache:
    """
    TTL cache in front of a fetch+parse callable.

    Args:
        fetch_and_parse: async callable url -> ParsedFeed
        ttl_ms: freshness window; 0 disables caching
        max_entries: LRU bound on stored feeds
        max_stale_ms: how long past the TTL an entry may still be served
            when its (non-forced) refresh fails; 0 disables stale serving
        clock: epoch-millisecond clock, injectable for tests
    """

    def __init__(
        self,
        fetch_and_parse: FetchAndParse,
        ttl_ms: int = 5 * 60 * 1000,
        max_entries: int = 256,
        max_stale_ms: int = 0,
        clock: Callable[[], int] = _now_ms,
    ):
        if ttl_ms < 0:
            raise ValueError("ttl_ms must be >= 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._fetch_and_parse = fetch_and_parse
        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self.max_stale_ms = max_stale_ms
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._in_flight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def peek(self, url: str) -> Optional[CacheEntry]:
        """Return the stored entry for a URL without touching LRU order."""
        return self._entries.get(fingerprint(url))

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.fetched_at_ms < self.ttl_ms

    def _is_servable_stale(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.fetched_at_ms < self.ttl_ms + self.max_stale_ms

    async def get(self, url: str, force_refresh: bool = False) -> ParsedFeed:
        """
        Return the parsed feed for a URL, fetching only when needed.

        Args:
            url: Canonical feed URL
            force_refresh: Skip the freshness check and fetch upstream

        Returns:
            ParsedFeed

        Raises:
            UpstreamFetchError: When the upstream fetch fails and no stale
                copy may be served. A failed refresh never removes the
                previously cached entry.
        """
        key = fingerprint(url)
        existing = self._entries.get(key)

        if not force_refresh and existing is not None and self.is_fresh(existing):
            self._entries.move_to_end(key)
            logger.debug(f"Cache hit for {url}")
            return existing.feed

        task = self._in_flight.get(key)
        if task is None:
            logger.debug(f"Cache miss for {url} (force={force_refresh})")
            task = asyncio.ensure_future(self._fetch(key, url))
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._fetch_done(k, t))
        else:
            logger.debug(f"Joining in-flight fetch for {url}")

        try:
            # Shielded: a caller going away must not cancel the shared fetch
            return await asyncio.shield(task)
        except UpstreamFetchError as e:
            stale = self._entries.get(key)
            if (
                not force_refresh
                and self.max_stale_ms > 0
                and stale is not None
                and self._is_servable_stale(stale)
            ):
                logger.warning(
                    f"Serving stale feed after refresh failure: {url}",
                    extra={"rss_url": url, "error": str(e)},
                )
                return stale.feed
            raise

    async def _fetch(self, key: str, url: str) -> ParsedFeed:
        started = self._clock()
        try:
            feed = await self._fetch_and_parse(url)
        except UpstreamFetchError as e:
            logger.error(f"Feed fetch failed: {e}", extra={"rss_url": url, "error": e.detail})
            raise
        except Exception as e:
            logger.error(
                f"Feed fetch failed: {type(e).__name__}: {e}",
                extra={"rss_url": url, "error": str(e)},
            )
            raise UpstreamFetchError(f"{type(e).__name__}: {e}", url=url) from e

        self._store(key, CacheEntry(fetched_at_ms=started, feed=feed))
        return feed

    def _fetch_done(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the exception retrieved; every waiter may have been cancelled
        if not task.cancelled():
            task.exception()

    def _store(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cache entry {evicted}")

    def sweep(self) -> int:
        """
        Drop entries that can no longer be served, fresh or stale.

        Returns:
            Number of entries removed
        """
        expired = [
            key for key, entry in self._entries.items()
            if not self._is_servable_stale(entry)
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"Swept {len(expired)} expired feed(s) from cache")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        return {"entries": len(self._entries), "in_flight": len(self._in_flight)}
