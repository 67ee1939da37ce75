"""
Catalog cache: the last successfully scraped show list.

Single slot, replaced whole on every successful refresh. Fresh within the TTL,
still served (flagged stale) when a refresh fails.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from cachetools import TTLCache

from errors import NoCatalogAvailable
from models import CatalogCacheEntry, Platform, Show

logger = logging.getLogger(__name__)

CACHE_KEY = "catalog"
STORE_KEY = "catalog:shows"
DEFAULT_TTL_SECONDS = 24 * 60 * 60  # Matches the daily refresh schedule


@dataclass(frozen=True)
class CatalogSnapshot:
    shows: tuple[Show, ...]
    timestamp: int  # epoch-ms of the scrape that produced these shows
    stale: bool = False
    degraded: bool = False
    failed_platforms: tuple[Platform, ...] = field(default_factory=tuple)


class CatalogCache:
    """
    Args:
        scrape: async callable returning a ScrapeReport-like object (.shows, .failed_platforms)
        store: optional KeyValueStore used to persist the entry as {shows, timestamp}
        ttl_seconds: freshness window
        clock: seconds since epoch; injectable for tests
    """

    def __init__(
        self,
        scrape: Callable[[], Awaitable],
        store=None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._scrape = scrape
        self._store = store
        self._clock = clock
        self._fresh = TTLCache(maxsize=1, ttl=ttl_seconds, timer=clock)
        self._entry: Optional[CatalogCacheEntry] = None
        self._loaded = store is None
        self._refresh_lock = asyncio.Lock()
        self._generation = 0
        self._last_failed: tuple[Platform, ...] = ()

    async def _load_persisted(self):
        if self._loaded:
            return
        self._loaded = True
        data = await self._store.get(STORE_KEY)
        if not data:
            return
        try:
            entry = CatalogCacheEntry.from_store(data)
        except (KeyError, ValueError) as e:
            logger.warning(f"Ignoring unreadable persisted catalog: {type(e).__name__}")
            return
        self._entry = entry
        age = self._clock() - entry.timestamp / 1000
        if self._is_fresh(entry):
            self._fresh[CACHE_KEY] = entry
        logger.info(f"Loaded persisted catalog ({len(entry.shows)} shows, age: {int(age)}s)")

    def _is_fresh(self, entry: CatalogCacheEntry) -> bool:
        # TTLCache ages a reloaded entry from insertion; freshness is measured from the scrape
        return self._clock() - entry.timestamp / 1000 < self._fresh.ttl

    def _snapshot(self, entry: CatalogCacheEntry, stale: bool = False) -> CatalogSnapshot:
        return CatalogSnapshot(
            shows=entry.shows,
            timestamp=entry.timestamp,
            stale=stale,
            degraded=bool(self._last_failed),
            failed_platforms=self._last_failed,
        )

    async def get(self, force_refresh: bool = False) -> CatalogSnapshot:
        await self._load_persisted()

        if not force_refresh:
            entry = self._fresh.get(CACHE_KEY)
            if entry is not None and self._is_fresh(entry):
                age = int(self._clock() - entry.timestamp / 1000)
                logger.info(f"Returning cached shows ({len(entry.shows)} shows, age: {age}s)")
                return self._snapshot(entry)

        generation = self._generation
        async with self._refresh_lock:
            # Another caller refreshed while we waited; reuse it instead of scraping again
            if self._generation != generation and self._entry is not None:
                return self._snapshot(self._entry)
            return await self._refresh()

    async def _refresh(self) -> CatalogSnapshot:
        try:
            report = await self._scrape()
            shows = tuple(report.shows)
            if not shows:
                raise NoCatalogAvailable("Scrape returned no shows")
        except Exception as e:
            logger.error(f"Catalog refresh failed: {type(e).__name__}")
            if self._entry is not None:
                age = int(self._clock() - self._entry.timestamp / 1000)
                logger.warning(f"Returning stale cached shows ({len(self._entry.shows)} shows, age: {age}s)")
                return self._snapshot(self._entry, stale=True)
            raise NoCatalogAvailable(f"Failed to fetch shows: {type(e).__name__}") from e

        entry = CatalogCacheEntry(shows=shows, timestamp=int(self._clock() * 1000))
        self._last_failed = tuple(getattr(report, "failed_platforms", ()) or ())
        self._entry = entry
        self._fresh[CACHE_KEY] = entry
        self._generation += 1

        if self._store is not None:
            await self._store.set(STORE_KEY, entry.to_store())

        logger.info(f"Catalog refreshed with {len(shows)} shows")
        return self._snapshot(entry)

    async def peek(self) -> CatalogSnapshot:
        """Cached shows without triggering a scrape."""
        await self._load_persisted()
        if self._entry is None:
            raise NoCatalogAvailable("No cached shows available; refresh the catalog first")
        return self._snapshot(self._entry, stale=not self._is_fresh(self._entry))

    async def active_shows(self, force_refresh: bool = False) -> list[Show]:
        snapshot = await self.get(force_refresh)
        return [s for s in snapshot.shows if s.active]

    async def shows_by_platform(self, platform: Platform) -> list[Show]:
        return [s for s in await self.active_shows() if s.platform == Platform(platform)]

    async def show_by_name(self, name: str) -> Optional[Show]:
        wanted = name.strip().lower()
        for show in await self.active_shows():
            if show.name.lower() == wanted:
                return show
        return None
