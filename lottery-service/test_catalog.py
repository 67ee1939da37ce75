"""Catalog cache freshness, staleness and persistence with an injected clock."""
import asyncio

import pytest

from catalog import STORE_KEY, CatalogCache
from errors import AllPlatformsFailed, NoCatalogAvailable
from models import Platform, Show
from scrapers.registry import ScrapeReport
from storage import MemoryStore

TTL = 24 * 60 * 60


def _shows(*names):
    return [Show(name=n, platform=Platform.BROADWAY_DIRECT, url=f"https://lottery.broadwaydirect.com/show/{n}/")
            for n in names]


class CountingScrape:
    def __init__(self, *reports):
        self.reports = list(reports)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        # Yield so overlapping callers actually overlap
        await asyncio.sleep(0)
        outcome = self.reports[min(self.calls, len(self.reports)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


async def test_get_within_ttl_does_not_rescrape(clock):
    scrape = CountingScrape(ScrapeReport(shows=_shows("hamilton")))
    cache = CatalogCache(scrape, ttl_seconds=TTL, clock=clock)

    await cache.get(force_refresh=True)
    clock.advance(TTL - 1)
    snapshot = await cache.get(force_refresh=False)

    assert scrape.calls == 1
    assert [s.name for s in snapshot.shows] == ["hamilton"]
    assert not snapshot.stale


async def test_forced_refresh_always_scrapes(clock):
    scrape = CountingScrape(ScrapeReport(shows=_shows("hamilton")))
    cache = CatalogCache(scrape, ttl_seconds=TTL, clock=clock)

    await cache.get(force_refresh=True)
    await cache.get(force_refresh=True)

    assert scrape.calls == 2


async def test_expired_entry_triggers_scrape(clock):
    scrape = CountingScrape(ScrapeReport(shows=_shows("hamilton")), ScrapeReport(shows=_shows("wicked")))
    cache = CatalogCache(scrape, ttl_seconds=TTL, clock=clock)

    await cache.get()
    clock.advance(TTL + 1)
    snapshot = await cache.get()

    assert scrape.calls == 2
    assert [s.name for s in snapshot.shows] == ["wicked"]


async def test_failed_refresh_serves_previous_entry_as_stale(clock):
    scrape = CountingScrape(ScrapeReport(shows=_shows("hamilton")), AllPlatformsFailed([Platform.BROADWAY_DIRECT]))
    cache = CatalogCache(scrape, ttl_seconds=TTL, clock=clock)

    first = await cache.get(force_refresh=True)
    clock.advance(60)
    second = await cache.get(force_refresh=True)

    assert second.stale
    assert second.shows == first.shows
    assert second.timestamp == first.timestamp


async def test_failure_without_any_cache_raises(clock):
    cache = CatalogCache(CountingScrape(AllPlatformsFailed([Platform.BROADWAY_DIRECT])), clock=clock)

    with pytest.raises(NoCatalogAvailable):
        await cache.get()


async def test_empty_scrape_is_not_cached(clock):
    cache = CatalogCache(CountingScrape(ScrapeReport(shows=[])), clock=clock)

    with pytest.raises(NoCatalogAvailable):
        await cache.get()


async def test_overlapping_refreshes_share_one_scrape(clock):
    scrape = CountingScrape(ScrapeReport(shows=_shows("hamilton")))
    cache = CatalogCache(scrape, ttl_seconds=TTL, clock=clock)

    first, second = await asyncio.gather(cache.get(force_refresh=True), cache.get(force_refresh=True))

    assert scrape.calls == 1
    assert first.shows == second.shows


async def test_entry_is_persisted_in_inspectable_shape(clock):
    store = MemoryStore()
    cache = CatalogCache(CountingScrape(ScrapeReport(shows=_shows("hamilton"))), store=store, clock=clock)

    await cache.get()

    data = await store.get(STORE_KEY)
    assert set(data) == {"shows", "timestamp"}
    assert data["timestamp"] == int(clock() * 1000)
    assert data["shows"][0]["name"] == "hamilton"
    assert data["shows"][0]["platform"] == "broadwaydirect"


async def test_persisted_entry_is_reused_after_restart(clock):
    store = MemoryStore()
    await CatalogCache(CountingScrape(ScrapeReport(shows=_shows("hamilton"))), store=store, clock=clock).get()

    scrape = CountingScrape(ScrapeReport(shows=_shows("wicked")))
    restarted = CatalogCache(scrape, store=store, ttl_seconds=TTL, clock=clock)
    clock.advance(60)
    snapshot = await restarted.get()

    assert scrape.calls == 0
    assert [s.name for s in snapshot.shows] == ["hamilton"]


async def test_reloaded_entry_expires_from_its_scrape_time(clock):
    store = MemoryStore()
    await CatalogCache(CountingScrape(ScrapeReport(shows=_shows("old"))), store=store, clock=clock).get()

    clock.advance(23 * 60 * 60)
    scrape = CountingScrape(ScrapeReport(shows=_shows("new")))
    restarted = CatalogCache(scrape, store=store, ttl_seconds=TTL, clock=clock)
    assert [s.name for s in (await restarted.get()).shows] == ["old"]

    clock.advance(2 * 60 * 60)
    snapshot = await restarted.get()

    assert scrape.calls == 1
    assert [s.name for s in snapshot.shows] == ["new"]


async def test_expired_persisted_entry_is_only_a_stale_fallback(clock):
    store = MemoryStore()
    await CatalogCache(CountingScrape(ScrapeReport(shows=_shows("old"))), store=store, clock=clock).get()

    clock.advance(TTL + 60)
    restarted = CatalogCache(CountingScrape(AllPlatformsFailed([Platform.BROADWAY_DIRECT])),
                             store=store, ttl_seconds=TTL, clock=clock)

    assert (await restarted.peek()).stale
    snapshot = await restarted.get()
    assert snapshot.stale
    assert [s.name for s in snapshot.shows] == ["old"]


async def test_degraded_scrape_is_flagged(clock):
    report = ScrapeReport(shows=_shows("hamilton"), failed_platforms=[Platform.SOCIAL_TOASTER])
    cache = CatalogCache(CountingScrape(report), clock=clock)

    snapshot = await cache.get()

    assert snapshot.degraded
    assert snapshot.failed_platforms == (Platform.SOCIAL_TOASTER,)


async def test_peek_and_lookups(clock):
    shows = _shows("hamilton", "wicked")
    shows.append(Show(name="Hadestown", platform=Platform.SOCIAL_TOASTER,
                      url="https://www.luckyseat.com/shows/hadestown-newyork", active=False))
    cache = CatalogCache(CountingScrape(ScrapeReport(shows=shows)), clock=clock)

    with pytest.raises(NoCatalogAvailable):
        await cache.peek()

    await cache.get()
    assert len((await cache.peek()).shows) == 3
    assert [s.name for s in await cache.active_shows()] == ["hamilton", "wicked"]
    assert await cache.shows_by_platform(Platform.SOCIAL_TOASTER) == []
    assert (await cache.show_by_name("WICKED")).name == "wicked"
    assert await cache.show_by_name("cats") is None
