"""Registry of platform scrapers with paced, failure-isolated scrape_all."""
import logging
from dataclasses import dataclass, field
from typing import Optional

from errors import AllPlatformsFailed, PlatformFallbackUsed
from models import Platform, Show
from pacing import DelayRange, PacingProfile
from scrapers.lottery_scrapers import PlatformScraper
from scrapers.platforms import PLATFORM_SPECS

logger = logging.getLogger(__name__)


@dataclass
class ScrapeReport:
    shows: list[Show] = field(default_factory=list)
    failed_platforms: list[Platform] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """True when some (not all) platforms failed."""
        return bool(self.failed_platforms)


class ScraperRegistry:
    """One scraper per platform; built-ins are registered lazily on first access."""

    def __init__(self, pacing: Optional[PacingProfile] = None, register_defaults: bool = True):
        self.pacing = pacing or PacingProfile.default()
        self._scrapers: dict[Platform, object] = {}
        self._register_defaults = register_defaults

    def _ensure_defaults(self):
        if self._register_defaults and not self._scrapers:
            for spec in PLATFORM_SPECS.values():
                self.register(PlatformScraper(spec, pacing=self.pacing))

    def register(self, scraper) -> None:
        self._scrapers[scraper.platform] = scraper
        logger.info(f"Registered scraper for platform: {scraper.platform.value}")

    def get(self, platform: Platform):
        self._ensure_defaults()
        return self._scrapers.get(Platform(platform))

    def all(self) -> list:
        self._ensure_defaults()
        return list(self._scrapers.values())

    def clear(self) -> None:
        self._scrapers.clear()
        self._register_defaults = False

    async def scrape_all(self, session_factory, pacing_delay: Optional[DelayRange] = None) -> ScrapeReport:
        """
        Scrape every registered platform in turn.

        The pacing delay goes between platforms, never between shows. A failing
        scraper never aborts the others. A platform that fell back to its curated
        list still counts as failed, so the report is degraded. If every platform
        fails and none supplied fallback shows, AllPlatformsFailed.
        """
        gap = pacing_delay if pacing_delay is not None else self.pacing.platform_gap
        scrapers = self.all()
        report = ScrapeReport()

        for index, scraper in enumerate(scrapers):
            logger.info(f"Scraping platform {index + 1}/{len(scrapers)}: {scraper.platform.value}")
            try:
                shows = await scraper.scrape(session_factory)
                report.shows.extend(shows)
            except PlatformFallbackUsed as e:
                logger.warning(f"Platform {scraper.platform.value} failed ({e.reason}); keeping {len(e.shows)} fallback shows")
                report.shows.extend(e.shows)
                report.failed_platforms.append(scraper.platform)
            except Exception as e:
                logger.error(f"Platform {scraper.platform.value} failed: {type(e).__name__}")
                report.failed_platforms.append(scraper.platform)

            if index < len(scrapers) - 1:
                await gap.sleep(self.pacing.rng)

        if scrapers and len(report.failed_platforms) == len(scrapers) and not report.shows:
            raise AllPlatformsFailed(report.failed_platforms)

        if report.degraded:
            logger.warning(f"Scrape finished in degraded mode; failed: {[p.value for p in report.failed_platforms]}")

        return report
