"""
Platform scrapers for lottery listings.
One PlatformScraper per PlatformSpec row; the platform table supplies everything platform-specific.
"""
import logging
from typing import Optional
from urllib.parse import urljoin

import httpx

from deduplication import deduplicate_shows
from errors import PlatformFallbackUsed, ScrapeError
from models import Show
from pacing import PacingProfile
from scrapers.extraction import (
    PAGINATION_PATTERN,
    candidates_to_shows,
    extract_embedded_state,
    extract_show_candidates,
    extract_shows_from_payload,
)
from scrapers.platforms import FailurePolicy, PlatformSpec
from stealth import HTTP_HEADERS

logger = logging.getLogger(__name__)

PAGINATION_CONTROLS = "button, a, [role='button']"


class PlatformScraper:
    """Fetches the current lottery listings from one platform."""

    def __init__(
        self,
        spec: PlatformSpec,
        pacing: Optional[PacingProfile] = None,
        max_pages: int = 3,
        timeout_ms: int = 30000,
        try_api: bool = True,
    ):
        self.spec = spec
        self.pacing = pacing or PacingProfile.default()
        self.max_pages = max_pages
        self.timeout_ms = timeout_ms
        self.try_api = try_api

    @property
    def platform(self):
        return self.spec.platform

    @property
    def base_url(self) -> str:
        return self.spec.base_url

    def extract_candidates(self, html: str) -> list[dict]:
        extractor = self.spec.extractor or extract_show_candidates
        return extractor(html)

    async def scrape(self, session_factory) -> list[Show]:
        """
        Scrape the platform's listing page.

        Failure handling is explicit per platform: FALLBACK platforms raise
        PlatformFallbackUsed carrying their curated list, PROPAGATE platforms
        raise ScrapeError. Either way the caller sees the failure.
        """
        name = self.spec.display_name
        try:
            shows = []
            if self.try_api and self.spec.api_endpoints:
                shows = await self.fetch_from_api(session_factory.pick_user_agent())
            if not shows:
                shows = await self.scrape_page(session_factory)
            if not shows:
                raise ScrapeError(self.platform, "no shows found - scraping may have failed")
            shows = deduplicate_shows(shows)
            logger.info(f"{name}: scraped {len(shows)} shows")
            return shows
        except Exception as e:
            logger.error(f"{name} scraper error: {type(e).__name__}: {e}")
            reason = e.reason if isinstance(e, ScrapeError) else type(e).__name__
            if self.spec.failure_policy is FailurePolicy.FALLBACK:
                logger.warning(f"{name}: using fallback shows ({len(self.spec.fallback_shows)} shows)")
                raise PlatformFallbackUsed(self.platform, reason, self.spec.fallback_shows) from e
            if isinstance(e, ScrapeError):
                raise
            raise ScrapeError(self.platform, reason) from e

    async def fetch_from_api(self, user_agent: str) -> list[Show]:
        """Try the platform's JSON endpoints before paying for a browser render."""
        headers = {**HTTP_HEADERS, "User-Agent": user_agent, "Accept": "application/json"}
        async with httpx.AsyncClient(timeout=15.0) as client:
            for endpoint in self.spec.api_endpoints:
                url = urljoin(self.base_url, endpoint)
                try:
                    response = await client.get(url, headers=headers, follow_redirects=True)
                except httpx.HTTPError as e:
                    logger.debug(f"{self.spec.display_name}: API request {endpoint} failed ({type(e).__name__})")
                    continue

                if response.status_code != 200 or "json" not in response.headers.get("content-type", ""):
                    continue

                try:
                    shows = extract_shows_from_payload(response.json(), self.spec)
                except ValueError:
                    continue
                if shows:
                    logger.info(f"{self.spec.display_name}: fetched {len(shows)} shows from {endpoint}")
                    return shows

        return []

    async def scrape_page(self, session_factory) -> list[Show]:
        async with session_factory.session() as session:
            page = await session.new_page()
            logger.info(f"Fetching {self.spec.display_name}: {self.base_url}")
            await page.goto(self.base_url, wait_until="domcontentloaded", timeout=self.timeout_ms)

            # Let client-rendered content populate
            await self.pacing.pause(self.pacing.page_settle)

            html = await page.content()

            state = extract_embedded_state(html)
            if state is not None:
                shows = extract_shows_from_payload(state, self.spec)
                if shows:
                    logger.info(f"{self.spec.display_name}: {len(shows)} shows from embedded state")
                    return shows

            candidates = self.extract_candidates(html)
            seen_hrefs = {c["href"] for c in candidates}

            for round_number in range(self.max_pages):
                control = await self._find_pagination_control(page)
                if control is None:
                    break

                await self.pacing.pause(self.pacing.pre_click)
                await control.click()
                await self.pacing.pause(self.pacing.pagination_settle)

                new_candidates = [
                    c for c in self.extract_candidates(await page.content())
                    if c["href"] not in seen_hrefs
                ]
                logger.debug(f"{self.spec.display_name}: page {round_number + 2} added {len(new_candidates)}")
                if not new_candidates:
                    break
                seen_hrefs.update(c["href"] for c in new_candidates)
                candidates.extend(new_candidates)

            return candidates_to_shows(candidates, self.spec)

    async def _find_pagination_control(self, page):
        locator = page.locator(PAGINATION_CONTROLS).filter(has_text=PAGINATION_PATTERN)
        if await locator.count() == 0:
            return None
        control = locator.first
        if not await control.is_visible():
            return None
        return control
