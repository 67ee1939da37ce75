"""
Anti-detection browser sessions.
Every scrape and every platform batch of form submissions runs inside one of these.
"""
import logging
import random
from contextlib import asynccontextmanager
from typing import Optional

from playwright.async_api import async_playwright

from errors import BrowserLaunchError

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

# Lotteries are for New York performances
TIMEZONE_ID = "America/New_York"
GEOLOCATION = {"latitude": 40.730610, "longitude": -73.935242}
VIEWPORT = {"width": 1920, "height": 1080}

HTTP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
]

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });

Object.defineProperty(navigator, 'plugins', {
    get: () => [
        { 0: { type: 'application/x-google-chrome-pdf' }, name: 'Chrome PDF Plugin',
          filename: 'internal-pdf-viewer', description: 'Portable Document Format', length: 1 },
        { 0: { type: 'application/pdf' }, name: 'Chrome PDF Viewer',
          filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: 'Portable Document Format', length: 1 },
        { name: 'Native Client', filename: 'internal-nacl-plugin', description: '', length: 2 }
    ]
});

Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });

window.chrome = window.chrome || { runtime: {} };

if (window.navigator.permissions && window.navigator.permissions.query) {
    const originalQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
    window.navigator.permissions.query = (parameters) => (
        parameters && parameters.name === 'notifications'
            ? Promise.resolve({ state: Notification.permission })
            : originalQuery(parameters)
    );
}
"""


def context_options(user_agent: str) -> dict:
    """Browser context settings that make a session look like a New York desktop browser."""
    return {
        "user_agent": user_agent,
        "viewport": dict(VIEWPORT),
        "device_scale_factor": 1,
        "has_touch": False,
        "is_mobile": False,
        "locale": "en-US",
        "timezone_id": TIMEZONE_ID,
        "geolocation": dict(GEOLOCATION),
        "permissions": ["geolocation"],
        "extra_http_headers": dict(HTTP_HEADERS),
    }


class BrowserSession:
    """One isolated browser process + context. The caller owns cleanup."""

    def __init__(self, playwright, browser, context, user_agent: str):
        self._playwright = playwright
        self._browser = browser
        self.context = context
        self.user_agent = user_agent
        self._closed = False

    async def new_page(self):
        return await self.context.new_page()

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self):
        if self._closed:
            return
        self._closed = True
        for resource, label in ((self.context, "context"), (self._browser, "browser")):
            try:
                await resource.close()
            except Exception as e:
                logger.warning(f"Error closing browser {label}: {type(e).__name__}")
        await self._playwright.stop()


class BrowserSessionFactory:
    """Creates anti-detection browser sessions. No retries: callers decide."""

    def __init__(
        self,
        headless: bool = True,
        user_agents: Optional[list[str]] = None,
        navigation_timeout_ms: int = 30000,
        rng: Optional[random.Random] = None,
    ):
        self.headless = headless
        self.user_agents = user_agents or USER_AGENTS
        self.navigation_timeout_ms = navigation_timeout_ms
        self._rng = rng or random.Random()

    def pick_user_agent(self) -> str:
        return self._rng.choice(self.user_agents)

    async def create_session(self) -> BrowserSession:
        user_agent = self.pick_user_agent()
        playwright = None
        browser = None
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
            context = await browser.new_context(**context_options(user_agent))
            context.set_default_navigation_timeout(self.navigation_timeout_ms)
            await context.add_init_script(STEALTH_SCRIPT)
        except Exception as e:
            logger.error(f"Browser launch failed: {type(e).__name__}")
            if browser is not None:
                await browser.close()
            if playwright is not None:
                await playwright.stop()
            raise BrowserLaunchError(f"Could not launch browser: {type(e).__name__}") from e

        logger.debug(f"Browser session started (UA: {user_agent[:50]}...)")
        return BrowserSession(playwright, browser, context, user_agent)

    @asynccontextmanager
    async def session(self):
        """Session that is closed on every exit path."""
        browser_session = await self.create_session()
        try:
            yield browser_session
        finally:
            await browser_session.close()
