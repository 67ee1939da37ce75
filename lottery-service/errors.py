"""Exception taxonomy for the lottery service."""
from typing import Iterable, Optional


class LotteryError(Exception):
    """Base class for all service errors."""


class BrowserLaunchError(LotteryError):
    """The headless browser process could not be started."""


class ScrapeError(LotteryError):
    def __init__(self, platform, reason: str):
        self.platform = platform
        self.reason = reason
        super().__init__(f"{platform.value if hasattr(platform, 'value') else platform}: {reason}")


class PlatformFallbackUsed(ScrapeError):
    """The scrape failed and the platform's curated list stands in for it."""

    def __init__(self, platform, reason: str, shows: Iterable):
        self.shows = list(shows)
        super().__init__(platform, reason)


class AllPlatformsFailed(LotteryError):
    """Every registered scraper failed; zero results is indistinguishable from breakage."""

    def __init__(self, failed: Iterable):
        self.failed = list(failed)
        names = ", ".join(getattr(p, "value", str(p)) for p in self.failed)
        super().__init__(f"All platforms failed to scrape: {names}")


class NoCatalogAvailable(LotteryError):
    """Scraping failed and there is no cached catalog to fall back on."""


class PreferenceServiceError(LotteryError):
    """The external preference-parsing service failed."""


class PreferenceRateLimited(PreferenceServiceError):
    pass


class UserNotFound(LotteryError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class AutomationError(LotteryError):
    """Structural failure inside the form-automation state machine."""

    reason: str = "automation failed"

    def __init__(self, reason: Optional[str] = None):
        if reason:
            self.reason = reason
        super().__init__(self.reason)


class NotALotteryPage(AutomationError):
    reason = "not a lottery page"


class RequiredFieldMissing(AutomationError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"required field not found: {field}")


class SubmitControlNotFound(AutomationError):
    reason = "could not find submit button"


class AutomationAborted(AutomationError):
    pass
