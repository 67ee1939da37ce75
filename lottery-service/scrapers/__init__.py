# Lottery platform scrapers
from .platforms import (
    PLATFORM_SPECS, FailurePolicy, PlatformSpec,
    get_platform_spec, register_platform_spec, platform_for_host, platform_for_url,
)
from .lottery_scrapers import PlatformScraper
from .registry import ScraperRegistry, ScrapeReport

__all__ = [
    'PLATFORM_SPECS', 'FailurePolicy', 'PlatformSpec',
    'get_platform_spec', 'register_platform_spec', 'platform_for_host', 'platform_for_url',
    'PlatformScraper',
    'ScraperRegistry', 'ScrapeReport',
]
