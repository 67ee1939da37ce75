"""
Per-platform configuration table.

Registering a new platform is adding one PlatformSpec row (plus, optionally,
a custom extraction function on the row).
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlparse

from models import Platform, Show


class FailurePolicy(str, Enum):
    FALLBACK = "fallback"    # Return the curated fallback list
    PROPAGATE = "propagate"  # Raise ScrapeError to the registry


@dataclass(frozen=True)
class PlatformSpec:
    platform: Platform
    display_name: str
    base_url: str
    domains: tuple[str, ...]
    failure_policy: FailurePolicy
    default_genre: str = "musical"  # Most of these lotteries are for musicals
    fallback_shows: tuple[Show, ...] = ()
    api_endpoints: tuple[str, ...] = ()
    requires_entry_click: bool = False
    entry_button_selector: Optional[str] = None
    # Optional override of the generic DOM heuristic: (html) -> list[dict]
    extractor: Optional[Callable] = field(default=None, compare=False)

    def owns_host(self, hostname: str) -> bool:
        """Exact or registered-suffix hostname match; never substring."""
        host = (hostname or "").lower().rstrip(".")
        return any(host == d or host.endswith("." + d) for d in self.domains)


BROADWAY_DIRECT = PlatformSpec(
    platform=Platform.BROADWAY_DIRECT,
    display_name="BroadwayDirect",
    base_url="https://lottery.broadwaydirect.com/",
    domains=("broadwaydirect.com",),
    failure_policy=FailurePolicy.PROPAGATE,
    api_endpoints=("/api/shows", "/api/v1/shows", "/shows.json"),
    requires_entry_click=True,
    entry_button_selector="a.enter-button, a.enter-lottery-link, button.enter-button",
)

SOCIAL_TOASTER = PlatformSpec(
    platform=Platform.SOCIAL_TOASTER,
    display_name="LuckySeat",
    base_url="https://www.luckyseat.com/",
    domains=("luckyseat.com", "socialtoaster.com"),
    failure_policy=FailurePolicy.FALLBACK,
    fallback_shows=(
        Show(name="Hadestown", platform=Platform.SOCIAL_TOASTER,
             url="https://www.luckyseat.com/shows/hadestown-newyork", genre="musical"),
        Show(name="Moulin Rouge! The Musical", platform=Platform.SOCIAL_TOASTER,
             url="https://www.luckyseat.com/shows/moulinrouge!themusical-newyork", genre="musical"),
        Show(name="The Book of Mormon", platform=Platform.SOCIAL_TOASTER,
             url="https://www.luckyseat.com/shows/thebookofmormon-newyork", genre="musical"),
    ),
    entry_button_selector="a.lottery-enter, button.lottery-enter",
)

PLATFORM_SPECS: dict[Platform, PlatformSpec] = {
    BROADWAY_DIRECT.platform: BROADWAY_DIRECT,
    SOCIAL_TOASTER.platform: SOCIAL_TOASTER,
}


def get_platform_spec(platform: Platform) -> PlatformSpec:
    return PLATFORM_SPECS[Platform(platform)]


def register_platform_spec(spec: PlatformSpec) -> None:
    PLATFORM_SPECS[spec.platform] = spec


def platform_for_host(hostname: str) -> Optional[PlatformSpec]:
    for spec in PLATFORM_SPECS.values():
        if spec.owns_host(hostname):
            return spec
    return None


def platform_for_url(url: str) -> Optional[PlatformSpec]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https"):
        return None
    return platform_for_host(parsed.hostname or "")
