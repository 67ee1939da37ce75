"""Environment-driven settings for the lottery service."""
import os
from typing import Optional

from pydantic import BaseModel


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    api_key: Optional[str] = None  # Shared secret for manual triggers
    cron_secret: Optional[str] = None
    rate_limit: int = 30  # requests per minute
    catalog_ttl_hours: float = 24
    platform_delay_seconds: float = 3.0
    browser_headless: bool = True
    navigation_timeout_ms: int = 30000
    modal_timeout_ms: int = 5000
    history_limit: int = 100
    auto_submit: bool = True
    log_level: str = "INFO"

    @property
    def catalog_ttl_seconds(self) -> float:
        return self.catalog_ttl_hours * 3600

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
            api_key=os.getenv("LOTTERY_API_KEY") or None,
            cron_secret=os.getenv("CRON_SECRET") or None,
            rate_limit=int(os.getenv("RATE_LIMIT", "30")),
            catalog_ttl_hours=float(os.getenv("CATALOG_TTL_HOURS", "24")),
            platform_delay_seconds=float(os.getenv("PLATFORM_DELAY_SECONDS", "3.0")),
            browser_headless=_env_bool("BROWSER_HEADLESS", True),
            navigation_timeout_ms=int(os.getenv("NAVIGATION_TIMEOUT_MS", "30000")),
            modal_timeout_ms=int(os.getenv("MODAL_TIMEOUT_MS", "5000")),
            history_limit=int(os.getenv("HISTORY_LIMIT", "100")),
            auto_submit=_env_bool("AUTO_SUBMIT", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
