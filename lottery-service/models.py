"""Data models for the lottery service."""
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Platform(str, Enum):
    """Third-party ticketing sites that host lotteries."""
    BROADWAY_DIRECT = "broadwaydirect"
    SOCIAL_TOASTER = "socialtoaster"


class TimePreference(str, Enum):
    MATINEE = "matinee"
    EVENING = "evening"
    ANY = "any"


class Show(BaseModel):
    """A lottery listing scraped from a platform. Identity is (platform, name)."""
    name: str
    platform: Platform
    url: str
    genre: Optional[str] = None
    active: bool = True

    @field_validator("name", "url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @property
    def key(self) -> tuple[Platform, str]:
        return (self.platform, self.name)


class PriceRange(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class DateRange(BaseModel):
    start: Optional[date] = None
    end: Optional[date] = None


class Availability(BaseModel):
    """When the user can attend. Evaluated against a candidate lottery date."""
    days_of_week: Optional[list[str]] = None  # Title-case weekday names
    specific_dates: Optional[list[date]] = None
    exclude_dates: Optional[list[date]] = None
    time_preference: Optional[TimePreference] = None


class ParsedPreference(BaseModel):
    """
    Structured form of a user's free-text preferences.
    Every field is optional; a missing field means "no constraint".
    """
    genres: Optional[list[str]] = None
    show_names: Optional[list[str]] = None
    exclude_shows: Optional[list[str]] = None
    price_range: Optional[PriceRange] = None
    date_range: Optional[DateRange] = None
    keywords: Optional[list[str]] = None
    availability: Optional[Availability] = None

    def is_empty(self) -> bool:
        return not any([
            self.genres, self.show_names, self.exclude_shows,
            self.price_range, self.date_range, self.keywords, self.availability,
        ])


class Override(BaseModel):
    """A user's manual yes/no decision for one show."""
    user_id: str
    show_name: str
    platform: Platform
    should_apply: bool
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ShowDecision(BaseModel):
    """Derived per-show decision; never persisted."""
    show: Show
    matches_preference: bool
    has_override: bool
    override_should_apply: Optional[bool] = None
    final_decision: bool


class LotteryResult(BaseModel):
    """Outcome of one application attempt."""
    model_config = ConfigDict(frozen=True)

    success: bool
    show_name: str
    platform: Platform
    error: Optional[str] = None
    fields_filled: int = 0
    submitted: bool = False
    attempted_at: datetime = Field(default_factory=datetime.now)


class CatalogCacheEntry(BaseModel):
    """Single generation of scraped shows. Timestamp is epoch milliseconds."""
    model_config = ConfigDict(frozen=True)

    shows: tuple[Show, ...]
    timestamp: int

    def to_store(self) -> dict:
        """Shape persisted for external inspectors: {shows: Show[], timestamp: epoch-ms}."""
        return {
            "shows": [s.model_dump(mode="json") for s in self.shows],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_store(cls, data: dict) -> "CatalogCacheEntry":
        return cls(
            shows=tuple(Show.model_validate(s) for s in data.get("shows", [])),
            timestamp=int(data["timestamp"]),
        )


class EntrantProfile(BaseModel):
    """Personal data used to fill an entry form."""
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    ticket_quantity: Optional[int] = 2
    date_of_birth: Optional[date] = None
    zip_code: Optional[str] = None
    country: Optional[str] = "United States"
    accept_terms: bool = True


class User(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    ticket_quantity: int = 2
    preferences: str = ""  # Free-text description of what they want to see
    parsed_preferences: Optional[ParsedPreference] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def profile(self) -> EntrantProfile:
        return EntrantProfile(
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            ticket_quantity=self.ticket_quantity,
            date_of_birth=self.date_of_birth,
            zip_code=self.zip_code,
            country=self.country or "United States",
        )


class FailureDetail(BaseModel):
    show_name: str
    platform: Platform
    error: str


class ApplySummary(BaseModel):
    """User-visible batch summary: counts plus a short diagnostic per failure."""
    user_id: Optional[str] = None
    successful: int = 0
    failed: int = 0
    failures: list[FailureDetail] = []
