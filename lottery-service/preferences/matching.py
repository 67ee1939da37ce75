"""
Preference matching: decides which catalog shows a user wants to enter.

Pure functions only. A missing preference (no parser configured, or the parse
failed) matches nothing; the only way in is then an explicit override.
"""
from datetime import date, timedelta
from typing import Iterable, Optional

from models import Availability, Override, ParsedPreference, Show, ShowDecision

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _contains_any(haystack: str, needles: Iterable[str]) -> bool:
    haystack = haystack.lower()
    return any(needle.lower() in haystack for needle in needles if needle)


def candidate_lottery_date(today: date) -> date:
    """Most lotteries draw for the next day's performances."""
    return today + timedelta(days=1)


def matches_availability(lottery_date: date, availability: Optional[Availability]) -> bool:
    if availability is None:
        return True

    if availability.days_of_week:
        allowed = {day.strip().lower() for day in availability.days_of_week}
        if DAY_NAMES[lottery_date.weekday()].lower() not in allowed:
            return False

    if availability.specific_dates and lottery_date not in availability.specific_dates:
        return False

    if availability.exclude_dates and lottery_date in availability.exclude_dates:
        return False

    return True


def matches(show: Show, preference: ParsedPreference, lottery_date: Optional[date] = None) -> bool:
    """
    Check a show against a parsed preference. All present constraints must hold.

    Availability only applies when a candidate lottery_date is supplied.
    """
    if preference.show_names and not _contains_any(show.name, preference.show_names):
        return False

    # Exclusion runs after inclusion and always wins
    if preference.exclude_shows and _contains_any(show.name, preference.exclude_shows):
        return False

    if preference.genres and show.genre:
        if not _contains_any(show.genre, preference.genres):
            return False

    if lottery_date is not None and not matches_availability(lottery_date, preference.availability):
        return False

    return True


def resolve(
    show: Show,
    preference: Optional[ParsedPreference],
    override: Optional[Override] = None,
    lottery_date: Optional[date] = None,
) -> ShowDecision:
    matches_preference = preference is not None and matches(show, preference, lottery_date)
    has_override = override is not None
    return ShowDecision(
        show=show,
        matches_preference=matches_preference,
        has_override=has_override,
        override_should_apply=override.should_apply if has_override else None,
        final_decision=override.should_apply if has_override else matches_preference,
    )


def resolve_catalog(
    shows: Iterable[Show],
    preference: Optional[ParsedPreference],
    overrides: Iterable[Override] = (),
    lottery_date: Optional[date] = None,
) -> list[ShowDecision]:
    """Resolve every show, pairing overrides by (platform, show name)."""
    by_key = {(o.platform, o.show_name): o for o in overrides}
    return [
        resolve(show, preference, by_key.get(show.key), lottery_date)
        for show in shows
    ]
