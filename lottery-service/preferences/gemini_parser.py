"""Free-text preference parsing using Gemini AI."""
import json
import logging
from datetime import date
from typing import Any, Optional

import google.generativeai as genai

from errors import PreferenceRateLimited, PreferenceServiceError
from models import Availability, DateRange, ParsedPreference, PriceRange, TimePreference

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You parse user preferences for Broadway show lotteries.
Extract the following information from the user's text:
- genres: Array of genres they're interested in (musical, drama, comedy, etc.)
- showNames: Specific show names mentioned
- priceRange: Min and max price if mentioned
- dateRange: Date ranges if mentioned (YYYY-MM-DD start and end)
- excludeShows: Shows they want to exclude
- keywords: Other relevant keywords
- availability: Object describing when the user can attend:
  - daysOfWeek: Array of days they can attend (e.g. ["Friday", "Saturday"])
  - timePreference: "matinee", "evening", or "any" if mentioned
  - specificDates: Array of dates they can attend (YYYY-MM-DD)
  - excludeDates: Array of dates they cannot attend (YYYY-MM-DD)

Examples for availability:
- "weekends only" -> daysOfWeek: ["Saturday", "Sunday"]
- "no Mondays" -> every day except Monday
- "matinee shows only" -> timePreference: "matinee"

Return ONLY a valid JSON object (no markdown). If a field is not mentioned, omit it.

Preference text: "{text}"
"""


def _clean_response(text: str) -> str:
    text = text.strip()
    # Clean markdown if present
    if text.startswith("```"):
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]
    return text.strip()


def _string_list(value: Any) -> Optional[list[str]]:
    if not isinstance(value, list):
        return None
    items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return items or None


def _date_list(value: Any) -> Optional[list[date]]:
    if not isinstance(value, list):
        return None
    dates = []
    for item in value:
        try:
            dates.append(date.fromisoformat(str(item)[:10]))
        except ValueError:
            logger.debug(f"Dropping malformed date: {item!r}")
    return dates or None


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def normalize_preferences(parsed: dict) -> ParsedPreference:
    """Coerce the model's JSON into a ParsedPreference, dropping malformed fields."""
    if not isinstance(parsed, dict):
        return ParsedPreference()

    result = {}

    genres = _string_list(parsed.get("genres"))
    if genres:
        result["genres"] = [g.lower() for g in genres]

    show_names = _string_list(parsed.get("showNames"))
    if show_names:
        result["show_names"] = show_names

    exclude_shows = _string_list(parsed.get("excludeShows"))
    if exclude_shows:
        result["exclude_shows"] = exclude_shows

    keywords = _string_list(parsed.get("keywords"))
    if keywords:
        result["keywords"] = [k.lower() for k in keywords]

    price = parsed.get("priceRange")
    if isinstance(price, dict):
        result["price_range"] = PriceRange(min=_number(price.get("min")), max=_number(price.get("max")))

    dates = parsed.get("dateRange")
    if isinstance(dates, dict):
        result["date_range"] = DateRange(start=_parse_date(dates.get("start")), end=_parse_date(dates.get("end")))

    availability = parsed.get("availability")
    if isinstance(availability, dict):
        days = _string_list(availability.get("daysOfWeek"))
        time_pref = availability.get("timePreference")
        try:
            time_preference = TimePreference(time_pref.lower()) if isinstance(time_pref, str) else None
        except ValueError:
            time_preference = None
        result["availability"] = Availability(
            days_of_week=[d.capitalize() for d in days] if days else None,
            specific_dates=_date_list(availability.get("specificDates")),
            exclude_dates=_date_list(availability.get("excludeDates")),
            time_preference=time_preference,
        )

    return ParsedPreference(**result)


def _is_rate_limit(error: Exception) -> bool:
    message = str(error).lower()
    return "429" in message or "quota" in message or "rate limit" in message


class PreferenceParser:
    """
    Turns free text into a ParsedPreference with one Gemini call.
    No retries: a failed parse leaves the user with no parsed preferences.
    """

    def __init__(self, api_key: Optional[str], model_name: str = "gemini-2.0-flash"):
        self.api_key = api_key
        self.model_name = model_name
        self._model = None

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _get_model(self):
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(
                model_name=self.model_name,
                generation_config={
                    "temperature": 0.3,
                    "max_output_tokens": 1024,
                },
            )
        return self._model

    async def parse(self, text: str) -> ParsedPreference:
        if not self.available:
            raise PreferenceServiceError("Preference parsing is not configured")

        try:
            response = await self._get_model().generate_content_async(PROMPT_TEMPLATE.format(text=text[:2000]))
            parsed = json.loads(_clean_response(response.text))
        except json.JSONDecodeError as e:
            logger.error(f"Gemini returned unparseable preferences: {type(e).__name__}")
            raise PreferenceServiceError("Failed to parse preferences") from e
        except Exception as e:
            if _is_rate_limit(e):
                logger.warning(f"Gemini rate limit hit while parsing preferences: {type(e).__name__}")
                raise PreferenceRateLimited("Preference service rate limited") from e
            logger.error(f"Gemini preference parsing failed: {type(e).__name__}")
            raise PreferenceServiceError("Failed to parse preferences") from e

        preference = normalize_preferences(parsed)
        logger.info(f"Parsed preferences (empty: {preference.is_empty()})")
        return preference
