# Preference parsing and matching
from .matching import matches, matches_availability, candidate_lottery_date, resolve, resolve_catalog
from .gemini_parser import PreferenceParser, normalize_preferences

__all__ = [
    'matches', 'matches_availability', 'candidate_lottery_date', 'resolve', 'resolve_catalog',
    'PreferenceParser', 'normalize_preferences',
]
