"""Show deduplication logic using fuzzy matching."""
from fuzzywuzzy import fuzz

from models import Show


def deduplicate_shows(shows: list[Show], similarity_threshold: int = 92) -> list[Show]:
    """
    Collapse shows that are the same listing on the same platform.

    Args:
        shows: Shows in scrape order
        similarity_threshold: Minimum similarity score (0-100) to consider duplicates

    Returns:
        Deduplicated list; the first occurrence (and its URL) wins
    """
    if not shows:
        return []

    deduplicated = []
    seen_keys = set()

    for show in shows:
        normalized_name = normalize_show_name(show.name)
        exact_key = (show.platform, normalized_name)

        if exact_key in seen_keys:
            continue

        is_duplicate = False
        for existing in deduplicated:
            # Same name on two platforms is two distinct lotteries
            if existing.platform != show.platform:
                continue

            similarity = fuzz.ratio(normalized_name, normalize_show_name(existing.name))
            if similarity >= similarity_threshold:
                is_duplicate = True
                break

        if not is_duplicate:
            deduplicated.append(show)
            seen_keys.add(exact_key)

    return deduplicated


def normalize_show_name(name: str) -> str:
    """Normalize a show name for comparison."""
    normalized = name.lower()

    remove_phrases = [
        "digital lottery", "lottery", "on broadway",
        "- broadway", "| broadway", "(broadway)", "- new york", "- nyc",
    ]
    for phrase in remove_phrases:
        normalized = normalized.replace(phrase, "")

    normalized = " ".join(normalized.split())

    return normalized.strip(" -|:!")
