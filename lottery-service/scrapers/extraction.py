"""
Show extraction heuristics.
Pure functions over HTML / JSON snapshots so they can be tested against saved fixtures.
"""
import json
import re
from typing import Any, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from models import Show

# Anchors that look like a show or lottery listing
SHOW_LINK_SELECTORS = ", ".join([
    'a[href*="/show"]',
    'a[href*="/lottery"]',
    '[class*="show"] a',
    '[class*="lottery"] a',
    '[data-show] a',
    '.card a',
    '.item a',
])

MAX_NAME_LENGTH = 100

NAVIGATION_PATTERN = re.compile(r"\b(about|contact|terms|privacy|see all)\b", re.I)
LOTTERY_TOKEN_PATTERN = re.compile(r"\s*\blottery\b\s*", re.I)
TRAILING_ENTER_PATTERN = re.compile(r"\s*\benter(\s+now)?\s*$", re.I)
PAGINATION_PATTERN = re.compile(r"^\s*(load more|show more|see all|view all|next)\b", re.I)

SKIP_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:")

STATE_SCRIPT_PATTERN = re.compile(
    r"window\.(?:__INITIAL_STATE__|shows|SHOWS)\s*=\s*(\{.*?\}|\[.*?\])\s*;?\s*$",
    re.S | re.M,
)


def clean_show_name(text: str) -> str:
    """Strip noise tokens ("lottery", a trailing "Enter") and collapse whitespace."""
    if not text:
        return ""
    name = " ".join(text.split())
    name = LOTTERY_TOKEN_PATTERN.sub(" ", name)
    name = TRAILING_ENTER_PATTERN.sub("", name)
    return " ".join(name.split()).strip(" -|:")


def is_navigational(name: str) -> bool:
    return bool(NAVIGATION_PATTERN.search(name))


def is_valid_show_name(name: str) -> bool:
    return 0 < len(name) <= MAX_NAME_LENGTH and not is_navigational(name)


def is_pagination_text(text: str) -> bool:
    return bool(text) and bool(PAGINATION_PATTERN.match(" ".join(text.split())))


def normalize_url(href: str, base_url: str) -> str:
    return urljoin(base_url, href.strip())


def _looks_like_listing(href: str) -> bool:
    lowered = href.lower()
    return "show" in lowered or "lottery" in lowered


def extract_show_candidates(html: str) -> list[dict]:
    """
    Broad multi-selector pass over a rendered page.

    Returns [{"name": ..., "href": ...}] deduplicated by href, in document order.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    candidates = []
    seen_hrefs = set()

    for link in soup.select(SHOW_LINK_SELECTORS):
        href = (link.get("href") or "").strip()
        if not href or href.startswith(SKIP_HREF_PREFIXES) or href in seen_hrefs:
            continue
        if not _looks_like_listing(href):
            continue

        text = link.get_text(" ", strip=True) or link.get("title") or link.get("aria-label") or ""
        name = clean_show_name(text)
        if not is_valid_show_name(name):
            continue

        seen_hrefs.add(href)
        candidates.append({"name": name, "href": href})

    return candidates


def candidates_to_shows(candidates: list[dict], spec) -> list[Show]:
    """Normalize relative URLs, assign the platform's default genre, mark active."""
    shows = []
    for candidate in candidates:
        shows.append(Show(
            name=candidate["name"],
            platform=spec.platform,
            url=normalize_url(candidate["href"], spec.base_url),
            genre=candidate.get("genre") or spec.default_genre,
            active=True,
        ))
    return shows


def _find_show_list(data: Any, depth: int = 0) -> list:
    """Locate the first list of show-like objects in an API / embedded-state payload."""
    if depth > 6:
        return []
    if isinstance(data, list):
        if any(isinstance(item, dict) and (item.get("name") or item.get("title") or item.get("show_name"))
               for item in data):
            return data
        return []
    if isinstance(data, dict):
        for key in ("shows", "data", "results", "items", "lotteries"):
            found = _find_show_list(data.get(key), depth + 1)
            if found:
                return found
        for value in data.values():
            if isinstance(value, (dict, list)):
                found = _find_show_list(value, depth + 1)
                if found:
                    return found
    return []


def extract_shows_from_payload(data: Any, spec) -> list[Show]:
    """Shows from a JSON API response or an embedded client-side state object."""
    shows = []
    seen_urls = set()

    for item in _find_show_list(data):
        if not isinstance(item, dict):
            continue
        name = item.get("name") or item.get("title") or item.get("show_name")
        url = item.get("url") or item.get("link") or item.get("href") or item.get("slug")
        if not name or not url:
            continue

        name = clean_show_name(str(name))
        if not is_valid_show_name(name):
            continue

        url = str(url)
        if not url.startswith("http"):
            url = normalize_url(url, spec.base_url) if "/" in url else f"{spec.base_url}show/{url}/"
        if url in seen_urls:
            continue
        seen_urls.add(url)

        shows.append(Show(
            name=name,
            platform=spec.platform,
            url=url,
            genre=item.get("genre") or item.get("type") or spec.default_genre,
            active=item.get("active") is not False,
        ))

    return shows


def extract_embedded_state(html: str) -> Optional[Any]:
    """Client-rendered apps often ship their data in __NEXT_DATA__ or window.__INITIAL_STATE__."""
    if not html:
        return None

    soup = BeautifulSoup(html, "html.parser")

    next_data = soup.find("script", id="__NEXT_DATA__")
    if next_data and next_data.string:
        try:
            return json.loads(next_data.string)
        except json.JSONDecodeError:
            pass

    for script in soup.find_all("script"):
        if not script.string:
            continue
        match = STATE_SCRIPT_PATTERN.search(script.string)
        if match:
            try:
                return json.loads(match.group(1))
            except json.JSONDecodeError:
                continue

    return None
