"""
Form heuristics for lottery entry pages.

Pure functions and selector tables: no browser needed to test them.
"""
import calendar
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

from models import Platform
from scrapers.platforms import platform_for_url


class AutomationState(str, Enum):
    START = "start"
    PLATFORM_DETECTED = "platform_detected"
    ENTRY_AFFORDANCE_CLICKED = "entry_affordance_clicked"
    MODAL_OR_FRAME_RESOLVED = "modal_or_frame_resolved"
    FIELDS_DISCOVERED = "fields_discovered"
    FIELDS_FILLED = "fields_filled"
    SUBMITTED = "submitted"
    DONE = "done"
    ABORTED = "aborted"


# Candidate selectors per logical field, tried in order. All attribute matches are case-insensitive.
FIELD_SELECTORS: dict[str, list[str]] = {
    "first_name": [
        'input[name="firstName" i]',
        'input[name="first_name" i]',
        'input[name*="first" i]',
        'input[id*="first" i]',
        'input[placeholder*="first" i]',
    ],
    "last_name": [
        'input[name="lastName" i]',
        'input[name="last_name" i]',
        'input[name*="last" i]',
        'input[id*="last" i]',
        'input[placeholder*="last" i]',
    ],
    "email": [
        'input[type="email" i]',
        'input[name="email" i]',
        'input[name*="email" i]',
        'input[id*="email" i]',
        'input[placeholder*="email" i]',
    ],
    "quantity": [
        'select[name*="qty" i]',
        'select[name*="quantity" i]',
        'select[id*="quantity" i]',
        'select[name*="ticket" i]',
        'input[name*="quantity" i]',
    ],
    "dob_month": [
        'select[name*="month" i]',
        'select[id*="month" i]',
    ],
    "dob_day": [
        'select[name$="day" i]:not([name*="birthday" i])',
        'select[id$="day" i]:not([id*="birthday" i])',
    ],
    "dob_year": [
        'select[name*="year" i]',
        'select[id*="year" i]',
    ],
    "dob": [
        'input[name*="dob" i]',
        'input[name*="birth" i]',
        'input[id*="birth" i]',
        'input[placeholder*="birth" i]',
    ],
    "zip_code": [
        'input[name*="zip" i]',
        'input[id*="zip" i]',
        'input[name*="postal" i]',
        'input[placeholder*="zip" i]',
    ],
    "country": [
        'select[name*="country" i]',
        'select[id*="country" i]',
    ],
    "terms": [
        'input[type="checkbox"][name*="terms" i]',
        'input[type="checkbox"][id*="terms" i]',
        'input[type="checkbox"][name*="agree" i]',
        'input[type="checkbox"][id*="agree" i]',
        'input[type="checkbox"][name*="accept" i]',
    ],
    "captcha": [
        'iframe[src*="recaptcha" i]',
        'iframe[src*="hcaptcha" i]',
        'iframe[title*="captcha" i]',
    ],
    "submit": [
        'button[type="submit"]',
        'input[type="submit"]',
    ],
}

TEXT_FIELDS = ("first_name", "last_name", "email", "dob", "zip_code")
CHOICE_FIELDS = ("quantity", "dob_month", "dob_day", "dob_year", "country")
CHECKBOX_FIELDS = ("terms",)
FILL_ORDER = (
    "first_name", "last_name", "email", "quantity",
    "dob_month", "dob_day", "dob_year", "dob",
    "zip_code", "country", "terms",
)

MODAL_SELECTORS = [
    'dialog[open]',
    '[role="dialog"]',
    '[aria-modal="true"]',
    '.modal.show',
    '.modal.in',
    '.modal.is-open',
    '.lightbox',
    '.fancybox-container',
    '.mfp-wrap',
    '.featherlight',
    'iframe[src*="lottery" i]',
    'iframe[src*="enter" i]',
    'iframe[id*="lottery" i]',
]

SHOW_NAME_SELECTORS = [
    "h1",
    ".show-title",
    ".lottery-title",
    '[class*="show-name"]',
    '[class*="title"]',
]
MAX_SHOW_NAME_LENGTH = 100

INTERACTIVE_SELECTOR = "button, a, [role='button'], input[type='button']"
SUBMIT_SCAN_SELECTOR = "button, [role='button'], input[type='button']"

ENTER_PATTERN = re.compile(r"\benter")
ENTRY_EXCLUSIONS = ("already entered", "check", "closed", "upcoming")
PRIMARY_MARKERS = ("primary", "active", "cta")
SUBMIT_TEXTS = ("enter", "submit", "enter lottery")

COUNTRY_ALIASES = {
    "united states": ("US", "USA", "United States of America", "U.S.", "U.S.A."),
}


@dataclass(frozen=True)
class ControlCandidate:
    """An interactive element as seen by the entry-control scan."""
    index: int
    text: str
    class_name: str = ""
    disabled: bool = False


def detect_platform(url: str) -> Optional[Platform]:
    """Classify a page by its hostname only."""
    spec = platform_for_url(url)
    return spec.platform if spec else None


def _normalize_text(text: str) -> str:
    return " ".join((text or "").split()).lower()


def is_entry_text(text: str) -> bool:
    text = _normalize_text(text)
    if not ENTER_PATTERN.search(text):
        return False
    return not any(excluded in text for excluded in ENTRY_EXCLUSIONS)


def choose_entry_candidate(candidates: Iterable[ControlCandidate]) -> Optional[ControlCandidate]:
    """Pick the lottery "Enter" control; a primary/active one wins over the first match."""
    eligible = [c for c in candidates if not c.disabled and is_entry_text(c.text)]
    if not eligible:
        return None
    for candidate in eligible:
        classes = candidate.class_name.lower()
        if any(marker in classes for marker in PRIMARY_MARKERS):
            return candidate
    return eligible[0]


def is_submit_text(text: str) -> bool:
    return _normalize_text(text) in SUBMIT_TEXTS


def pick_option_value(options: list[dict], wanted: str, aliases: Iterable[str] = ()) -> Optional[str]:
    """
    Find the <option> value to select for `wanted`.

    Tries an exact value match, then numeric equality ("03" == "3"), then a
    case-insensitive match of value or label against wanted and its aliases.
    """
    wanted = str(wanted).strip()
    if not wanted:
        return None

    for option in options:
        if str(option.get("value", "")).strip() == wanted:
            return option["value"]

    if wanted.isdigit():
        number = int(wanted)
        for option in options:
            for text in (option.get("value", ""), option.get("label", "")):
                text = str(text).strip()
                if text.isdigit() and int(text) == number:
                    return option["value"]

    targets = {wanted.lower(), *(a.lower() for a in aliases)}
    for option in options:
        value = str(option.get("value", "")).strip().lower()
        label = _normalize_text(option.get("label", ""))
        if value in targets or label in targets:
            return option["value"]

    return None


def month_aliases(month: int) -> tuple[str, ...]:
    return (calendar.month_name[month], calendar.month_abbr[month])


def country_aliases(country: str) -> tuple[str, ...]:
    return COUNTRY_ALIASES.get(country.strip().lower(), ())


def show_name_from_url(url: str) -> str:
    """Readable name from a lottery URL path, e.g. /show/the-lion-king -> "the lion king"."""
    match = re.search(r"/shows?/([^/?#]+)", url) or re.search(r"\.com/([^/?#]+)", url)
    if match:
        name = unquote(match.group(1)).replace("-", " ").replace("_", " ")
        name = " ".join(name.split())
        if name:
            return name
    return "Unknown Show"


def is_same_origin(url_a: str, url_b: str) -> bool:
    a, b = urlparse(url_a or ""), urlparse(url_b or "")
    if a.scheme not in ("http", "https") or not a.hostname:
        return False
    return (a.scheme, a.hostname, a.port) == (b.scheme, b.hostname, b.port)
