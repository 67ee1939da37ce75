"""Platform detection and form heuristics."""
import pytest

from automation.heuristics import (
    ControlCandidate,
    choose_entry_candidate,
    detect_platform,
    is_same_origin,
    is_submit_text,
    month_aliases,
    pick_option_value,
    show_name_from_url,
)
from models import Platform
from scrapers.platforms import platform_for_host


@pytest.mark.parametrize("url,expected", [
    ("https://lottery.broadwaydirect.com/show/aladdin-ny/", Platform.BROADWAY_DIRECT),
    ("https://broadwaydirect.com/", Platform.BROADWAY_DIRECT),
    ("https://www.luckyseat.com/shows/hadestown-newyork", Platform.SOCIAL_TOASTER),
    ("https://app.socialtoaster.com/lottery/123", Platform.SOCIAL_TOASTER),
])
def test_detect_platform_by_hostname(url, expected):
    assert detect_platform(url) == expected


@pytest.mark.parametrize("url", [
    "https://evil.example.com/?host=lottery.broadwaydirect.com",
    "https://evil.example.com/lottery.broadwaydirect.com/show/x",
    "https://notbroadwaydirect.com/",
    "https://lottery.broadwaydirect.com.evil.example/",
    "ftp://lottery.broadwaydirect.com/",
    "not a url",
])
def test_detect_platform_rejects_lookalikes(url):
    assert detect_platform(url) is None


def test_platform_for_host_is_case_insensitive():
    assert platform_for_host("WWW.LuckySeat.com").platform == Platform.SOCIAL_TOASTER


def test_entry_candidate_skips_excluded_and_disabled_controls():
    candidates = [
        ControlCandidate(0, "Already Entered"),
        ControlCandidate(1, "Check Results"),
        ControlCandidate(2, "Lottery Closed - Enter tomorrow"),
        ControlCandidate(3, "Upcoming: enter soon"),
        ControlCandidate(4, "Enter Now", disabled=True),
        ControlCandidate(5, "Help Center"),
        ControlCandidate(6, "Enter"),
    ]
    assert choose_entry_candidate(candidates).index == 6


def test_entry_candidate_prefers_primary_action():
    candidates = [
        ControlCandidate(0, "Enter", class_name="btn btn-secondary"),
        ControlCandidate(1, "Enter Now", class_name="btn btn-primary"),
    ]
    assert choose_entry_candidate(candidates).index == 1


def test_entry_candidate_none_found():
    assert choose_entry_candidate([ControlCandidate(0, "Buy Tickets")]) is None


@pytest.mark.parametrize("text,expected", [
    ("Enter", True),
    ("  SUBMIT ", True),
    ("Enter Lottery", True),
    ("Enter Now", False),
    ("Submit your feedback", False),
])
def test_submit_text_is_exact(text, expected):
    assert is_submit_text(text) is expected


MONTHS = [{"value": "", "label": "Month"}] + [
    {"value": f"{m:02d}", "label": name} for m, name in enumerate(
        ["January", "February", "March", "April", "May", "June", "July",
         "August", "September", "October", "November", "December"], start=1)
]


def test_pick_option_tolerates_zero_padding():
    assert pick_option_value(MONTHS, "3") == "03"
    assert pick_option_value([{"value": "7", "label": "7"}], "07") == "7"


def test_pick_option_by_label_alias():
    named = [{"value": "jan", "label": "January"}, {"value": "mar", "label": "March"}]
    assert pick_option_value(named, "3", month_aliases(3)) == "mar"


def test_pick_option_country_label():
    countries = [{"value": "CA", "label": "Canada"}, {"value": "US", "label": "United States"}]
    assert pick_option_value(countries, "united states") == "US"
    assert pick_option_value(countries, "Mexico") is None


def test_show_name_from_url():
    assert show_name_from_url("https://lottery.broadwaydirect.com/show/the-lion-king/") == "the lion king"
    assert show_name_from_url("https://www.luckyseat.com/shows/book_of_mormon?x=1") == "book of mormon"
    assert show_name_from_url("https://example.org/") == "Unknown Show"


def test_same_origin():
    assert is_same_origin("https://www.luckyseat.com/frame", "https://www.luckyseat.com/shows/x")
    assert not is_same_origin("https://www.google.com/recaptcha/api2/anchor", "https://www.luckyseat.com/")
    assert not is_same_origin("about:blank", "https://www.luckyseat.com/")
