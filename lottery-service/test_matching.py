"""Preference matching and decision resolution."""
from datetime import date

import pytest

from models import Availability, Override, ParsedPreference, Platform, Show
from preferences.matching import candidate_lottery_date, matches, matches_availability, resolve, resolve_catalog

SHOWS = [
    Show(name="Hamilton", platform=Platform.BROADWAY_DIRECT, url="https://lottery.broadwaydirect.com/show/hamilton/", genre="musical"),
    Show(name="Cats", platform=Platform.BROADWAY_DIRECT, url="https://lottery.broadwaydirect.com/show/cats/", genre="musical"),
    Show(name="Death of a Salesman", platform=Platform.SOCIAL_TOASTER, url="https://www.luckyseat.com/shows/salesman", genre="drama"),
    Show(name="Mystery Play", platform=Platform.SOCIAL_TOASTER, url="https://www.luckyseat.com/shows/mystery"),
]


@pytest.mark.parametrize("show", SHOWS, ids=lambda s: s.name)
def test_empty_preference_matches_everything(show):
    assert matches(show, ParsedPreference())


@pytest.mark.parametrize("show", SHOWS, ids=lambda s: s.name)
def test_exclusion_vetoes_any_other_match(show):
    fragment = show.name[1:4].upper()
    pref = ParsedPreference(
        genres=[show.genre or "musical"],
        show_names=[show.name],
        exclude_shows=[fragment],
    )
    assert not matches(show, pref)


def test_show_names_use_case_insensitive_containment():
    pref = ParsedPreference(show_names=["hamil"])
    assert matches(SHOWS[0], pref)
    assert not matches(SHOWS[1], pref)


def test_genre_filter():
    pref = ParsedPreference(genres=["drama"])
    assert matches(SHOWS[2], pref)
    assert not matches(SHOWS[0], pref)


def test_genre_constraint_skipped_when_show_has_no_genre():
    assert matches(SHOWS[3], ParsedPreference(genres=["comedy"]))


def test_constraints_are_conjunctive():
    pref = ParsedPreference(show_names=["Hamilton"], genres=["drama"])
    assert not matches(SHOWS[0], pref)


def test_candidate_lottery_date_is_tomorrow():
    assert candidate_lottery_date(date(2026, 10, 18)) == date(2026, 10, 19)


def test_availability_days_of_week():
    weekends = Availability(days_of_week=["Saturday", "Sunday"])
    assert matches_availability(date(2026, 10, 17), weekends)  # Saturday
    assert not matches_availability(date(2026, 10, 20), weekends)  # Tuesday


def test_availability_specific_and_excluded_dates():
    availability = Availability(specific_dates=[date(2026, 11, 1)], exclude_dates=[date(2026, 11, 2)])
    assert matches_availability(date(2026, 11, 1), availability)
    assert not matches_availability(date(2026, 11, 3), availability)
    assert not matches_availability(date(2026, 11, 2), Availability(exclude_dates=[date(2026, 11, 2)]))


def test_availability_applies_only_with_a_lottery_date():
    pref = ParsedPreference(availability=Availability(days_of_week=["Saturday"]))
    assert matches(SHOWS[0], pref)
    assert not matches(SHOWS[0], pref, lottery_date=date(2026, 10, 20))
    assert matches(SHOWS[0], pref, lottery_date=date(2026, 10, 17))


def test_override_false_beats_a_matching_preference():
    override = Override(user_id="u1", show_name="Hamilton", platform=Platform.BROADWAY_DIRECT, should_apply=False)
    decision = resolve(SHOWS[0], ParsedPreference(), override)
    assert decision.matches_preference is True
    assert decision.has_override is True
    assert decision.override_should_apply is False
    assert decision.final_decision is False


@pytest.mark.parametrize("pref", [ParsedPreference(), ParsedPreference(show_names=["Cats"])])
def test_without_override_final_decision_equals_match(pref):
    for show in SHOWS:
        decision = resolve(show, pref)
        assert decision.has_override is False
        assert decision.final_decision == decision.matches_preference


def test_resolve_is_pure():
    pref = ParsedPreference(exclude_shows=["Cats"])
    assert resolve(SHOWS[1], pref) == resolve(SHOWS[1], pref)


def test_missing_preference_matches_nothing():
    for show in SHOWS:
        assert resolve(show, None).matches_preference is False


def test_resolve_catalog_pairs_overrides_by_platform_and_name():
    overrides = [
        Override(user_id="u1", show_name="Cats", platform=Platform.BROADWAY_DIRECT, should_apply=True),
        # Same name on a different platform must not apply
        Override(user_id="u1", show_name="Hamilton", platform=Platform.SOCIAL_TOASTER, should_apply=True),
    ]
    decisions = {d.show.name: d.final_decision for d in resolve_catalog(SHOWS[:2], None, overrides)}
    assert decisions == {"Hamilton": False, "Cats": True}
