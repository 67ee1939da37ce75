"""Shared fakes for the test suite: no real browser, network or model calls."""
from contextlib import asynccontextmanager
from typing import Optional

import pytest

from automation.heuristics import INTERACTIVE_SELECTOR, SUBMIT_SCAN_SELECTOR
from errors import BrowserLaunchError
from models import LotteryResult, Platform, Show
from pacing import PacingProfile
from stealth import USER_AGENTS


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class EmptyLocator:
    async def count(self):
        return 0

    @property
    def first(self):
        return self

    async def evaluate_all(self, script, arg=None):
        return []

    def locator(self, selector):
        return self


class FakeElement:
    """A single form control that behaves like a one-element Playwright locator."""

    def __init__(self, tag="input", input_type="text", options=None, text="", class_name="", disabled=False):
        self.tag = tag
        self.input_type = input_type
        self.options = options
        self.text = text
        self.class_name = class_name
        self.disabled = disabled
        self.value = ""
        self.selected = None
        self.checked = False
        self.clicks = 0

    async def count(self):
        return 1

    @property
    def first(self):
        return self

    def nth(self, index):
        return self

    def locator(self, selector):
        return EmptyLocator()

    async def click(self):
        self.clicks += 1

    async def fill(self, value):
        self.value = value

    async def press_sequentially(self, text):
        self.value += text

    async def get_attribute(self, name):
        return self.input_type if name == "type" else None

    async def evaluate(self, script, arg=None):
        if "options" in script:
            return self.options if self.tag == "select" else None
        return None

    async def select_option(self, value=None):
        self.selected = value

    async def is_checked(self):
        return self.checked

    async def check(self):
        self.checked = True

    async def text_content(self):
        return self.text


class FakeControls:
    """The interactive-element scan: evaluate_all returns their text and classes."""

    def __init__(self, controls):
        self.controls = controls

    async def count(self):
        return len(self.controls)

    async def evaluate_all(self, script, arg=None):
        return [{"text": c.text, "className": c.class_name, "disabled": c.disabled} for c in self.controls]

    def nth(self, index):
        return self.controls[index]


class FakeScope:
    """
    A page, frame or modal container. `elements` maps an exact selector string
    to what page.locator(selector) should return.
    """

    def __init__(self, url="https://www.luckyseat.com/shows/hadestown-newyork", elements=None,
                 controls=None, modal=None):
        self.url = url
        self.elements = dict(elements or {})
        self.controls = list(controls or [])
        self.modal = modal
        self.visited = []
        self.closed = False

    def locator(self, selector):
        if selector in self.elements:
            return self.elements[selector]
        if selector in (INTERACTIVE_SELECTOR, SUBMIT_SCAN_SELECTOR):
            return FakeControls(self.controls)
        return EmptyLocator()

    # Lets a FakeScope stand in for a modal container locator too
    async def count(self):
        return 1

    @property
    def first(self):
        return self

    async def evaluate(self, script, arg=None):
        return self.modal

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        self.url = url

    async def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, factory):
        self.factory = factory

    async def new_page(self):
        page = FakeScope()
        self.factory.pages.append(page)
        return page


class FakeSessionFactory:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.opened = 0
        self.closed = 0
        self.pages = []
        self.user_agents = []

    def pick_user_agent(self):
        user_agent = USER_AGENTS[len(self.user_agents) % len(USER_AGENTS)]
        self.user_agents.append(user_agent)
        return user_agent

    @asynccontextmanager
    async def session(self):
        if self.fail:
            raise BrowserLaunchError("Could not launch browser: Error")
        self.opened += 1
        try:
            yield FakeSession(self)
        finally:
            self.closed += 1


class FakeAutomation:
    """Records every show it is asked to enter; optionally fails some by name."""

    def __init__(self, failing: Optional[set] = None):
        self.failing = failing or set()
        self.calls = []

    async def apply_to_show(self, page, show: Show, profile, auto_submit=True) -> LotteryResult:
        self.calls.append(show.name)
        if show.name in self.failing:
            return LotteryResult(success=False, show_name=show.name, platform=show.platform,
                                 error="could not find submit button")
        return LotteryResult(success=True, show_name=show.name, platform=show.platform,
                             fields_filled=1, submitted=auto_submit)


class FakeParser:
    def __init__(self, preference=None, error: Optional[Exception] = None, available: bool = True):
        self.preference = preference
        self.error = error
        self.available = available
        self.calls = 0

    async def parse(self, text):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.preference


class FakeScraper:
    def __init__(self, platform: Platform, shows=None, error: Optional[Exception] = None):
        self.platform = platform
        self.shows = shows or []
        self.error = error
        self.calls = 0

    async def scrape(self, session_factory):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.shows)


@pytest.fixture
def instant_pacing():
    return PacingProfile.instant()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hamilton():
    return Show(name="Hamilton", platform=Platform.BROADWAY_DIRECT,
                url="https://lottery.broadwaydirect.com/show/hamilton/", genre="musical")


@pytest.fixture
def cats():
    return Show(name="Cats", platform=Platform.BROADWAY_DIRECT,
                url="https://lottery.broadwaydirect.com/show/cats/", genre="musical")
