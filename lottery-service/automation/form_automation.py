"""
Lottery entry form automation.

Drives one entry attempt through:
    Start -> PlatformDetected -> EntryAffordanceClicked? -> ModalOrFrameResolved?
          -> FieldsDiscovered -> FieldsFilled -> Submitted? -> Done
with Aborted(reason) reachable from any state.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from automation.heuristics import (
    CHECKBOX_FIELDS,
    CHOICE_FIELDS,
    FIELD_SELECTORS,
    FILL_ORDER,
    INTERACTIVE_SELECTOR,
    MAX_SHOW_NAME_LENGTH,
    MODAL_SELECTORS,
    SHOW_NAME_SELECTORS,
    SUBMIT_SCAN_SELECTOR,
    AutomationState,
    ControlCandidate,
    choose_entry_candidate,
    country_aliases,
    detect_platform,
    is_same_origin,
    is_submit_text,
    month_aliases,
    pick_option_value,
    show_name_from_url,
)
from errors import AutomationAborted, AutomationError, NotALotteryPage, RequiredFieldMissing, SubmitControlNotFound
from models import EntrantProfile, LotteryResult, Platform, Show
from pacing import PacingProfile
from scrapers.platforms import get_platform_spec

logger = logging.getLogger(__name__)

# Resolves with the first matching modal selector, or null when the timeout elapses.
# Uses a MutationObserver so the wait ends as soon as the dialog is inserted.
MODAL_WAIT_SCRIPT = """
([selectors, timeout]) => new Promise((resolve) => {
    const visible = (el) => el.tagName === 'IFRAME' || el.tagName === 'DIALOG' ||
        !!(el.offsetWidth || el.offsetHeight || el.getClientRects().length);
    const find = () => {
        for (const selector of selectors) {
            const el = document.querySelector(selector);
            if (el && visible(el)) return selector;
        }
        return null;
    };
    const found = find();
    if (found) return resolve(found);

    let timer = null;
    const observer = new MutationObserver(() => {
        const hit = find();
        if (hit) {
            observer.disconnect();
            clearTimeout(timer);
            resolve(hit);
        }
    });
    observer.observe(document.documentElement, {
        childList: true, subtree: true, attributes: true,
        attributeFilter: ['class', 'style', 'open', 'aria-hidden', 'aria-modal'],
    });
    timer = setTimeout(() => { observer.disconnect(); resolve(null); }, timeout);
})
"""

CONTROL_SCAN_SCRIPT = """
(elements) => elements.map((el) => ({
    text: (el.innerText || el.value || el.textContent || '').trim(),
    className: typeof el.className === 'string' ? el.className : '',
    disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
}))
"""

SELECT_OPTIONS_SCRIPT = """
(el) => el.tagName === 'SELECT'
    ? Array.from(el.options).map((o) => ({ value: o.value, label: (o.textContent || '').trim() }))
    : null
"""

SMOOTH_SCROLL_SCRIPT = "(el) => el.scrollIntoView({ behavior: 'smooth', block: 'center' })"


@dataclass
class DiscoveredFields:
    """Locators for the logical fields found in the form scope; absent fields are simply missing."""
    locators: dict = field(default_factory=dict)

    def get(self, name: str):
        return self.locators.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.locators

    @property
    def names(self) -> list[str]:
        return list(self.locators)


@dataclass
class AutomationOutcome:
    platform: Optional[Platform] = None
    states: list[AutomationState] = field(default_factory=list)
    fields_filled: int = 0
    submitted: bool = False
    show_name: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def enter(self, state: AutomationState):
        self.states.append(state)
        logger.debug(f"Form automation -> {state.value}")


def profile_values(profile: EntrantProfile) -> dict:
    """Values to put in each logical field. Fields without a value are never touched."""
    values = {
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "email": profile.email,
        "quantity": str(profile.ticket_quantity) if profile.ticket_quantity else None,
        "zip_code": profile.zip_code,
        "country": profile.country,
        "terms": True if profile.accept_terms else None,
    }
    dob = profile.date_of_birth
    if dob:
        values.update({
            "dob_month": str(dob.month),
            "dob_day": str(dob.day),
            "dob_year": str(dob.year),
            "dob": dob.strftime("%m/%d/%Y"),
        })
    return {k: v for k, v in values.items() if v}


class FormAutomation:
    """
    Human-paced form filling on a Playwright page (or frame).

    Structural problems (unknown host, missing submit control) are reported on the
    outcome; only browser-level failures outside the state machine reach the caller.
    """

    def __init__(
        self,
        pacing: Optional[PacingProfile] = None,
        modal_timeout_ms: int = 5000,
        navigation_timeout_ms: int = 30000,
    ):
        self.pacing = pacing or PacingProfile.default()
        self.modal_timeout_ms = modal_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms

    async def apply_to_show(self, page, show: Show, profile: EntrantProfile, auto_submit: bool = True) -> LotteryResult:
        """Open the show's lottery page and enter it. Never raises for structural failures."""
        logger.info(f"Applying to {show.name} lottery on {show.platform.value}...")

        try:
            await self.pacing.pause(self.pacing.page_open)
            await page.goto(show.url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
            await self.pacing.pause(self.pacing.page_settle)
            await self._browse_scroll(page)
        except PlaywrightTimeoutError:
            logger.error(f"Navigation timed out for {show.name}")
            return LotteryResult(success=False, show_name=show.name, platform=show.platform,
                                 error="navigation timed out")
        except PlaywrightError as e:
            logger.error(f"Navigation failed for {show.name}: {type(e).__name__}")
            return LotteryResult(success=False, show_name=show.name, platform=show.platform,
                                 error="navigation failed")

        outcome = await self.run(page, page.url, profile, auto_submit, require_email=True)

        if outcome.platform is not None and outcome.platform != show.platform:
            logger.warning(f"{show.name} redirected to a {outcome.platform.value} page")

        if outcome.success:
            logger.info(f"Applied to {show.name} ({outcome.fields_filled} fields, submitted: {outcome.submitted})")
        else:
            logger.error(f"Error applying to {show.name}: {outcome.error}")

        return LotteryResult(
            success=outcome.success,
            show_name=show.name,
            platform=show.platform,
            error=outcome.error,
            fields_filled=outcome.fields_filled,
            submitted=outcome.submitted,
        )

    async def fill_lottery_form(self, page, profile: EntrantProfile, auto_submit: bool = False) -> AutomationOutcome:
        """Fill the form on an already-open lottery page without navigating."""
        return await self.run(page, page.url, profile, auto_submit)

    async def run(
        self,
        page,
        url: str,
        profile: EntrantProfile,
        auto_submit: bool,
        require_email: bool = False,
    ) -> AutomationOutcome:
        outcome = AutomationOutcome()
        outcome.enter(AutomationState.START)

        try:
            outcome.platform = detect_platform(url)
            if outcome.platform is None:
                raise NotALotteryPage()
            outcome.enter(AutomationState.PLATFORM_DETECTED)

            scope = page
            if get_platform_spec(outcome.platform).requires_entry_click:
                if await self.click_entry_affordance(page, outcome.platform):
                    outcome.enter(AutomationState.ENTRY_AFFORDANCE_CLICKED)
                    scope = await self.resolve_form_scope(page)
                    outcome.enter(AutomationState.MODAL_OR_FRAME_RESOLVED)

            fields = await self.discover_fields(scope)
            outcome.enter(AutomationState.FIELDS_DISCOVERED)
            if require_email and "email" not in fields:
                raise RequiredFieldMissing("email")

            outcome.fields_filled = await self.fill_fields(fields, profile)
            outcome.enter(AutomationState.FIELDS_FILLED)

            if auto_submit:
                control = fields.get("submit") or await self.find_submit_control(scope)
                if control is None:
                    raise SubmitControlNotFound()
                await self._human_click(control)
                await self.pacing.pause(self.pacing.submit_settle)
                outcome.submitted = True
                outcome.enter(AutomationState.SUBMITTED)

            outcome.show_name = await self.extract_show_name(page)
            outcome.enter(AutomationState.DONE)

        except AutomationError as e:
            self._abort(outcome, e)
        except PlaywrightTimeoutError:
            self._abort(outcome, AutomationAborted("timed out waiting for the page"))
        except PlaywrightError as e:
            self._abort(outcome, AutomationAborted(f"browser error ({type(e).__name__})"))

        return outcome

    def _abort(self, outcome: AutomationOutcome, error: AutomationError):
        outcome.error = error.reason
        outcome.enter(AutomationState.ABORTED)

    async def click_entry_affordance(self, page, platform: Platform) -> bool:
        """Click the listing's "Enter" control if there is one. False means the form should already be here."""
        spec = get_platform_spec(platform)
        control = None

        if spec.entry_button_selector:
            locator = page.locator(spec.entry_button_selector)
            if await locator.count() > 0:
                control = locator.first

        if control is None:
            interactive = page.locator(INTERACTIVE_SELECTOR)
            scanned = await interactive.evaluate_all(CONTROL_SCAN_SCRIPT)
            candidates = [
                ControlCandidate(index=i, text=item.get("text", ""),
                                 class_name=item.get("className", ""), disabled=item.get("disabled", False))
                for i, item in enumerate(scanned)
            ]
            chosen = choose_entry_candidate(candidates)
            if chosen is not None:
                control = interactive.nth(chosen.index)

        if control is None:
            logger.debug("No entry control found; assuming the form is on the page")
            return False

        await self._human_click(control)
        return True

    async def resolve_form_scope(self, page):
        """Find where the form lives after clicking Enter: a modal, a same-origin iframe, or the page itself."""
        try:
            matched = await asyncio.wait_for(
                page.evaluate(MODAL_WAIT_SCRIPT, [MODAL_SELECTORS, self.modal_timeout_ms]),
                timeout=self.modal_timeout_ms / 1000 + 1,
            )
        except asyncio.TimeoutError:
            matched = None

        if not matched:
            logger.debug("No modal appeared; searching the top-level document")
            return page

        container = page.locator(matched).first
        if matched.startswith("iframe"):
            frame_element = container
        elif await container.locator("iframe").count() > 0:
            frame_element = container.locator("iframe").first
        else:
            logger.debug(f"Form is inside modal {matched}")
            return container

        handle = await frame_element.element_handle()
        frame = await handle.content_frame() if handle else None
        if frame is not None and is_same_origin(frame.url, page.url):
            logger.debug(f"Form is inside a same-origin iframe ({matched})")
            return frame

        # Cross-origin frames are not scriptable here
        logger.debug("Form iframe is cross-origin; searching the top-level document")
        return page if matched.startswith("iframe") else container

    async def discover_fields(self, scope) -> DiscoveredFields:
        fields = DiscoveredFields()
        for name, selectors in FIELD_SELECTORS.items():
            for selector in selectors:
                locator = scope.locator(selector)
                if await locator.count() > 0:
                    fields.locators[name] = locator.first
                    break

        # A combined date-of-birth input is only used when the separate selects are absent
        if "dob" in fields and any(part in fields for part in ("dob_month", "dob_day", "dob_year")):
            del fields.locators["dob"]

        logger.debug(f"Discovered fields: {fields.names}")
        return fields

    async def fill_fields(self, fields: DiscoveredFields, profile: EntrantProfile) -> int:
        """Fill every discovered field that has a value. Returns how many were filled."""
        values = profile_values(profile)
        filled = 0

        for name in FILL_ORDER:
            locator = fields.get(name)
            value = values.get(name)
            if locator is None or value is None:
                continue

            try:
                if name in CHECKBOX_FIELDS:
                    ok = await self._check(locator)
                elif name in CHOICE_FIELDS:
                    ok = await self._choose(locator, name, value, profile)
                else:
                    ok = await self._type(locator, name, value, profile)
            except PlaywrightError as e:
                logger.debug(f"Could not fill {name}: {type(e).__name__}")
                ok = False

            if ok:
                filled += 1
            await self.pacing.pause(self.pacing.inter_field)

        if "captcha" in fields:
            logger.info("CAPTCHA present; it is left for the user")

        return filled

    async def find_submit_control(self, scope):
        for selector in FIELD_SELECTORS["submit"]:
            locator = scope.locator(selector)
            if await locator.count() > 0:
                return locator.first

        buttons = scope.locator(SUBMIT_SCAN_SELECTOR)
        scanned = await buttons.evaluate_all(CONTROL_SCAN_SCRIPT)
        for index, item in enumerate(scanned):
            if not item.get("disabled") and is_submit_text(item.get("text", "")):
                return buttons.nth(index)
        return None

    async def extract_show_name(self, page) -> str:
        for selector in SHOW_NAME_SELECTORS:
            locator = page.locator(selector)
            if await locator.count() == 0:
                continue
            text = " ".join((await locator.first.text_content() or "").split())
            if text and len(text) < MAX_SHOW_NAME_LENGTH:
                return text
        return show_name_from_url(page.url)

    async def _browse_scroll(self, page):
        # Reading behaviour before touching the form
        if self.pacing.should_scroll():
            offset = self.pacing.rng.randint(100, 400)
            await page.evaluate(f"window.scrollBy(0, {offset})")
            await self.pacing.pause(self.pacing.pre_click)

    async def _human_click(self, locator):
        if self.pacing.should_scroll():
            await locator.evaluate(SMOOTH_SCROLL_SCRIPT)
        await self.pacing.pause(self.pacing.pre_click)
        await locator.click()

    async def _type(self, locator, name: str, value: str, profile: EntrantProfile) -> bool:
        await self._human_click(locator)
        if name == "dob" and (await locator.get_attribute("type") or "").lower() == "date":
            await locator.fill(profile.date_of_birth.isoformat())
            return True

        await locator.fill("")
        for char in value:
            await locator.press_sequentially(char)
            await self.pacing.pause(self.pacing.keystroke)
        return True

    async def _choose(self, locator, name: str, value: str, profile: EntrantProfile) -> bool:
        options = await locator.evaluate(SELECT_OPTIONS_SCRIPT)
        if options is None:
            # Not a <select>; treat as free text
            return await self._type(locator, name, value, profile)

        aliases = ()
        if name == "dob_month":
            aliases = month_aliases(profile.date_of_birth.month)
        elif name == "country":
            aliases = country_aliases(value)

        option_value = pick_option_value(options, value, aliases)
        if option_value is None:
            logger.debug(f"No option matches for {name}")
            return False

        if self.pacing.should_scroll():
            await locator.evaluate(SMOOTH_SCROLL_SCRIPT)
        await locator.select_option(value=option_value)
        return True

    async def _check(self, locator) -> bool:
        if await locator.is_checked():
            return True
        if self.pacing.should_scroll():
            await locator.evaluate(SMOOTH_SCROLL_SCRIPT)
        await self.pacing.pause(self.pacing.pre_click)
        await locator.check()
        return True
