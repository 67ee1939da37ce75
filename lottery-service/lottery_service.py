"""
Apply orchestrator: users, preferences, overrides and lottery applications.
"""
import logging
from datetime import date, datetime
from typing import Callable, Optional

from playwright.async_api import Error as PlaywrightError

from automation.form_automation import FormAutomation
from catalog import CatalogCache, CatalogSnapshot
from config import Settings
from errors import BrowserLaunchError, PreferenceServiceError
from models import ApplySummary, FailureDetail, LotteryResult, Override, ParsedPreference, Platform, Show, ShowDecision, User
from pacing import PacingProfile
from preferences.gemini_parser import PreferenceParser
from preferences.matching import candidate_lottery_date, resolve_catalog
from scrapers.registry import ScraperRegistry
from stealth import BrowserSessionFactory
from storage import KeyValueStore, MemoryStore, OverrideRepository, ResultHistory, UserRepository, new_user_id

logger = logging.getLogger(__name__)


class LotteryService:
    """
    Orchestrates lottery applications.

    Args:
        store: KeyValueStore for users, overrides and history
        catalog: CatalogCache supplying the active shows
        parser: free-text preference parser; None (or unavailable) means nothing matches
        session_factory: BrowserSessionFactory, one session per platform batch
        automation: FormAutomation driving each entry form
        history_limit: results kept per user
        auto_submit: click submit after filling
        today: date provider used to pick the candidate lottery date
    """

    def __init__(
        self,
        store: KeyValueStore,
        catalog: CatalogCache,
        parser: Optional[PreferenceParser] = None,
        session_factory: Optional[BrowserSessionFactory] = None,
        automation: Optional[FormAutomation] = None,
        history_limit: int = 100,
        auto_submit: bool = True,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.catalog = catalog
        self.parser = parser
        self.session_factory = session_factory or BrowserSessionFactory()
        self.automation = automation or FormAutomation()
        self.auto_submit = auto_submit
        self.today = today
        self.users = UserRepository(store)
        self.overrides = OverrideRepository(store)
        self.results = ResultHistory(store, limit=history_limit)

    # --- Users and preferences ---

    async def parse_preferences(self, text: str) -> Optional[ParsedPreference]:
        """Parse free text; any service failure leaves the user with no parsed preference."""
        if not text or not text.strip():
            return None
        if self.parser is None or not self.parser.available:
            logger.info("Preference parsing not configured; only overrides will apply")
            return None
        try:
            return await self.parser.parse(text)
        except PreferenceServiceError as e:
            logger.warning(f"Failed to parse preferences: {type(e).__name__}")
            return None

    async def create_user(
        self,
        email: str,
        preferences: str = "",
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        **profile,
    ) -> User:
        user = User(
            id=new_user_id(),
            email=email,
            first_name=first_name,
            last_name=last_name,
            preferences=preferences,
            **profile,
        )
        user.parsed_preferences = await self.parse_preferences(preferences)
        await self.users.save(user)
        logger.info(f"Created user {user.id}")
        return user

    async def update_user_preferences(self, user_id: str, preferences: str) -> User:
        user = await self.users.require(user_id)
        parsed = await self.parse_preferences(preferences)
        updated = user.model_copy(update={
            "preferences": preferences,
            "parsed_preferences": parsed,
            "updated_at": datetime.now(),
        })
        await self.users.save(updated)
        return updated

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.users.get(user_id)

    async def list_users(self) -> list[User]:
        return await self.users.list_all()

    # --- Overrides ---

    async def set_override(self, user_id: str, platform: Platform, show_name: str, should_apply: bool) -> Override:
        await self.users.require(user_id)
        override = await self.overrides.set(user_id, platform, show_name, should_apply)
        logger.info(f"Override for {user_id}: {show_name} ({Platform(platform).value}) -> {should_apply}")
        return override

    async def delete_override(self, user_id: str, platform: Platform, show_name: str) -> None:
        await self.overrides.delete(user_id, platform, show_name)

    async def list_overrides(self, user_id: str) -> list[Override]:
        return await self.overrides.list_for_user(user_id)

    # --- Catalog ---

    async def get_shows(self, force_refresh: bool = False) -> CatalogSnapshot:
        return await self.catalog.get(force_refresh)

    async def refresh_shows(self) -> CatalogSnapshot:
        return await self.catalog.get(force_refresh=True)

    async def resolve_shows_for_user(self, user: User) -> list[ShowDecision]:
        shows = await self.catalog.active_shows()
        overrides = await self.overrides.list_for_user(user.id)
        lottery_date = candidate_lottery_date(self.today())
        return resolve_catalog(shows, user.parsed_preferences, overrides, lottery_date)

    # --- Applications ---

    async def apply_for_user(self, user_id: str) -> list[LotteryResult]:
        """
        Enter every show this user resolved to "yes".
        One browser session per platform; shows within a platform run one after another.
        """
        user = await self.users.require(user_id)
        decisions = await self.resolve_shows_for_user(user)
        selected = [d.show for d in decisions if d.final_decision]
        logger.info(f"Found {len(selected)} matching shows for user {user.id}")

        by_platform: dict[Platform, list[Show]] = {}
        for show in selected:
            by_platform.setdefault(show.platform, []).append(show)

        results: list[LotteryResult] = []
        profile = user.profile()

        try:
            for platform, shows in by_platform.items():
                logger.info(f"Applying to {len(shows)} {platform.value} lotteries for user {user.id}")
                async with self.session_factory.session() as session:
                    for show in shows:
                        results.append(await self._apply_to_show(session, show, profile))
        finally:
            # Entries already submitted stay in history even if a later platform aborts
            await self.results.record(user.id, results)
        return results

    async def _apply_to_show(self, session, show: Show, profile) -> LotteryResult:
        page = None
        try:
            page = await session.new_page()
            return await self.automation.apply_to_show(page, show, profile, self.auto_submit)
        except PlaywrightError as e:
            logger.error(f"Browser error applying to {show.name}: {type(e).__name__}")
            return LotteryResult(success=False, show_name=show.name, platform=show.platform, error="browser error")
        finally:
            if page is not None:
                try:
                    await page.close()
                except PlaywrightError as e:
                    logger.warning(f"Error closing page: {type(e).__name__}")

    async def apply_for_all_users(self) -> dict[str, list[LotteryResult]]:
        """Apply for every user. A browser that won't launch stops the whole batch."""
        results_by_user: dict[str, list[LotteryResult]] = {}

        # No catalog is a batch failure, not a per-user one
        await self.catalog.active_shows()

        for user in await self.users.list_all():
            logger.info(f"Processing user: {user.id}")
            try:
                results_by_user[user.id] = await self.apply_for_user(user.id)
            except BrowserLaunchError:
                raise
            except Exception as e:
                logger.error(f"Error processing user {user.id}: {type(e).__name__}")
                results_by_user[user.id] = []

        return results_by_user

    async def history(self, user_id: str, limit: Optional[int] = None) -> list[LotteryResult]:
        return await self.results.recent(user_id, limit)

    @staticmethod
    def summarize(results: list[LotteryResult], user_id: Optional[str] = None) -> ApplySummary:
        failures = [
            FailureDetail(show_name=r.show_name, platform=r.platform, error=r.error or "unknown error")
            for r in results if not r.success
        ]
        return ApplySummary(
            user_id=user_id,
            successful=sum(1 for r in results if r.success),
            failed=len(failures),
            failures=failures,
        )


def create_service(settings: Settings, store: Optional[KeyValueStore] = None) -> LotteryService:
    """Wire the production service from settings."""
    store = store or MemoryStore()
    pacing = PacingProfile.default(settings.platform_delay_seconds)
    session_factory = BrowserSessionFactory(
        headless=settings.browser_headless,
        navigation_timeout_ms=settings.navigation_timeout_ms,
    )
    registry = ScraperRegistry(pacing=pacing)

    async def scrape():
        return await registry.scrape_all(session_factory)

    catalog = CatalogCache(scrape, store=store, ttl_seconds=settings.catalog_ttl_seconds)
    parser = PreferenceParser(settings.google_api_key, settings.gemini_model)
    automation = FormAutomation(
        pacing=pacing,
        modal_timeout_ms=settings.modal_timeout_ms,
        navigation_timeout_ms=settings.navigation_timeout_ms,
    )

    return LotteryService(
        store=store,
        catalog=catalog,
        parser=parser,
        session_factory=session_factory,
        automation=automation,
        history_limit=settings.history_limit,
        auto_submit=settings.auto_submit,
    )
