"""Browser session for Playwright scraping.

Either attaches to an AdsPower profile browser over CDP or launches a local
stealth-patched Chromium. Both modes hand out a single page.
"""

from contextlib import AsyncExitStack
from typing import Optional

from loguru import logger
from playwright.async_api import async_playwright, Browser, BrowserContext, Page
from playwright_stealth import Stealth

from lib.adspower import AdsPowerClient


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BrowserSession:
    """Owns one browser and one page for the lifetime of the context.

    Usage:
        # AdsPower profile (created in the configured group if missing)
        async with BrowserSession(profile_name="TripAdvisor_main") as session:
            await session.page.goto(url)

        # Local Chromium with stealth patches
        async with BrowserSession(headless=True) as session:
            ...
    """

    def __init__(
        self,
        profile_name: Optional[str] = None,
        use_adspower: Optional[bool] = None,
        adspower: Optional[AdsPowerClient] = None,
        headless: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.profile_name = profile_name
        self.use_adspower = use_adspower if use_adspower is not None else profile_name is not None
        self.headless = headless
        self.user_agent = user_agent
        self._adspower = adspower
        self._user_id: Optional[str] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._stack: Optional[AsyncExitStack] = None

    async def __aenter__(self):
        """Start the browser. Any failure here closes what was opened and re-raises."""
        self._stack = AsyncExitStack()
        try:
            self._playwright = await async_playwright().start()
            self._stack.push_async_callback(self._playwright.stop)

            if self.use_adspower:
                await self._connect_adspower()
            else:
                await self._launch_local()
        except Exception:
            await self._stack.aclose()
            raise

        logger.info("Browser initialized successfully")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close page, browser, playwright and the AdsPower browser, in reverse order."""
        if self._stack:
            await self._stack.aclose()
            self._stack = None
        self._page = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session not started. Use 'async with' context manager.")
        return self._page

    @property
    def user_id(self) -> Optional[str]:
        """AdsPower profile id, when attached to an AdsPower browser."""
        return self._user_id

    async def _connect_adspower(self) -> None:
        client = self._adspower or AdsPowerClient()
        await self._stack.enter_async_context(client)

        profile = await client.get_or_create_profile(self.profile_name)
        self._user_id = profile.user_id
        logger.info(f"Using AdsPower profile {profile.name} ({profile.user_id})")

        ws_endpoint, _ = await client.start_browser(profile.user_id)
        self._stack.push_async_callback(self._stop_adspower_browser, client, profile.user_id)

        self._browser = await self._playwright.chromium.connect_over_cdp(ws_endpoint)
        self._stack.push_async_callback(self._browser.close)

        contexts = self._browser.contexts
        self._context = contexts[0] if contexts else await self._browser.new_context()
        self._page = await self._context.new_page()

    async def _launch_local(self) -> None:
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._stack.push_async_callback(self._browser.close)

        self._context = await self._browser.new_context(
            user_agent=self.user_agent,
            viewport={"width": 1280, "height": 800},
            locale="en-US",
        )
        await Stealth().apply_stealth_async(self._context)
        self._page = await self._context.new_page()

    @staticmethod
    async def _stop_adspower_browser(client: AdsPowerClient, user_id: str) -> None:
        try:
            await client.stop_browser(user_id)
        except Exception as e:
            logger.warning(f"Failed to stop AdsPower browser {user_id}: {e}")
