"""Headless browser session for JavaScript-rendered catalog pages."""

import logging
import random
from typing import Callable, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from src.config import settings
from src.ingest.rules import RULES_V1, ExtractionRules

logger = logging.getLogger(__name__)


# Realistic user agents for rotation
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
]

BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]

# Tags zero-size elements so the static extraction pass can skip them
FLAG_ZERO_SIZE_SCRIPT = """
(selector) => {
    let flagged = 0;
    document.querySelectorAll(selector).forEach((el) => {
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) {
            el.setAttribute('data-zero-size', '1');
            flagged += 1;
        }
    });
    return flagged;
}
"""


class BrowserSession:
    """
    One sequential Playwright session with a bounded navigation budget.

    Navigation and selector waits never raise: timeouts and navigation
    errors are logged and reported as False so callers degrade to
    "no data from this step".
    """

    def __init__(
        self,
        max_requests: int = 3,
        headless: Optional[bool] = None,
        rules: ExtractionRules = RULES_V1,
    ):
        """
        Args:
            max_requests: Maximum number of page navigations for this session
            headless: Override the headless setting
            rules: Rule table supplying the cookie-consent selectors
        """
        self.max_requests = max_requests
        self.headless = settings.headless if headless is None else headless
        self.rules = rules
        self.requests_made = 0

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def __aenter__(self) -> "BrowserSession":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=BROWSER_ARGS,
        )
        self._context = await self._browser.new_context(
            user_agent=random.choice(USER_AGENTS),
            viewport={"width": 1366, "height": 900},
            locale="en-GB",
        )
        self._page = await self._context.new_page()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        """Close page, context, browser and driver."""
        for resource in (self._page, self._context, self._browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.debug(f"Error closing browser resource: {e}")
        self._page = self._context = self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("BrowserSession used outside of 'async with'")
        return self._page

    async def goto(
        self,
        url: str,
        wait_until: str = "domcontentloaded",
        timeout_ms: Optional[int] = None,
    ) -> bool:
        """Navigate to a URL. Returns False on timeout, error or exhausted budget."""
        if self.requests_made >= self.max_requests:
            logger.warning(
                f"Request budget exhausted ({self.max_requests}); skipping {url}"
            )
            return False
        self.requests_made += 1

        try:
            await self.page.goto(
                url,
                wait_until=wait_until,
                timeout=timeout_ms or settings.navigation_timeout_ms,
            )
            return True
        except PlaywrightTimeoutError:
            logger.warning(f"Navigation timed out: {url}")
        except PlaywrightError as e:
            logger.warning(f"Navigation failed for {url}: {e}")
        return False

    async def wait_for(
        self,
        selector: str,
        state: str = "visible",
        timeout_ms: int = 5000,
    ) -> bool:
        """Wait for a selector to reach a state; False on timeout."""
        try:
            await self.page.wait_for_selector(selector, state=state, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            logger.debug(f"Selector wait timed out ({state}): {selector[:60]}")
        except PlaywrightError as e:
            logger.debug(f"Selector wait failed: {selector[:60]} - {e}")
        return False

    async def wait_for_idle(self, timeout_ms: Optional[int] = None) -> bool:
        """Best-effort wait for the network to go quiet."""
        try:
            await self.page.wait_for_load_state(
                "networkidle", timeout=timeout_ms or settings.navigation_timeout_ms
            )
            return True
        except (PlaywrightTimeoutError, PlaywrightError) as e:
            logger.debug(f"Network idle wait skipped: {e}")
            return False

    async def dismiss_cookie_consent(self) -> None:
        """
        Close the cookie-consent banner if present.

        Prefers "reject all", falls back to "accept all", then waits for the
        banner to disappear. Never raises.
        """
        rules = self.rules
        try:
            banner = await self.page.query_selector(rules.cookie_banner)
            if not banner:
                return

            logger.info("Cookie banner detected; attempting to dismiss")
            if await self._is_visible(rules.cookie_reject):
                await self.page.click(rules.cookie_reject)
                logger.info("Clicked Reject All")
            elif await self._is_visible(rules.cookie_accept):
                await self.page.click(rules.cookie_accept)
                logger.info("Clicked Accept All (Reject not found)")

            if await self.wait_for(
                rules.cookie_banner,
                state="hidden",
                timeout_ms=settings.cookie_banner_timeout_ms,
            ):
                logger.info("Cookie banner closed")
            else:
                logger.warning("Cookie banner did not disappear quickly; continuing anyway")
        except Exception as e:
            logger.warning(f"Cookie handling skipped: {e}")

    async def _is_visible(self, selector: str) -> bool:
        try:
            return await self.page.is_visible(selector)
        except PlaywrightError:
            return False

    async def content(self, flag_hidden: Optional[str] = None) -> str:
        """
        Serialize the current DOM.

        Args:
            flag_hidden: Optional selector whose zero-size matches get a
                data-zero-size attribute before serialization
        """
        try:
            if flag_hidden:
                flagged = await self.page.evaluate(FLAG_ZERO_SIZE_SCRIPT, flag_hidden)
                if flagged:
                    logger.debug(f"Flagged {flagged} zero-size elements")
            return await self.page.content()
        except PlaywrightError as e:
            logger.warning(f"Failed to read page content: {e}")
            return ""


BrowserFactory = Callable[..., BrowserSession]


def new_browser_session(max_requests: int = 3) -> BrowserSession:
    """Default factory used by the crawl components."""
    return BrowserSession(max_requests=max_requests)
