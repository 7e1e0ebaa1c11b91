"""
Playwright adapter that turns a URL into its post-script DOM.

The page is loaded in Chromium, scrolled to the bottom so lazy images get
their real sources, and serialized once the settle delay has passed.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

from playwright.async_api import (
    async_playwright,
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeout,
)

from ..errors import PageLoadFailure
from ..utils.constants import DEFAULT_PAGE_TIMEOUT, DEFAULT_SETTLE_DELAY, DEFAULT_USER_AGENT
from ..utils.log import get_logger


SCROLL_TO_BOTTOM = """
() => {
    const body = document.body;
    if (!body) return 0;
    window.scrollTo(0, body.scrollHeight);
    return body.scrollHeight;
}
"""

LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--no-sandbox',
    '--disable-dev-shm-usage',
]

VIEWPORT = {"width": 1920, "height": 1080}


class PageRenderer:
    """
    Headless Chromium session for capturing rendered pages.

    Usable as an async context manager; render_page() also starts the
    browser on demand.
    """

    def __init__(
        self,
        timeout: int = DEFAULT_PAGE_TIMEOUT,
        wait_until: str = "networkidle",
        headless: bool = True,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        user_agent: str = DEFAULT_USER_AGENT,
        max_scrolls: int = 5
    ):
        """
        Args:
            timeout: Navigation timeout in milliseconds
            wait_until: Load state that ends navigation
            headless: Hide the browser window
            settle_delay: Seconds to wait after the last scroll
            user_agent: User agent of the browser context
            max_scrolls: Upper bound on scroll passes for pages that grow
                while scrolling
        """
        self.timeout = timeout
        self.wait_until = wait_until
        self.headless = headless
        self.settle_delay = settle_delay
        self.user_agent = user_agent
        self.max_scrolls = max(1, max_scrolls)
        self.logger = get_logger("renderer")

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @property
    def running(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        """
        Launch Chromium.

        Raises:
            PageLoadFailure: If the browser cannot be launched
        """
        if self.running:
            return

        self.logger.debug(f"Launching Chromium (headless={self.headless})")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS
            )
        except PlaywrightError as e:
            await self.stop()
            raise PageLoadFailure(f"Could not launch browser: {e}") from e

    async def stop(self) -> None:
        """Close the browser and the Playwright driver."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def _page(self) -> AsyncIterator[Page]:
        """Open a page in a fresh browser context, closing both afterwards."""
        context = await self._browser.new_context(
            user_agent=self.user_agent,
            viewport=VIEWPORT,
            ignore_https_errors=True,
        )
        try:
            yield await context.new_page()
        finally:
            await context.close()

    async def render_page(self, url: str) -> Tuple[str, str]:
        """
        Render a page and serialize its DOM.

        Args:
            url: Page to render

        Returns:
            Tuple of (html, final_url); final_url reflects redirects

        Raises:
            PageLoadFailure: On navigation errors, timeouts or HTTP errors
        """
        await self.start()

        try:
            async with self._page() as page:
                await self._load(page, url)
                await self._settle(page)
                html = await page.content()
                final_url = page.url
        except PlaywrightTimeout as e:
            raise PageLoadFailure(
                f"Timed out after {self.timeout}ms loading {url}"
            ) from e
        except PlaywrightError as e:
            raise PageLoadFailure(f"Could not load {url}: {e.message}") from e

        if final_url != url:
            self.logger.debug(f"{url} redirected to {final_url}")
        self.logger.info(f"Rendered {final_url} ({len(html)} characters)")
        return html, final_url

    async def _load(self, page: Page, url: str) -> None:
        response = await page.goto(url, wait_until=self.wait_until, timeout=self.timeout)
        if response is None:
            raise PageLoadFailure(f"No response for {url}")
        if response.status >= 400:
            raise PageLoadFailure(f"HTTP {response.status} loading {url}")

    async def _settle(self, page: Page) -> None:
        """Scroll until the document stops growing, then wait settle_delay."""
        height = await page.evaluate(SCROLL_TO_BOTTOM)
        for _ in range(self.max_scrolls - 1):
            await page.wait_for_timeout(250)
            grown = await page.evaluate(SCROLL_TO_BOTTOM)
            if grown <= height:
                break
            height = grown

        await asyncio.sleep(self.settle_delay)

    async def __aenter__(self) -> 'PageRenderer':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
