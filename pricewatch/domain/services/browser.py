# pricewatch/domain/services/browser.py
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, AsyncContextManager, Optional
import logging

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    async_playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from pricewatch.core.config import Settings, get_settings
from pricewatch.core.errors import FetchTimeout, NavigationFailed

logger = logging.getLogger(__name__)

"""
Browser automation adapter (Playwright, chromium).
One BrowserSession per on-demand call or per refresh batch; one page per
product. Both are closed on every exit path through `async with`.
"""


class BrowserSession:
    def __init__(self, context: BrowserContext, navigation_timeout_ms: int):
        self.context = context
        self.navigation_timeout_ms = navigation_timeout_ms

    @asynccontextmanager
    async def open_page(self, url: str) -> AsyncIterator[Page]:
        """
        Open a fresh page on `url` (DOM content loaded).
        Navigation timeout -> FetchTimeout, any other load error -> NavigationFailed.
        """
        page = await self.context.new_page()
        try:
            try:
                await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
            except PlaywrightTimeoutError as e:
                raise FetchTimeout(f"Timed out after {self.navigation_timeout_ms}ms loading {url}") from e
            except PlaywrightError as e:
                raise NavigationFailed(f"Could not load {url}: {e.message}") from e
            logger.debug("page loaded url=%s", url)
            yield page
        finally:
            await page.close()


# Factory type accepted by the orchestrators; tests inject a fake one.
BrowserLauncher = Callable[[], AsyncContextManager[BrowserSession]]


@asynccontextmanager
async def launch_browser(settings: Optional[Settings] = None) -> AsyncIterator[BrowserSession]:
    settings = settings or get_settings()
    async with async_playwright() as pw:
        browser: Browser = await pw.chromium.launch(
            headless=settings.BROWSER_HEADLESS,
            args=settings.browser_args,
        )
        logger.info("Browser launched headless=%s", settings.BROWSER_HEADLESS)
        try:
            context = await browser.new_context(user_agent=settings.BROWSER_USER_AGENT)
            yield BrowserSession(context, settings.NAVIGATION_TIMEOUT_MS)
        finally:
            await browser.close()
            logger.info("Browser closed")
