import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError, async_playwright

from site_extractor.config import settings
from site_extractor.exceptions import RenderError

logger = logging.getLogger(__name__)


class PageRenderer:
    """Headless Chromium session used to read computed styles.

    Usage::

        async with PageRenderer().open(url) as page:
            data = await page.evaluate("() => document.title")

    Any Playwright failure, during setup or while the caller uses the page,
    surfaces as RenderError. The browser is closed on every exit path.
    """

    def __init__(
        self,
        headless: bool = True,
        user_agent: Optional[str] = None,
        viewport_width: Optional[int] = None,
        viewport_height: Optional[int] = None,
        timeout_secs: Optional[float] = None,
        settle_timeout_secs: Optional[float] = None,
    ):
        self.headless = headless
        self.user_agent = user_agent or settings.USER_AGENT
        self.viewport = {
            "width": viewport_width or settings.VIEWPORT_WIDTH,
            "height": viewport_height or settings.VIEWPORT_HEIGHT,
        }
        self.timeout_ms = int((timeout_secs or settings.RENDER_TIMEOUT_SECS) * 1000)
        self.settle_ms = int((settle_timeout_secs or settings.RENDER_SETTLE_TIMEOUT_SECS) * 1000)

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[Page]:
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=self.headless)
                try:
                    context = await browser.new_context(viewport=self.viewport, user_agent=self.user_agent)
                    page = await context.new_page()
                    await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
                    try:
                        await page.wait_for_load_state("networkidle", timeout=self.settle_ms)
                    except PlaywrightTimeoutError:
                        logger.debug("network never went idle on %s, reading styles anyway", url)
                    yield page
                finally:
                    await browser.close()
        except PlaywrightError as e:
            raise RenderError(f"rendering {url} failed: {e}") from e
