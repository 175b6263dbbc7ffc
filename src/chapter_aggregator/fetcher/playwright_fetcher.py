"""Browser-based fetcher, the fallback strategy once a challenge is seen."""

import asyncio
import logging

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from chapter_aggregator.config import FetcherConfig
from chapter_aggregator.fetcher.base import BaseFetcher, FetchResult
from chapter_aggregator.fetcher.challenge import (
    CHALLENGE_SELECTORS,
    CHALLENGE_TITLE_MARKERS,
    body_has_challenge_marker,
)

logger = logging.getLogger(__name__)

_CHALLENGE_CLEARED_JS = """([titles, selector]) => {
    const title = document.title.toLowerCase();
    return !titles.some(m => title.includes(m)) && !document.querySelector(selector);
}"""


class PlaywrightFetcher(BaseFetcher):
    """Fetch pages through a real Chromium browser context.

    The browser sends its own headers and keeps its own cookie jar, and
    given time it runs the JavaScript of challenge interstitials. With
    ``headful_fallback`` the window is visible so the user can solve a
    challenge by hand while the fetch waits.
    """

    name = "browser"

    def __init__(self, config: FetcherConfig, pool_size: int = 5):
        super().__init__(config)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page_pool: asyncio.Queue | None = None
        self._pool_size = pool_size

    async def __aenter__(self):
        """Launch the browser and pre-create the page pool."""
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=not self.config.headful_fallback
            )
            self._context = await self._browser.new_context(
                user_agent=self.config.user_agent,
                viewport={"width": 1280, "height": 720},
            )
            self._page_pool = asyncio.Queue()
            for _ in range(self._pool_size):
                await self._page_pool.put(await self._context.new_page())
        except Exception:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Drain page pool and clean up Playwright resources."""
        if self._page_pool:
            while not self._page_pool.empty():
                page = await self._page_pool.get()
                try:
                    await page.close()
                except Exception:
                    logger.debug("Failed to close page during cleanup", exc_info=True)
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._page_pool = None
        self._context = None
        self._browser = None
        self._playwright = None

    async def fetch(self, url: str) -> FetchResult:
        """Load a page and wait for any challenge interstitial to clear."""
        if not self._context or not self._page_pool:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")

        page = await self._page_pool.get()
        try:
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.config.timeout_ms,
            )
            if response is None:
                return FetchResult(
                    url=url,
                    final_url=url,
                    html="",
                    status_code=0,
                    error="No response received",
                )

            status = response.status
            if await self._wait_for_challenge(page, url):
                # The interstitial navigated to the real page
                status = 200

            return FetchResult(
                url=url,
                final_url=page.url,
                html=await page.content(),
                status_code=status,
            )
        except Exception as e:
            return FetchResult(
                url=url,
                final_url=url,
                html="",
                status_code=0,
                error=f"Browser error: {e}",
            )
        finally:
            await self._return_page_to_pool(page)

    async def _wait_for_challenge(self, page, url: str) -> bool:
        """Wait until challenge markers disappear; True if one was cleared."""
        if not body_has_challenge_marker(await page.content()):
            return False
        if self.config.challenge_wait_ms <= 0:
            return False
        logger.info(
            "Waiting up to %.0fs for challenge on %s", self.config.challenge_wait_ms / 1000, url
        )
        try:
            await page.wait_for_function(
                _CHALLENGE_CLEARED_JS,
                arg=[list(CHALLENGE_TITLE_MARKERS), ", ".join(CHALLENGE_SELECTORS)],
                timeout=self.config.challenge_wait_ms,
            )
            await page.wait_for_load_state("domcontentloaded")
        except Exception:
            logger.debug("Challenge still present on %s", url, exc_info=True)
            return False
        return True

    async def _return_page_to_pool(self, page) -> None:
        """Reset a page and return it to the pool, replacing it if broken."""
        if self._page_pool is None or self._context is None:
            return
        try:
            await page.goto("about:blank", wait_until="load", timeout=5000)
            await self._page_pool.put(page)
        except Exception:
            logger.debug("Page reset failed, replacing page", exc_info=True)
            try:
                await page.close()
            except Exception:
                logger.debug("Failed to close broken page", exc_info=True)
            self._page_pool.put_nowait(await self._context.new_page())
