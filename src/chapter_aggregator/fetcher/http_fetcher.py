"""Cookie-bearing HTTP fetcher, the primary fetch strategy."""

import logging
from http.cookiejar import LoadError, MozillaCookieJar

import httpx

from chapter_aggregator.config import FetcherConfig
from chapter_aggregator.fetcher.base import BaseFetcher, FetchResult

logger = logging.getLogger(__name__)


class HttpFetcher(BaseFetcher):
    """Plain HTTP fetcher forwarding the user's cookies."""

    name = "http"

    def __init__(
        self,
        config: FetcherConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        """Initialize HTTP client."""
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        if self.config.referer:
            headers["Referer"] = self.config.referer
        self._client = httpx.AsyncClient(
            headers=headers,
            cookies=self._load_cookies(),
            follow_redirects=True,
            timeout=self.config.timeout_ms / 1000,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a page via HTTP."""
        if not self._client:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")

        try:
            response = await self._client.get(url)
            return FetchResult(
                url=url,
                final_url=str(response.url),
                html=response.text,
                status_code=response.status_code,
            )
        except httpx.TimeoutException:
            return FetchResult(
                url=url, final_url=url, html="", status_code=0, error="Request timeout"
            )
        except Exception as e:
            return FetchResult(
                url=url,
                final_url=url,
                html="",
                status_code=0,
                error=f"Network error: {e}",
            )

    def _load_cookies(self) -> MozillaCookieJar | None:
        path = self.config.cookies_file
        if not path:
            return None
        jar = MozillaCookieJar(str(path))
        try:
            jar.load(ignore_discard=True, ignore_expires=True)
        except (OSError, LoadError):
            logger.warning("Could not load cookies from %s", path, exc_info=True)
            return None
        logger.debug("Loaded %d cookies from %s", len(jar), path)
        return jar
