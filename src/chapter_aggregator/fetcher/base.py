"""Fetch strategy interface and result type."""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from chapter_aggregator.config import FetcherConfig


class FetchResult(BaseModel):
    """Outcome of one page request.

    ``status_code`` is 0 when no HTTP response arrived; ``error`` then says why.
    """

    url: str
    final_url: str
    html: str
    status_code: int
    error: str | None = None

    @property
    def success(self) -> bool:
        return 200 <= self.status_code < 400 and not self.error


class BaseFetcher(ABC):
    """A way of downloading pages, used as an async context manager."""

    name: str = "base"

    def __init__(self, config: FetcherConfig):
        self.config = config

    @abstractmethod
    async def fetch(self, url: str) -> FetchResult:
        """Request ``url``; transport problems come back in ``FetchResult.error``."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None
