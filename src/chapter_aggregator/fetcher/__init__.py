"""Fetch strategies and challenge classification."""

from chapter_aggregator.fetcher.base import BaseFetcher, FetchResult
from chapter_aggregator.fetcher.challenge import is_challenge
from chapter_aggregator.fetcher.http_fetcher import HttpFetcher
from chapter_aggregator.fetcher.playwright_fetcher import PlaywrightFetcher

__all__ = [
    "BaseFetcher",
    "FetchResult",
    "HttpFetcher",
    "PlaywrightFetcher",
    "is_challenge",
]
