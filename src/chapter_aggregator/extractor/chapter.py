"""Chapter content extraction from fetched pages."""

import logging
import re

from bs4 import BeautifulSoup, Comment, Tag
from pydantic import BaseModel

from chapter_aggregator.config import ExtractorConfig
from chapter_aggregator.errors import ExtractionError

logger = logging.getLogger(__name__)

UNKNOWN_NOVEL = "Unknown Novel"
UNKNOWN_CHAPTER = "Unknown Chapter"

# Class tokens of injected ad, banner and paywall blocks
_JUNK_CLASS_TOKEN = re.compile(r"(^|[-_])(ads?|adsbygoogle|banner|unlock)([-_]|$)", re.IGNORECASE)
_HIDDEN_STYLE = re.compile(r"display\s*:\s*none", re.IGNORECASE)


class ExtractedChapter(BaseModel):
    """Readable content of one chapter page."""

    novel_title: str
    chapter_title: str
    content_html: str
    source_url: str


class ChapterExtractor:
    """Locate titles and chapter text using prioritized CSS selectors."""

    def __init__(self, config: ExtractorConfig | None = None):
        self.config = config or ExtractorConfig()

    def extract(self, html: str, url: str) -> ExtractedChapter:
        """Extract a chapter from page markup.

        Raises:
            ExtractionError: If no content selector matches.
        """
        soup = BeautifulSoup(html or "", "lxml")

        novel_title = self._first_text(soup, self.config.novel_title_selectors) or UNKNOWN_NOVEL
        chapter_title = (
            self._first_text(soup, self.config.chapter_title_selectors) or UNKNOWN_CHAPTER
        )

        content = self._find_content(soup)
        if content is None:
            raise ExtractionError(f"Chapter content not found with any selector: {url}")

        self._strip_unwanted(content)

        return ExtractedChapter(
            novel_title=novel_title,
            chapter_title=chapter_title,
            content_html=content.decode_contents().strip(),
            source_url=url,
        )

    @staticmethod
    def _first_text(soup: BeautifulSoup, selectors: list[str]) -> str | None:
        """Text of the first selector match whose text is non-empty."""
        for selector in selectors:
            elem = soup.select_one(selector)
            if elem is None:
                continue
            text = elem.get_text(strip=True)
            if text:
                return text
        return None

    def _find_content(self, soup: BeautifulSoup) -> Tag | None:
        for selector in self.config.content_selectors:
            elem = soup.select_one(selector)
            if elem is not None:
                logger.debug("Content matched selector %r", selector)
                return elem
        return None

    def _strip_unwanted(self, content: Tag) -> None:
        """Remove ads, scripts, widgets, hidden blocks, and comments in place."""
        for selector in self.config.remove_selectors:
            for elem in content.select(selector):
                elem.decompose()

        for comment in content.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()

        for elem in content.find_all(True):
            if elem.decomposed:
                continue
            classes = elem.get("class") or []
            if any(_JUNK_CLASS_TOKEN.search(token) for token in classes):
                elem.decompose()
                continue
            style = elem.get("style") or ""
            if _HIDDEN_STYLE.search(style):
                elem.decompose()
