"""Chapter content extraction from HTML pages."""

from chapter_aggregator.extractor.chapter import ChapterExtractor, ExtractedChapter

__all__ = [
    "ChapterExtractor",
    "ExtractedChapter",
]
