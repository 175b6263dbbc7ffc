"""Output document assembly and writing."""

from chapter_aggregator.output.reader import ReaderDocument, assemble, content_hash
from chapter_aggregator.output.single_file import SingleFileOutput

__all__ = [
    "ReaderDocument",
    "SingleFileOutput",
    "assemble",
    "content_hash",
]
