"""Utility functions."""

from chapter_aggregator.utils.backoff import backoff_delay, cancellable_sleep, stagger_delay
from chapter_aggregator.utils.url_utils import make_absolute, normalize_url, sanitize_filename

__all__ = [
    "backoff_delay",
    "cancellable_sleep",
    "stagger_delay",
    "make_absolute",
    "normalize_url",
    "sanitize_filename",
]
