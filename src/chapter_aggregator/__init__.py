"""Aggregate serialized-fiction chapters into one offline reading document."""

__version__ = "0.1.0"
