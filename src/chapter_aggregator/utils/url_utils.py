"""URL and filename helpers."""

import re
from urllib.parse import urljoin, urlparse, urlunparse

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")


def normalize_url(url: str) -> str:
    """Normalize a URL by removing fragments and trailing slashes."""
    parsed = urlparse(url.strip())
    normalized = parsed._replace(fragment="")
    path = normalized.path.rstrip("/") if normalized.path != "/" else "/"
    normalized = normalized._replace(path=path, netloc=normalized.netloc.lower())
    return urlunparse(normalized)


def make_absolute(base_url: str | None, href: str) -> str:
    """Convert a potentially relative URL to absolute."""
    if not base_url:
        return href
    return urljoin(base_url, href)


def is_http_url(url: str) -> bool:
    """Check that a URL can be fetched over HTTP(S)."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def sanitize_filename(name: str) -> str:
    """Make a title safe to use as part of a filename."""
    name = _UNSAFE_FILENAME_CHARS.sub("_", name)
    return _WHITESPACE.sub("_", name).strip()
