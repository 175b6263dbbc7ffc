"""Chapter work lists: loading from files and range selection."""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from chapter_aggregator.errors import EmptyWorkListError
from chapter_aggregator.utils.url_utils import is_http_url, make_absolute, normalize_url

logger = logging.getLogger(__name__)


class WorkItem(BaseModel):
    """One chapter to download. Identity is the URL."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    ordinal_index: int


def load_work_items(path: Path, base_url: str | None = None) -> list[WorkItem]:
    """Read a work list from a JSON array or a line-oriented text file.

    JSON files hold ``[{"title": ..., "url": ...}, ...]``. Text files hold one
    ``url`` or ``title<TAB>url`` per line; blank lines and ``#`` comments are
    skipped. Relative URLs resolve against ``base_url`` and repeated URLs keep
    their first occurrence.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Work list not found: {path}")

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json" or text.lstrip().startswith("["):
        pairs = _parse_json(text)
    else:
        pairs = _parse_lines(text)
    return build_work_items(pairs, base_url)


def build_work_items(
    pairs: list[tuple[str | None, str]], base_url: str | None = None
) -> list[WorkItem]:
    """Turn ``(title, url)`` pairs into ordered, de-duplicated work items."""
    items: list[WorkItem] = []
    seen: set[str] = set()
    for title, href in pairs:
        url = make_absolute(base_url, href.strip())
        if not is_http_url(url):
            logger.warning("Skipping non-HTTP chapter URL: %s", href)
            continue
        norm = normalize_url(url)
        if norm in seen:
            continue
        seen.add(norm)
        index = len(items)
        items.append(
            WorkItem(
                title=(title or "").strip() or f"Chapter {index + 1}",
                url=url,
                ordinal_index=index,
            )
        )
    return items


def select_range(
    items: list[WorkItem], start: int | None = None, end: int | None = None
) -> list[WorkItem]:
    """Keep chapters ``start`` through ``end`` (1-based, inclusive).

    Bounds are clamped to the list. Ordinal indexes are kept so results can
    still be matched to their source position.
    """
    if start is None and end is None:
        selected = list(items)
    else:
        first = max(1, start or 1)
        last = min(len(items), end or len(items))
        selected = items[first - 1 : last]
    if not selected:
        raise EmptyWorkListError("No chapters in selected range")
    return selected


def _parse_json(text: str) -> list[tuple[str | None, str]]:
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("JSON work list must be an array")
    pairs: list[tuple[str | None, str]] = []
    for entry in data:
        if isinstance(entry, str):
            pairs.append((None, entry))
        elif isinstance(entry, dict) and entry.get("url"):
            pairs.append((entry.get("title"), str(entry["url"])))
        else:
            logger.warning("Skipping malformed work list entry: %r", entry)
    return pairs


def _parse_lines(text: str) -> list[tuple[str | None, str]]:
    pairs: list[tuple[str | None, str]] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "\t" in line:
            title, url = line.rsplit("\t", 1)
            pairs.append((title, url))
        else:
            pairs.append((None, line))
    return pairs
