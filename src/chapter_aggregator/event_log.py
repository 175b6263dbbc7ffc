"""Bounded in-memory log of pipeline events, exportable as plain text."""

import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles
from pydantic import BaseModel

MAX_ENTRIES = 1000


class LogEntry(BaseModel):
    """A single buffered log line."""

    timestamp: datetime
    level: str
    message: str
    data: dict[str, Any] | None = None

    def format(self) -> str:
        stamp = self.timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        line = f"[{stamp}] [{self.level}] {self.message}"
        if self.data:
            line += "\n" + json.dumps(self.data, indent=2, default=str)
        return line


class EventLog:
    """Ring buffer keeping the most recent ``max_entries`` log entries."""

    def __init__(self, max_entries: int = MAX_ENTRIES, enabled: bool = True):
        self.enabled = enabled
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)

    def log(self, level: str, message: str, data: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        self._entries.append(
            LogEntry(
                timestamp=datetime.now(timezone.utc),
                level=level.upper(),
                message=message,
                data=data,
            )
        )

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        self.log("DEBUG", message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        self.log("INFO", message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        self.log("WARN", message, data)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        self.log("ERROR", message, data)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def format(self) -> str:
        """All buffered entries, one ``[timestamp] [LEVEL] message`` block each."""
        return "\n".join(entry.format() for entry in self._entries)

    async def export(self, directory: Path) -> Path:
        """Write the buffered log to a timestamped text file in ``directory``."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        path = directory / f"chapter-aggregator-logs-{stamp}.txt"
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(self.format())
        return path


class EventLogHandler(logging.Handler):
    """Route standard logging records into an :class:`EventLog`.

    Structured detail is passed with ``extra={"data": {...}}``.
    """

    _LEVEL_NAMES = {"WARNING": "WARN", "CRITICAL": "ERROR"}

    def __init__(self, event_log: EventLog, level: int = logging.DEBUG):
        super().__init__(level)
        self.event_log = event_log

    def emit(self, record: logging.LogRecord) -> None:
        try:
            data = getattr(record, "data", None)
            level = self._LEVEL_NAMES.get(record.levelname, record.levelname)
            self.event_log.log(
                level,
                record.getMessage(),
                data if isinstance(data, dict) else None,
            )
        except Exception:
            self.handleError(record)
