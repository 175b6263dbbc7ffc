"""Persistent key-value store for pipeline settings."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from chapter_aggregator.config import Settings
from chapter_aggregator.errors import SettingsError

logger = logging.getLogger(__name__)

SETTINGS_KEY = "novelbin_settings"
STORE_ENV_VAR = "CHAPTER_AGGREGATOR_STORE"


def default_store_path() -> Path:
    """Location of the key-value store file."""
    override = os.environ.get(STORE_ENV_VAR)
    if override:
        return Path(override)
    return Path.home() / ".chapter-aggregator" / "store.json"


class SettingsStore:
    """Settings merged over defaults and persisted as one JSON blob.

    The backing file is a flat key-value map of strings, the settings blob
    living under ``SETTINGS_KEY``. Other keys in the file are preserved.
    With ``path=None`` nothing is read or written.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._settings = self.load()

    def load(self) -> Settings:
        """Read settings from disk, merged key by key over the defaults.

        An unreadable blob yields the defaults; an invalid value only
        resets its own key.
        """
        raw = self._read_store().get(SETTINGS_KEY)
        if raw is None:
            return Settings()
        try:
            saved = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Stored settings unreadable, using defaults", exc_info=True)
            return Settings()
        if not isinstance(saved, dict):
            logger.debug("Stored settings are not an object, using defaults")
            return Settings()

        settings = Settings()
        for key, value in saved.items():
            if key not in Settings.model_fields:
                continue
            try:
                settings = Settings.model_validate({**settings.model_dump(), key: value})
            except ValidationError:
                logger.debug("Ignoring invalid stored value for %s: %r", key, value)
        return settings

    def get(self, key: str) -> Any:
        if key not in Settings.model_fields:
            raise SettingsError(f"Unknown setting: {key}")
        return getattr(self._settings, key)

    def set(self, key: str, value: Any) -> None:
        """Validate and store one setting, persisting immediately."""
        if key not in Settings.model_fields:
            raise SettingsError(f"Unknown setting: {key}")
        try:
            self._settings = Settings.model_validate(
                {**self._settings.model_dump(), key: value}
            )
        except ValidationError as e:
            raise SettingsError(f"Invalid value for {key}: {value!r}") from e
        self.save()

    def reset(self) -> None:
        """Restore defaults and persist them."""
        self._settings = Settings()
        self.save()

    def snapshot(self) -> Settings:
        """Return an independent copy of the current settings."""
        return self._settings.model_copy()

    def save(self) -> None:
        if self.path is None:
            return
        store = self._read_store()
        store[SETTINGS_KEY] = self._settings.model_dump_json()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(store, indent=2), encoding="utf-8")
        logger.debug("Settings saved to %s", self.path)

    def _read_store(self) -> dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.debug("Settings store %s unreadable", self.path, exc_info=True)
            return {}
        return data if isinstance(data, dict) else {}
