"""Shared fixtures for the test suite."""

import pytest

from chapter_aggregator.settings_store import SettingsStore
from tests.fakes import RecordingSleep


@pytest.fixture
def store():
    """In-memory settings store with defaults."""
    return SettingsStore(None)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    """Point the default settings store at a temporary file."""
    path = tmp_path / "store.json"
    monkeypatch.setenv("CHAPTER_AGGREGATOR_STORE", str(path))
    return path
