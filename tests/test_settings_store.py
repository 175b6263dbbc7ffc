"""Tests for the persisted settings store."""

import json

import pytest

from chapter_aggregator.config import Settings
from chapter_aggregator.errors import SettingsError
from chapter_aggregator.settings_store import SETTINGS_KEY, SettingsStore, default_store_path


def test_defaults_when_store_missing(tmp_path):
    store = SettingsStore(tmp_path / "store.json")

    assert store.snapshot() == Settings()
    assert store.get("batch_size") == 5
    assert store.get("base_delay_ms") == 2000
    assert store.get("max_retries") == 3
    assert store.get("logging_enabled") is True
    assert store.get("compact_ui") is False


def test_set_persists_immediately(tmp_path):
    path = tmp_path / "store.json"
    store = SettingsStore(path)

    store.set("batch_size", 8)

    saved = json.loads(json.loads(path.read_text())[SETTINGS_KEY])
    assert saved["batch_size"] == 8
    assert SettingsStore(path).get("batch_size") == 8


def test_set_coerces_string_values(store):
    store.set("base_delay_ms", "4000")
    store.set("compact_ui", "true")

    assert store.get("base_delay_ms") == 4000
    assert store.get("compact_ui") is True


@pytest.mark.parametrize(
    "key,value",
    [("batch_size", 0), ("batch_size", 21), ("base_delay_ms", 499), ("max_retries", 11)],
)
def test_out_of_range_values_rejected(store, key, value):
    with pytest.raises(SettingsError):
        store.set(key, value)

    assert store.get(key) == getattr(Settings(), key)


def test_unknown_key_rejected(store):
    with pytest.raises(SettingsError, match="Unknown setting"):
        store.set("parallelism", 3)
    with pytest.raises(SettingsError):
        store.get("parallelism")


def test_partial_blob_merges_over_defaults(tmp_path):
    path = tmp_path / "store.json"
    path.write_text(json.dumps({SETTINGS_KEY: json.dumps({"max_retries": 7})}))

    settings = SettingsStore(path).snapshot()

    assert settings.max_retries == 7
    assert settings.batch_size == 5


def test_invalid_value_only_resets_its_own_key(tmp_path):
    path = tmp_path / "store.json"
    saved = {"batch_size": 99, "max_retries": 7, "compact_ui": True, "threads": 4}
    path.write_text(json.dumps({SETTINGS_KEY: json.dumps(saved)}))

    settings = SettingsStore(path).snapshot()

    assert settings.batch_size == 5
    assert settings.max_retries == 7
    assert settings.compact_ui is True


@pytest.mark.parametrize(
    "content",
    [
        "not json at all",
        json.dumps({SETTINGS_KEY: "{broken"}),
        json.dumps({SETTINGS_KEY: json.dumps({"batch_size": 99})}),
        json.dumps({SETTINGS_KEY: json.dumps(["a", "list"])}),
    ],
)
def test_corrupt_store_falls_back_to_defaults(tmp_path, content):
    path = tmp_path / "store.json"
    path.write_text(content)

    assert SettingsStore(path).snapshot() == Settings()


def test_other_keys_are_preserved(tmp_path):
    path = tmp_path / "store.json"
    path.write_text(json.dumps({"other_tool": "keep me"}))

    SettingsStore(path).set("compact_ui", True)

    data = json.loads(path.read_text())
    assert data["other_tool"] == "keep me"
    assert SETTINGS_KEY in data


def test_reset_restores_defaults(tmp_path):
    path = tmp_path / "store.json"
    store = SettingsStore(path)
    store.set("batch_size", 10)

    store.reset()

    assert store.get("batch_size") == 5
    assert SettingsStore(path).get("batch_size") == 5


def test_snapshot_is_independent(store):
    snapshot = store.snapshot()

    store.set("batch_size", 9)

    assert snapshot.batch_size == 5


def test_default_path_honours_environment(store_path):
    assert default_store_path() == store_path
