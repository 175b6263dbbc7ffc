"""Tests for the bounded event log and its logging handler."""

import logging

import pytest

from chapter_aggregator.event_log import EventLog, EventLogHandler


def test_ring_buffer_keeps_most_recent_entries():
    log = EventLog(max_entries=3)

    for i in range(5):
        log.info(f"message {i}")

    assert [entry.message for entry in log.entries()] == ["message 2", "message 3", "message 4"]


def test_default_capacity_is_one_thousand():
    log = EventLog()

    for i in range(1005):
        log.debug(str(i))

    entries = log.entries()
    assert len(entries) == 1000
    assert entries[0].message == "5"


def test_format_includes_level_and_data():
    log = EventLog()
    log.warning("Slow response", {"url": "https://novel.example/c1"})
    log.error("Failed")

    lines = log.format().splitlines()

    assert lines[0].endswith("[WARN] Slow response")
    assert lines[0].startswith("[") and "Z]" in lines[0]
    assert '"url": "https://novel.example/c1"' in log.format()
    assert lines[-1].endswith("[ERROR] Failed")


def test_disabled_log_drops_entries():
    log = EventLog(enabled=False)
    log.info("ignored")
    log.set_enabled(True)
    log.info("kept")

    assert [entry.message for entry in log.entries()] == ["kept"]


def test_clear():
    log = EventLog()
    log.info("one")

    log.clear()

    assert log.entries() == []


@pytest.mark.asyncio
async def test_export_writes_text_file(tmp_path):
    log = EventLog()
    log.info("Processing complete", {"successful": 3})

    path = await log.export(tmp_path / "logs")

    assert path.name.startswith("chapter-aggregator-logs-")
    assert path.suffix == ".txt"
    text = path.read_text(encoding="utf-8")
    assert "[INFO] Processing complete" in text
    assert '"successful": 3' in text


class TestEventLogHandler:
    """Standard logging records routed into the event log."""

    @pytest.fixture
    def logger(self):
        logger = logging.getLogger("chapter_aggregator.tests.event_log")
        logger.setLevel(logging.DEBUG)
        yield logger
        logger.handlers.clear()

    def test_records_become_entries(self, logger):
        log = EventLog()
        logger.addHandler(EventLogHandler(log))

        logger.warning("Retrying %s", "chapter-1", extra={"data": {"attempt": 2}})
        logger.critical("Boom")

        entries = log.entries()
        assert entries[0].level == "WARN"
        assert entries[0].message == "Retrying chapter-1"
        assert entries[0].data == {"attempt": 2}
        assert entries[1].level == "ERROR"

    def test_non_dict_data_is_ignored(self, logger):
        log = EventLog()
        logger.addHandler(EventLogHandler(log))

        logger.info("Plain", extra={"data": "not a dict"})

        assert log.entries()[0].data is None
