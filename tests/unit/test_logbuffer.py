"""Unit tests for the LogBuffer ring-buffer handler."""

import logging

import pytest

from envclone.logbuffer import LogBuffer, LogEntry


@pytest.fixture
def logger():
    log = logging.getLogger("envclone.tests.logbuffer")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    yield log
    log.handlers.clear()


class TestLogBuffer:
    def test_records_messages(self, logger):
        buffer = LogBuffer(capacity=10)
        buffer.attach(logger)

        logger.info("cloned %d rows into %s", 3, "categories")

        entries = buffer.entries()
        assert len(entries) == 1
        assert entries[0].message == "cloned 3 rows into categories"
        assert entries[0].level == logging.INFO
        assert entries[0].logger_name == "envclone.tests.logbuffer"

    def test_evicts_oldest_first(self, logger):
        buffer = LogBuffer(capacity=3)
        buffer.attach(logger)

        for i in range(5):
            logger.info("message %d", i)

        assert [e.message for e in buffer.entries()] == ["message 2", "message 3", "message 4"]
        assert buffer.evicted == 2
        assert len(buffer) == 3
        assert buffer.capacity == 3

    def test_filter_by_level(self, logger):
        buffer = LogBuffer()
        buffer.attach(logger)

        logger.debug("debug")
        logger.warning("warning")
        logger.error("error")

        assert [e.message for e in buffer.entries(logging.WARNING)] == ["warning", "error"]

    def test_handler_level(self, logger):
        buffer = LogBuffer(level=logging.ERROR)
        buffer.attach(logger)

        logger.warning("ignored")
        logger.error("kept")

        assert [e.message for e in buffer.entries()] == ["kept"]

    def test_clear(self, logger):
        buffer = LogBuffer(capacity=1)
        buffer.attach(logger)
        logger.info("a")
        logger.info("b")

        buffer.clear()

        assert buffer.entries() == []
        assert buffer.evicted == 0

    def test_detach(self, logger):
        buffer = LogBuffer()
        buffer.attach(logger)
        buffer.detach(logger)

        logger.info("not recorded")

        assert buffer.entries() == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError, match="capacity must be positive"):
            LogBuffer(capacity=0)

    def test_instances_are_independent(self, logger):
        first = LogBuffer()
        second = LogBuffer()
        first.attach(logger)

        logger.info("only first")

        assert len(first) == 1
        assert len(second) == 0


class TestLogEntry:
    def test_to_dict(self, logger):
        buffer = LogBuffer()
        buffer.attach(logger)
        logger.warning("careful")

        data = buffer.entries()[0].to_dict()

        assert data["level"] == "WARNING"
        assert data["message"] == "careful"
        assert data["logger"] == "envclone.tests.logbuffer"
        assert "T" in data["timestamp"]

    def test_level_name(self):
        from datetime import UTC, datetime

        entry = LogEntry(datetime.now(UTC), logging.ERROR, "x", "y")
        assert entry.level_name == "ERROR"
