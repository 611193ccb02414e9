"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from toolwrap.logging import StructuredFormatter, get_logger, setup_logging


@pytest.fixture
def restore_toolwrap_logger():
    logger = logging.getLogger("toolwrap")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def _record(level=logging.INFO, msg="hello", **extra):
    record = logging.LogRecord("toolwrap.test", level, "/src/mod.py", 42, msg, None, None, func="fn")
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_basic_fields(self):
        data = json.loads(StructuredFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "toolwrap.test"
        assert data["message"] == "hello"
        assert data["service"] == "toolwrap"
        assert "timestamp" in data
        assert "location" not in data

    def test_location_for_warnings(self):
        data = json.loads(StructuredFormatter().format(_record(logging.WARNING)))
        assert data["location"] == {"file": "/src/mod.py", "line": 42, "function": "fn"}

    def test_extra_fields(self):
        data = json.loads(StructuredFormatter("svc").format(_record(argc=3, obj=object())))
        assert data["argc"] == 3
        assert data["obj"].startswith("<object object")
        assert data["service"] == "svc"

    def test_exception_info(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record(logging.ERROR)
            record.exc_info = sys.exc_info()
        data = json.loads(StructuredFormatter().format(record))
        assert data["exception"] == {"type": "ValueError", "message": "bad"}


class TestSetupLogging:
    def test_json_handler(self, restore_toolwrap_logger):
        logger = setup_logging(logging.DEBUG)
        assert logger.name == "toolwrap"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)
        assert logger.propagate is False

    def test_plain_format(self, restore_toolwrap_logger):
        logger = setup_logging(json_format=False)
        assert not isinstance(logger.handlers[0].formatter, StructuredFormatter)

    def test_repeat_calls_do_not_stack_handlers(self, restore_toolwrap_logger):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_writes_to_stderr(self, restore_toolwrap_logger, capsys):
        setup_logging()
        get_logger("worker").info("ready")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert json.loads(captured.err.strip())["logger"] == "toolwrap.worker"


class TestGetLogger:
    def test_prefix(self):
        assert get_logger("executor").name == "toolwrap.executor"

    def test_module_name_not_prefixed_twice(self):
        assert get_logger("toolwrap.parsers.docker").name == "toolwrap.parsers.docker"

    def test_package_modules_log_under_toolwrap(self, restore_toolwrap_logger, capsys):
        from toolwrap.config import load_config

        setup_logging(logging.WARNING)
        load_config({"TOOLWRAP_MAX_BUFFER": "lots"})
        data = json.loads(capsys.readouterr().err.strip())
        assert data["logger"] == "toolwrap.config"
        assert "TOOLWRAP_MAX_BUFFER" in data["message"]
