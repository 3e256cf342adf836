"""
Tests for the logging configuration module.

Tests cover:
- Log directory and file creation
- Log level configuration via argument and environment variable
- Per-module logger naming
- Log rotation settings
- Rich console handler for the command line
"""

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

import pytest
from rich.logging import RichHandler

from taskbox.logging_config import (
    BACKUP_COUNT,
    MAX_BYTES,
    get_logger,
    setup_logging,
)


@pytest.fixture
def mock_log_dir(tmp_path, monkeypatch):
    """Point LOG_DIR and LOG_FILE at a temporary directory."""
    log_dir = tmp_path / ".taskbox" / "logs"
    log_file = log_dir / "taskbox.log"

    monkeypatch.setattr("taskbox.logging_config.LOG_DIR", log_dir)
    monkeypatch.setattr("taskbox.logging_config.LOG_FILE", log_file)

    return log_dir, log_file


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging handlers before and after each test."""
    root_logger = logging.getLogger()
    saved = list(root_logger.handlers)
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)

    yield

    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers[:] = saved
    root_logger.setLevel(logging.WARNING)


def flush_handlers():
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestLogFile:
    """Test suite for log directory and file creation."""

    def test_log_directory_created_automatically(self, mock_log_dir):
        """Log directory and parents are created on setup."""
        log_dir, _ = mock_log_dir
        assert not log_dir.exists()

        setup_logging()

        assert log_dir.is_dir()

    def test_log_messages_written_to_file(self, mock_log_dir):
        """Messages reach the file with module, level and timestamp."""
        _, log_file = mock_log_dir

        setup_logging()
        get_logger("taskbox.services.reorder").warning("Reorder skipped")
        flush_handlers()

        content = log_file.read_text()
        assert "taskbox.services.reorder" in content
        assert "WARNING" in content
        assert "Reorder skipped" in content
        assert re.search(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", content)

    def test_rotating_file_handler_configured(self, mock_log_dir):
        setup_logging()

        handlers = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]

        assert len(handlers) == 1
        assert handlers[0].maxBytes == MAX_BYTES
        assert handlers[0].backupCount == BACKUP_COUNT

    def test_setup_twice_does_not_duplicate_handlers(self, mock_log_dir):
        setup_logging()
        setup_logging()

        assert len(logging.getLogger().handlers) == 1


class TestPerModuleLogger:
    """Test suite for per-module logger naming."""

    def test_logger_name_matches_provided_name(self):
        logger = get_logger("taskbox.services.task_service")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "taskbox.services.task_service"

    def test_same_module_gets_same_logger(self):
        assert get_logger("same_module") is get_logger("same_module")


class TestLogLevelConfiguration:
    """Test suite for log level configuration."""

    def test_default_log_level_is_info(self, mock_log_dir):
        with patch.dict(os.environ, {}, clear=True):
            setup_logging()

        assert logging.getLogger().level == logging.INFO

    @pytest.mark.parametrize("value,expected", [
        ("DEBUG", logging.DEBUG),
        ("warning", logging.WARNING),
        ("ERROR", logging.ERROR),
        ("INVALID", logging.INFO),
    ])
    def test_env_var_sets_level(self, mock_log_dir, value, expected):
        with patch.dict(os.environ, {"TASKBOX_LOG_LEVEL": value}):
            setup_logging()

        assert logging.getLogger().level == expected

    def test_parameter_overrides_env_var(self, mock_log_dir):
        with patch.dict(os.environ, {"TASKBOX_LOG_LEVEL": "ERROR"}):
            setup_logging(log_level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_info_level_filters_debug_messages(self, mock_log_dir):
        _, log_file = mock_log_dir

        setup_logging(log_level="INFO")
        logger = get_logger("test")
        logger.debug("Debug message - should not appear")
        logger.info("Info message - should appear")
        flush_handlers()

        content = log_file.read_text()
        assert "Debug message" not in content
        assert "Info message" in content


class TestConsoleHandler:
    """Test suite for the rich console handler."""

    def test_no_console_handler_by_default(self, mock_log_dir):
        setup_logging()

        assert not any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)

    def test_console_handler_added(self, mock_log_dir):
        setup_logging(log_level="WARNING", console=True)

        rich_handlers = [h for h in logging.getLogger().handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1
        assert rich_handlers[0].level == logging.WARNING
