"""Tests for logging_config.py module."""

import logging

import pytest
from rich.logging import RichHandler

from s3conform.logging_config import configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_installs_single_rich_handler(self, restore_root_logger):
        configure_logging("INFO")
        configure_logging("INFO")

        rich_handlers = [h for h in restore_root_logger.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1
        assert restore_root_logger.level == logging.INFO

    def test_unknown_level_falls_back_to_warning(self, restore_root_logger):
        configure_logging("CHATTY")
        assert restore_root_logger.level == logging.WARNING

    def test_http_libraries_quiet_at_debug(self, restore_root_logger):
        configure_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_handler_writes_to_stderr(self, restore_root_logger):
        configure_logging("ERROR")
        (handler,) = [h for h in restore_root_logger.handlers if isinstance(h, RichHandler)]
        assert handler.console.stderr is True
