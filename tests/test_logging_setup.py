"""Tests for ledgerscope.logging_setup."""

import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from ledgerscope.logging_setup import PACKAGE_LOGGER, configure_logging, get_logger, parse_level


class TestParseLevel:
    """Tests for parse_level."""

    def test_names_and_numbers(self) -> None:
        """Should accept level names in any case and numeric strings."""
        assert parse_level("debug") == logging.DEBUG
        assert parse_level("20") == logging.INFO
        assert parse_level(logging.ERROR) == logging.ERROR

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """None should fall back to LEDGERSCOPE_LOG_LEVEL."""
        monkeypatch.setenv("LEDGERSCOPE_LOG_LEVEL", "INFO")
        assert parse_level(None) == logging.INFO

    def test_default_warning(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unknown names with no environment should mean WARNING."""
        monkeypatch.delenv("LEDGERSCOPE_LOG_LEVEL", raising=False)
        assert parse_level("chatty") == logging.WARNING


class TestConfigureLogging:
    """Tests for configure_logging and get_logger."""

    def test_attaches_rich_handler_once(self) -> None:
        """Repeated calls should not stack handlers."""
        console = Console(stderr=True)
        configure_logging("DEBUG", console=console)
        configure_logging("DEBUG", console=console)

        logger = logging.getLogger(PACKAGE_LOGGER)
        rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1
        assert logger.level == logging.DEBUG

    def test_module_loggers_are_children(self) -> None:
        """Module loggers should sit under the package logger."""
        logger = get_logger("ledgerscope.domain.prices")
        assert logger.name.startswith(f"{PACKAGE_LOGGER}.")
        assert logging.getLogger(PACKAGE_LOGGER).handlers
