"""Tests for logging configuration."""

import pytest

import logging

from validator_yield.helpers.logging import get_logger


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_returns_logger(self) -> None:
        """Test that get_logger returns a named logger instance."""
        logger = get_logger("yield_test_module")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "yield_test_module"

    def test_get_logger_same_name_returns_same_instance(self) -> None:
        """Test that loggers are cached by name and keep their first level."""
        logger1 = get_logger("yield_test_same", log_level="DEBUG")
        logger2 = get_logger("yield_test_same", log_level="ERROR")

        assert logger1 is logger2
        assert logger1.level == logging.DEBUG
        assert len(logger1.handlers) == 1

    @pytest.mark.parametrize(
        ("level_name", "level"),
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
        ],
    )
    def test_get_logger_with_level(self, level_name: str, level: int) -> None:
        """Test every supported level name."""
        logger = get_logger(f"yield_test_level_{level_name}", log_level=level_name)

        assert logger.level == level

    def test_get_logger_default_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default level is INFO when LOG_LEVEL is unset."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        logger = get_logger("yield_test_default")

        assert logger.level == logging.INFO

    def test_get_logger_level_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test LOG_LEVEL is used when no level is passed."""
        monkeypatch.setenv("LOG_LEVEL", "warning")
        logger = get_logger("yield_test_env_level")

        assert logger.level == logging.WARNING

    def test_get_logger_invalid_level_raises(self) -> None:
        """Test that invalid log level raises ValueError."""
        with pytest.raises(ValueError, match="Invalid log level"):
            get_logger("yield_test_invalid", log_level="INVALID")

    def test_get_logger_invalid_handler_raises(self) -> None:
        """Test that invalid handler raises ValueError."""
        with pytest.raises(ValueError, match="Invalid handler"):
            get_logger("yield_test_invalid_handler", log_handler="file")

    def test_get_logger_stderr_handler(self) -> None:
        """Test get_logger with stderr handler."""
        logger = get_logger("yield_test_stderr", log_handler="stderr")

        assert len(logger.handlers) == 1

    def test_get_logger_with_color(self) -> None:
        """Test get_logger with color enabled."""
        import colorlog

        logger = get_logger("yield_test_color", log_color=True)

        assert isinstance(logger.handlers[0].formatter, colorlog.ColoredFormatter)

    def test_logger_can_log_messages(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that configured logger can log messages."""
        logger = get_logger("yield_test_messages", log_level="DEBUG")

        with caplog.at_level(logging.DEBUG, logger="yield_test_messages"):
            logger.debug("Debug message")
            logger.warning("Skipping %s in era %d", "validator", 7)

        assert any("Debug message" in record.message for record in caplog.records)
        assert any(
            "Skipping validator in era 7" in record.message for record in caplog.records
        )
