"""Tests for logging_config.py utility functions."""

import os
import sys
import logging
from unittest.mock import patch, MagicMock

from images_sync.core.logging_config import (
    setup_logger,
    get_logger,
    configure_multiprocessing_logging,
    set_debug_logging,
    logger,
)


class TestSetupLogger:
    """Tests for setup_logger function."""

    def test_setup_logger_default_parameters(self):
        test_logger = setup_logger()
        assert test_logger.name == "images-sync"
        assert test_logger.level == logging.INFO
        assert len(test_logger.handlers) == 1
        assert not test_logger.propagate

    def test_setup_logger_custom_level_by_parameter(self):
        test_logger = setup_logger(name="test-sync-param-level", level="DEBUG")
        assert test_logger.level == logging.DEBUG

    def test_setup_logger_custom_level_by_env_var(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}):
            test_logger = setup_logger(name="test-sync-env-level")
            assert test_logger.level == logging.WARNING

    def test_setup_logger_invalid_level_defaults_to_info(self):
        test_logger = setup_logger(name="test-sync-invalid", level="INVALID_LEVEL")
        assert test_logger.level == logging.INFO

    def test_setup_logger_structured_format(self):
        test_logger = setup_logger(name="test-sync-structured", format_type="structured")
        format_string = test_logger.handlers[0].formatter._fmt
        assert "%(filename)s" in format_string
        assert "%(lineno)d" in format_string
        assert "%(funcName)s" in format_string

    def test_setup_logger_env_format_override(self):
        """LOG_FORMAT wins over the format_type argument."""
        with patch.dict(os.environ, {"LOG_FORMAT": "simple"}):
            test_logger = setup_logger(name="test-sync-env-format", format_type="structured")
            format_string = test_logger.handlers[0].formatter._fmt
            assert "%(filename)s" not in format_string
            assert "%(message)s" in format_string

    def test_setup_logger_no_duplicate_handlers(self):
        first = setup_logger(name="test-sync-no-duplicates")
        second = setup_logger(name="test-sync-no-duplicates")
        assert first is second
        assert len(first.handlers) == 1

    def test_setup_logger_handler_uses_stdout(self):
        test_logger = setup_logger(name="test-sync-stdout")
        assert test_logger.handlers[0].stream is sys.stdout


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_default_name(self):
        assert get_logger().name == "images-sync"

    def test_get_logger_returns_configured_logger(self):
        test_logger = get_logger(name="test-sync-configured")
        assert len(test_logger.handlers) == 1
        assert not test_logger.propagate


class TestConfigureMultiprocessingLogging:
    """Tests for configure_multiprocessing_logging function."""

    @patch("multiprocessing.current_process")
    @patch("images_sync.core.logging_config.setup_logger")
    def test_configure_multiprocessing_logging(self, mock_setup_logger, mock_current_process):
        mock_process = MagicMock()
        mock_process.name = "SpawnProcess-1"
        mock_current_process.return_value = mock_process

        configure_multiprocessing_logging()

        mock_setup_logger.assert_called_once_with("images-sync.SpawnProcess-1")


class TestSetDebugLogging:
    """Tests for set_debug_logging."""

    def test_disabled_is_a_no_op(self):
        test_logger = setup_logger(name="images-sync.noop", level="INFO")
        set_debug_logging(False)
        assert test_logger.level == logging.INFO

    def test_enabled_switches_pipeline_loggers(self):
        root = logging.getLogger()
        previous = root.level
        test_logger = setup_logger(name="images-sync.debug-test", level="INFO")
        other = setup_logger(name="unrelated-debug-test", level="INFO")
        try:
            set_debug_logging(True)
            assert test_logger.level == logging.DEBUG
            assert other.level == logging.INFO
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)
            setup_logger()


class TestDefaultLogger:
    """Tests for default logger instance."""

    def test_default_logger_exists(self):
        assert isinstance(logger, logging.Logger)
        assert logger.name == "images-sync"
        assert not logger.propagate

