"""
Tests for the logging module.
"""

import logging
from unittest.mock import patch

import pytest

from arrestlead.config import Config, LoggingConfig
from arrestlead.log import QUIET_LOGGERS, configure_logging, get_logger


def test_get_logger():
    """Test getting a logger."""
    logger = get_logger("arrestlead.pipeline")

    assert isinstance(logger, logging.Logger)
    assert logger.name == "arrestlead.pipeline"


@patch("arrestlead.log.logging.basicConfig")
def test_configure_logging_default(mock_basicConfig):
    """Test configuring logging with default settings."""
    configure_logging()

    mock_basicConfig.assert_called_once()
    args = mock_basicConfig.call_args[1]
    assert args["level"] == logging.INFO
    assert "format" in args
    assert "datefmt" in args


@patch("arrestlead.log.logging.basicConfig")
def test_configure_logging_with_config(mock_basicConfig):
    """Test configuring logging with custom config."""
    configure_logging(Config(logging=LoggingConfig(level="DEBUG")))

    args = mock_basicConfig.call_args[1]
    assert args["level"] == logging.DEBUG
    # Driver chatter stays at WARNING even at DEBUG
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


@patch("arrestlead.log.logging.basicConfig")
def test_configure_logging_explicit_level_wins(mock_basicConfig):
    """Test that a command-line level overrides the configured one."""
    configure_logging(Config(logging=LoggingConfig(level="DEBUG")), level="error")

    assert mock_basicConfig.call_args[1]["level"] == logging.ERROR


@patch("arrestlead.log.logging.basicConfig")
def test_configure_logging_invalid_level(mock_basicConfig):
    """Test configuring logging with invalid level."""
    cfg = Config(logging=LoggingConfig(level="INVALID"))

    with pytest.raises(ValueError) as excinfo:
        configure_logging(cfg)

    assert "Invalid log level" in str(excinfo.value)
    mock_basicConfig.assert_not_called()


@patch("arrestlead.log.logging.basicConfig")
def test_configure_logging_warn_level(mock_basicConfig):
    """Test configuring logging with WARN level."""
    configure_logging(Config(logging=LoggingConfig(level="WARN")))

    assert mock_basicConfig.call_args[1]["level"] == logging.WARNING  # WARN maps to WARNING
