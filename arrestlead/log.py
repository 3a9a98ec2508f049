"""
Logging utilities for Arrest Lead.
"""

import logging
from typing import Optional

from arrestlead.config import Config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are noisy at DEBUG
QUIET_LOGGERS = ("urllib3", "pymongo")


def configure_logging(config: Optional[Config] = None, level: Optional[str] = None) -> None:
    """
    Configure logging based on configuration.

    Args:
        config: Configuration object
        level: Explicit level that overrides the configured one
    """
    if level is None:
        level = config.logging.level if config is not None else "INFO"

    # Convert string level to logging level
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    # Configure root logger
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
