from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

Every line is printed as ``LABEL message`` with LABEL one of
INFO|WARN|ERROR|NOTICE|SUMMARY. NOTICE carries the user-facing notices
(validation / store failures), SUMMARY the CLI's final import line.

Modules log through ``logging.getLogger(__name__)``; they are children of the
``fleetgrid`` logger configured here.
"""

__all__ = [
    "setup_logging",
    "get_logger",
    "log_summary",
    "log_notice",
    "reset_logging",
    "LOGGER_NAME",
    "NOTICE_LEVEL",
    "SUMMARY_LEVEL",
]

LOGGER_NAME = "fleetgrid"

# Custom levels between INFO=20 and WARNING=30
NOTICE_LEVEL = 25
SUMMARY_LEVEL = 26

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Formatter that prefixes each message with its level label."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        NOTICE_LEVEL: "NOTICE",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        return f"{level_label} {record.getMessage()}"


def setup_logging() -> logging.Logger:
    """Configure the application logger (idempotent).

    Output goes to stdout with labeled prefixes; propagation to the root
    logger is disabled to avoid duplicate lines.

    Returns:
        Configured logger instance for the application
    """
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(NOTICE_LEVEL, "NOTICE")
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    # Clear any existing handlers to avoid duplication
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the configured application logger, configuring it on first use."""
    if _logger is None:
        return setup_logging()
    return _logger


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def log_notice(message: str) -> None:
    get_logger().log(NOTICE_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    _logger = None
