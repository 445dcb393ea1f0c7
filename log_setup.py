"""
Logging setup for the Assessment Data Analyser.

Messages go to stdout with a short level label in front:
INFO, WARN, ERROR (and DEBUG with --verbose).
"""

import logging
import sys

LOGGER_NAME = "analyser"

_configured = False


class LabeledFormatter(logging.Formatter):
    """Formatter that prefixes each message with a short level label."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        return f"{label} {record.getMessage()}"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Attach a stdout handler to the application logger.

    Module loggers (load_data, analysis, view_state) are children of
    LOGGER_NAME, so one handler covers them all. Calling this again only
    adjusts the level.
    """
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(LabeledFormatter())
        logger.addHandler(handler)
        # Keep messages out of the root logger to avoid duplicate output
        logger.propagate = False
        _configured = True

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child of the application logger, e.g. get_logger("analysis")."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def reset_logging() -> None:
    """Remove installed handlers. Used by tests."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    _configured = False
