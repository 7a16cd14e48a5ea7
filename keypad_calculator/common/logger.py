"""Shared logger for the keypad calculator."""
import logging
import os


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _build_logger() -> logging.Logger:
    """
    Build the package logger once.

    The level is read from the ``KEYPAD_CALCULATOR_LOG_LEVEL`` environment variable
    (defaults to INFO).

    :return: Configured logger
    :rtype: logging.Logger
    """
    _logger = logging.getLogger("keypad_calculator")
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _logger.addHandler(handler)
    _logger.setLevel(os.environ.get("KEYPAD_CALCULATOR_LOG_LEVEL", "INFO").upper())
    return _logger


logger = _build_logger()
