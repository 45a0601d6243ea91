"""
Logger Setup Module
-------------------
Provides a centralized function to configure and retrieve loggers.
All loggers share a single stdout handler installed on the root logger,
so conversions running on worker threads log with the same format.
"""

import logging
import sys
from typing import Dict

# --- Configuration ---
LOG_LEVEL = logging.INFO # Default log level (INFO, DEBUG, WARNING, ERROR, CRITICAL)
LOG_FORMAT = '[%(asctime)s] %(levelname)-7s [%(name)s]: %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_loggers: Dict[str, logging.Logger] = {}
_handler = None
_level = LOG_LEVEL

def setup_logger(name: str, level: int = None) -> logging.Logger:
    """
    Get a logger instance, configuring the root handler only once.

    Args:
        name: Name of the logger (typically the module name).
        level: Logging level for this logger (defaults to the current global level).

    Returns:
        Configured logger instance.
    """
    global _handler

    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

        root_logger = logging.getLogger()
        # Root stays at DEBUG; filtering happens on the named loggers
        root_logger.setLevel(logging.DEBUG)
        if not any(isinstance(h, logging.StreamHandler) for h in root_logger.handlers):
            root_logger.addHandler(_handler)

    logger = logging.getLogger(name)
    logger.setLevel(level if level is not None else _level)
    _loggers[name] = logger
    return logger

def set_log_level(level: int) -> None:
    """Change the level of every logger handed out by setup_logger, and of future ones."""
    global _level
    _level = level
    for logger in _loggers.values():
        logger.setLevel(level)
