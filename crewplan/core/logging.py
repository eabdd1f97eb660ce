"""
Loggers for crewplan modules.

Each module asks for one logger named after its dotted path
(crewplan.schedule.sources, crewplan.workforce.dispatch, ...). Degraded
schedule sources and failed WIP resyncs log at WARNING, writes at INFO.
Handlers write to stdout; the CLI --verbose flag drops every logger to
DEBUG through set_log_level().
"""

import logging
import sys
from typing import Dict

_loggers: Dict[str, logging.Logger] = {}


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Return the logger for *name*, attaching the stdout handler on first use.

    Args:
        name: Dotted module path, e.g. 'crewplan.schedule.sync'
        level: Starting level (default: INFO)

    Later calls with the same name return the same logger and ignore *level*.
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)

        formatter = logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    _loggers[name] = logger
    return logger


def set_log_level(level: int) -> None:
    """Apply *level* to every logger handed out so far (CLI --verbose)."""
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
