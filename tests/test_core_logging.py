"""Tests for logger setup."""

import logging

from crewplan.core.logging import get_logger, set_log_level


def test_get_logger_cached():
    assert get_logger("crewplan.test.cached") is get_logger("crewplan.test.cached")


def test_logger_has_single_handler():
    logger = get_logger("crewplan.test.handler")
    get_logger("crewplan.test.handler")
    assert len(logger.handlers) == 1


def test_format_includes_name():
    logger = get_logger("crewplan.test.format")
    fmt = logger.handlers[0].formatter._fmt
    assert "[%(name)s]" in fmt
    assert "%(levelname)s" in fmt


def test_set_log_level_applies_to_existing():
    logger = get_logger("crewplan.test.level")
    set_log_level(logging.DEBUG)
    try:
        assert logger.level == logging.DEBUG
        assert logger.handlers[0].level == logging.DEBUG
    finally:
        set_log_level(logging.INFO)
