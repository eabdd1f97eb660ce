"""
crewplan Core - Shared services for all modules.

Usage:
    from crewplan.core import get_db, get_config, get_logger, CREWPLAN_PATHS
"""

from crewplan.core.cache import TTLCache
from crewplan.core.config import (
    CREWPLAN_PATHS,
    get_config,
    get_config_value,
    get_qualifying_rules,
    get_scheduling_settings,
    get_workforce_settings,
)
from crewplan.core.db import get_db, migrate_all, write_lock
from crewplan.core.errors import CrewplanError, DispatchError, StaleSheetError
from crewplan.core.logging import get_logger

__all__ = [
    "get_config",
    "get_config_value",
    "get_qualifying_rules",
    "get_scheduling_settings",
    "get_workforce_settings",
    "CREWPLAN_PATHS",
    "get_db",
    "migrate_all",
    "write_lock",
    "get_logger",
    "TTLCache",
    "CrewplanError",
    "StaleSheetError",
    "DispatchError",
]
