"""
Configuration management for crewplan.

Loads config.yaml and provides type-safe access to settings.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional

# Config file location: alongside the crewplan package
_PACKAGE_DIR = Path(__file__).parent.parent.resolve()
CONFIG_PATH = _PACKAGE_DIR / "config.yaml"

# Cache for loaded config
_config_cache: Optional[Dict[str, Any]] = None


def get_config(reload: bool = False) -> Dict[str, Any]:
    """
    Load configuration from config.yaml.

    Args:
        reload: Force reload even if cached

    Returns:
        Configuration dictionary
    """
    global _config_cache

    if _config_cache is not None and not reload:
        return _config_cache

    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
        _config_cache = yaml.safe_load(f) or {}

    return _config_cache


def get_config_value(*keys: str, default: Any = None) -> Any:
    """
    Get a nested config value safely.

    Args:
        *keys: Path of keys to traverse (e.g., 'scheduling', 'hours_per_day')
        default: Value to return if key not found

    Example:
        capacity = get_config_value('scheduling', 'company_capacity_hours', default=210)
    """
    config = get_config()

    for key in keys:
        if isinstance(config, dict) and key in config:
            config = config[key]
        else:
            return default

    return config


_SCHEDULING_DEFAULTS = {
    "hours_per_day": 10,
    "company_capacity_hours": 210,
    "match_strategy": "substring",
    "fetch_timeout_seconds": 6,
    "cache_ttl_seconds": 300,
    "scheduled_work_title": "Scheduled Work",
}

_QUALIFYING_DEFAULTS: Dict[str, List[str]] = {
    "statuses": ["In Progress"],
    "excluded_customer_substrings": [],
    "excluded_project_names": [],
    "excluded_project_name_substrings": [],
    "excluded_project_numbers": [],
}


def get_scheduling_settings() -> Dict[str, Any]:
    """Return scheduling settings (config.yaml overrides defaults)."""
    cfg = get_config().get("scheduling") or {}
    return {key: cfg.get(key, default) for key, default in _SCHEDULING_DEFAULTS.items()}


_WORKFORCE_DEFAULTS: Dict[str, Any] = {
    "field_roles": ["Field Worker"],
    "crew_leader_roles": ["Foreman", "Lead foreman"],
    "full_day_hours": 10,
}


def get_workforce_settings() -> Dict[str, Any]:
    """Return workforce settings (config.yaml overrides defaults)."""
    cfg = get_config().get("workforce") or {}
    return {key: cfg.get(key) or default for key, default in _WORKFORCE_DEFAULTS.items()}


def get_qualifying_rules() -> Dict[str, List[str]]:
    """Return the qualifying-job business rules with every list present."""
    cfg = get_config().get("qualifying_jobs") or {}
    return {
        key: list(cfg.get(key) or default)
        for key, default in _QUALIFYING_DEFAULTS.items()
    }


class CrewplanPaths:
    """
    Centralized path access for crewplan.

    All paths are loaded from config.yaml with sensible fallbacks.

    Usage:
        from crewplan.core.config import CREWPLAN_PATHS
        db = CREWPLAN_PATHS.database
    """

    def __init__(self):
        self._config = None

    def _ensure_config(self):
        if self._config is None:
            self._config = get_config()

    def _resolve(self, raw: str) -> Path:
        """Resolve a path: if relative, resolve against _PACKAGE_DIR."""
        p = Path(raw)
        if not p.is_absolute():
            p = _PACKAGE_DIR / p
        return p

    @property
    def database(self) -> Path:
        self._ensure_config()
        raw = self._config.get("destinations", {}).get("database", "data/crewplan.db")
        return self._resolve(raw)

    @property
    def config_dir(self) -> Path:
        return _PACKAGE_DIR

    @property
    def root(self) -> Path:
        return _PACKAGE_DIR


# Singleton instance
CREWPLAN_PATHS = CrewplanPaths()
