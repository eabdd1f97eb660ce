"""Tests for config loading and CREWPLAN_PATHS path resolution."""

from unittest.mock import patch

from crewplan.core.config import (
    CREWPLAN_PATHS,
    _PACKAGE_DIR,
    get_config,
    get_config_value,
    get_qualifying_rules,
    get_scheduling_settings,
    get_workforce_settings,
)


def test_get_config_returns_dict():
    config = get_config(reload=True)
    assert isinstance(config, dict)
    assert "scheduling" in config


def test_get_config_caching():
    c1 = get_config()
    c2 = get_config()
    assert c1 is c2


def test_get_config_reload_returns_fresh():
    get_config()
    c2 = get_config(reload=True)
    assert get_config() is c2


def test_get_config_value_nested():
    assert get_config_value("scheduling", "company_capacity_hours") == 210


def test_get_config_value_missing_returns_default():
    assert get_config_value("nonexistent", "deep", "path", default="fallback") == "fallback"


class TestScheduling:
    def test_shipped_values(self):
        settings = get_scheduling_settings()
        assert settings["hours_per_day"] == 10
        assert settings["fetch_timeout_seconds"] == 6
        assert settings["cache_ttl_seconds"] == 300
        assert settings["match_strategy"] == "substring"

    def test_defaults_fill_missing_section(self):
        with patch("crewplan.core.config.get_config", return_value={}):
            settings = get_scheduling_settings()
        assert settings["company_capacity_hours"] == 210
        assert settings["scheduled_work_title"] == "Scheduled Work"


class TestWorkforce:
    def test_roles_present(self):
        settings = get_workforce_settings()
        assert "Field Worker" in settings["field_roles"]
        assert "Foreman" in settings["crew_leader_roles"]
        assert settings["full_day_hours"] == 10


class TestQualifyingRules:
    def test_every_list_present(self):
        with patch("crewplan.core.config.get_config", return_value={"qualifying_jobs": {"statuses": ["Active"]}}):
            rules = get_qualifying_rules()
        assert rules["statuses"] == ["Active"]
        assert rules["excluded_project_numbers"] == []

    def test_shipped_exclusions(self):
        rules = get_qualifying_rules()
        assert "sandbox" in rules["excluded_project_name_substrings"]


def test_database_path_is_absolute():
    assert CREWPLAN_PATHS.database.is_absolute()


def test_database_path_under_package():
    assert CREWPLAN_PATHS.database.parent.parent == _PACKAGE_DIR
    assert CREWPLAN_PATHS.database.name == "crewplan.db"
