"""Tests for loading schedule sources."""

from datetime import date

from crewplan.projects.phases import create_phase
from crewplan.schedule.sheets import CrewSheet, save_crew_sheet, save_forecast, set_allocation
from crewplan.schedule.sources import load_all_sources, load_job_sources


def _seed_sources(conn, job_key):
    create_phase(conn, job_key, "Flatwork", "2026-03-02", "2026-03-06", hours=50)
    sheet = CrewSheet(job_key, "2026-03")
    sheet.ensure_day(date(2026, 3, 10)).hours = 30
    save_crew_sheet(conn, sheet)
    save_forecast(conn, job_key, "2026-03", {3: 40})
    set_allocation(conn, job_key, "2026-04", 25)


class TestLoadJobSources:
    def test_all_sources(self, memory_db, seed_job):
        _seed_sources(memory_db, seed_job)
        src = load_job_sources(memory_db, seed_job)
        assert len(src.phases) == 1
        assert src.crew_days == {date(2026, 3, 10): 30}
        assert src.forecast == {date(2026, 3, 16): 40}
        assert src.allocation == {"2026-04": 25}
        assert src.unavailable == []

    def test_unknown_job(self, memory_db):
        assert load_job_sources(memory_db, "No~Such~Job") is None

    def test_empty_sources_are_loaded(self, memory_db, seed_job):
        src = load_job_sources(memory_db, seed_job)
        assert src.phases == []
        assert src.allocation == {}
        assert src.unavailable == []

    def test_failed_table_is_unavailable(self, memory_db, seed_job):
        memory_db.execute("DROP TABLE weekly_forecasts")
        src = load_job_sources(memory_db, seed_job)
        assert src.forecast is None
        assert src.unavailable == ["forecasts"]


class TestLoadAllSources:
    def test_orphans_dropped(self, memory_db, seed_job):
        _seed_sources(memory_db, seed_job)
        save_crew_sheet(memory_db, CrewSheet("Ghost~0~Nowhere", "2026-03"))
        result = load_all_sources(memory_db)
        assert list(result) == [seed_job]
        assert result[seed_job].crew_days == {date(2026, 3, 10): 30}

    def test_failed_table_for_every_job(self, memory_db, seed_job):
        memory_db.execute("DROP TABLE monthly_allocations")
        result = load_all_sources(memory_db)
        assert result[seed_job].allocation is None
        assert result[seed_job].unavailable == ["allocations"]
