"""Tests for WIP rollups and crew-sheet / phase synchronization."""

from datetime import date

import pytest

from crewplan.core import StaleSheetError
from crewplan.projects.jobs import create_project
from crewplan.projects.phases import create_phase, get_phase
from crewplan.schedule.sheets import (
    CrewSheet,
    crew_assignments_for_date,
    crew_sheet_days,
    crew_sheets_for_date,
    get_crew_sheet,
    load_crew_sheets,
    save_crew_sheet,
)
from crewplan.schedule.sources import load_job_sources
from crewplan.schedule.sync import (
    compute_monthly_wip,
    get_wip,
    push_phase_to_crew_sheet,
    source_span,
    sync_job_wip,
    sync_phase_dates_from_crew_sheet,
)


def _crew_day(conn, job_key, day, hours):
    month = "2026-03"
    sheet = get_crew_sheet(conn, job_key, month) or CrewSheet(job_key, month)
    sheet.ensure_day(day).hours = hours
    save_crew_sheet(conn, sheet)


class TestMonthlyWip:
    def test_phase_and_crew_sheet(self, memory_db, seed_job):
        create_phase(memory_db, seed_job, "Grading", "2026-03-02", "2026-03-06", hours=50)
        _crew_day(memory_db, seed_job, date(2026, 3, 9), 20)
        src = load_job_sources(memory_db, seed_job)
        assert source_span(src) == (date(2026, 3, 2), date(2026, 3, 9))
        assert compute_monthly_wip(src, date(2026, 3, 2), date(2026, 3, 9)) == {"2026-03": pytest.approx(70)}

    def test_days_count_toward_their_week_month(self, memory_db, seed_job):
        # Wed 2026-04-01 sits in the week of Mon 2026-03-30
        _crew_day(memory_db, seed_job, date(2026, 4, 1), 8)
        src = load_job_sources(memory_db, seed_job)
        assert compute_monthly_wip(src, date(2026, 4, 1), date(2026, 4, 1)) == {"2026-03": pytest.approx(8)}

    def test_reversed_range(self, memory_db, seed_job):
        src = load_job_sources(memory_db, seed_job)
        assert compute_monthly_wip(src, date(2026, 3, 9), date(2026, 3, 2)) == {}

    def test_sync_persists(self, memory_db, seed_job):
        create_phase(memory_db, seed_job, "Grading", "2026-03-30", "2026-04-10", hours=100)
        result = sync_job_wip(memory_db, seed_job)
        assert result["allocations"] == {"2026-03": pytest.approx(50), "2026-04": pytest.approx(50)}
        assert result["total_hours"] == pytest.approx(100)

        stored = get_wip(memory_db, seed_job)
        assert stored["allocations"]["2026-04"] == pytest.approx(50)
        assert stored["sync_source"] == "auto"

    def test_sync_without_sources(self, memory_db, seed_job):
        result = sync_job_wip(memory_db, seed_job)
        assert result["allocations"] == {}
        assert result["total_hours"] == 0

    def test_sync_unknown_job(self, memory_db):
        assert sync_job_wip(memory_db, "No~Such~Job") is None
        assert get_wip(memory_db, "No~Such~Job") is None


class TestPhaseDatesFromCrewSheet:
    def test_moves_scheduled_work_phase(self, memory_db, seed_job):
        phase_id = create_phase(memory_db, seed_job, "Scheduled Work", "2026-01-05", "2026-01-09", hours=40)
        _crew_day(memory_db, seed_job, date(2026, 3, 3), 20)
        _crew_day(memory_db, seed_job, date(2026, 3, 12), 20)
        _crew_day(memory_db, seed_job, date(2026, 3, 20), 0)

        phase = sync_phase_dates_from_crew_sheet(memory_db, seed_job)
        assert phase.id == phase_id
        assert (phase.start_date, phase.end_date) == (date(2026, 3, 3), date(2026, 3, 12))
        assert phase.hours == 40

    def test_no_matching_phase(self, memory_db, seed_job):
        create_phase(memory_db, seed_job, "Flatwork", "2026-01-05", "2026-01-09")
        _crew_day(memory_db, seed_job, date(2026, 3, 3), 20)
        assert sync_phase_dates_from_crew_sheet(memory_db, seed_job) is None

    def test_no_crew_hours(self, memory_db, seed_job):
        create_phase(memory_db, seed_job, "Scheduled Work")
        assert sync_phase_dates_from_crew_sheet(memory_db, seed_job) is None


class TestPushPhase:
    def test_writes_each_workday_across_month_documents(self, memory_db, seed_job):
        phase_id = create_phase(memory_db, seed_job, "Flatwork", "2026-03-31", "2026-04-06", manpower=2)
        sheets = push_phase_to_crew_sheet(memory_db, get_phase(memory_db, phase_id), crew_leader_id="A")
        assert [s.month for s in sheets] == ["2026-03", "2026-04"]

        days = crew_sheet_days(load_crew_sheets(memory_db, seed_job))
        assert sorted(days) == [
            date(2026, 3, 31), date(2026, 4, 1), date(2026, 4, 2), date(2026, 4, 3), date(2026, 4, 6),
        ]
        assert set(days.values()) == {20}
        assert get_crew_sheet(memory_db, seed_job, "2026-04").day_for(date(2026, 4, 6)).crew_leader_id == "A"

    def test_keeps_existing_crew(self, memory_db, seed_job):
        sheet = CrewSheet(seed_job, "2026-03")
        sheet.ensure_day(date(2026, 3, 4)).worker_ids = ["W1"]
        save_crew_sheet(memory_db, sheet)
        phase_id = create_phase(memory_db, seed_job, "Flatwork", "2026-03-04", "2026-03-04", manpower=1)
        push_phase_to_crew_sheet(memory_db, get_phase(memory_db, phase_id))
        entry = get_crew_sheet(memory_db, seed_job, "2026-03").day_for(date(2026, 3, 4))
        assert entry.worker_ids == ["W1"]
        assert entry.hours == 10

    def test_new_leader_does_not_inherit_another_crew(self, memory_db, seed_job):
        day = date(2026, 3, 4)
        other_job = create_project(memory_db, "Acme", "1002", "South Lot")
        for job_key in (seed_job, other_job):
            sheet = CrewSheet(job_key, "2026-03")
            entry = sheet.ensure_day(day)
            entry.crew_leader_id, entry.worker_ids = "B", ["W1"]
            save_crew_sheet(memory_db, sheet)

        phase_id = create_phase(memory_db, other_job, "Flatwork", "2026-03-04", "2026-03-04", manpower=1)
        push_phase_to_crew_sheet(memory_db, get_phase(memory_db, phase_id), crew_leader_id="A")

        crews = crew_assignments_for_date(crew_sheets_for_date(memory_db, day), day)
        assert crews == {"B": ["W1"], "A": []}

    def test_new_leader_brings_own_crew(self, memory_db, seed_job):
        day = date(2026, 3, 4)
        other_job = create_project(memory_db, "Acme", "1002", "South Lot")
        sheet = CrewSheet(other_job, "2026-03")
        entry = sheet.ensure_day(day)
        entry.crew_leader_id, entry.worker_ids = "A", ["W2", "W3"]
        save_crew_sheet(memory_db, sheet)
        sheet = CrewSheet(seed_job, "2026-03")
        entry = sheet.ensure_day(day)
        entry.crew_leader_id, entry.worker_ids = "B", ["W1"]
        save_crew_sheet(memory_db, sheet)

        phase_id = create_phase(memory_db, seed_job, "Flatwork", "2026-03-04", "2026-03-04", manpower=2)
        push_phase_to_crew_sheet(memory_db, get_phase(memory_db, phase_id), crew_leader_id="A")

        entry = get_crew_sheet(memory_db, seed_job, "2026-03").day_for(day)
        assert entry.crew_leader_id == "A"
        assert entry.worker_ids == ["W2", "W3"]
        assert crew_assignments_for_date(crew_sheets_for_date(memory_db, day), day) == {"A": ["W2", "W3"]}

    def test_undated_or_unstaffed_writes_nothing(self, memory_db, seed_job):
        undated = create_phase(memory_db, seed_job, "Flatwork", manpower=2)
        unstaffed = create_phase(memory_db, seed_job, "Curb", "2026-03-02", "2026-03-06")
        assert push_phase_to_crew_sheet(memory_db, get_phase(memory_db, undated)) == []
        assert push_phase_to_crew_sheet(memory_db, get_phase(memory_db, unstaffed)) == []
        assert load_crew_sheets(memory_db) == []

    def test_conflict_rolls_back(self, memory_db, seed_job, monkeypatch):
        phase_id = create_phase(memory_db, seed_job, "Flatwork", "2026-03-31", "2026-04-06", manpower=2)
        import crewplan.schedule.sync as sync

        calls = []

        def flaky_save(conn, sheet, commit=True):
            calls.append(sheet.month)
            if len(calls) == 2:
                raise StaleSheetError("moved")
            return save_crew_sheet(conn, sheet, commit)

        monkeypatch.setattr(sync, "save_crew_sheet", flaky_save)
        with pytest.raises(StaleSheetError):
            push_phase_to_crew_sheet(memory_db, get_phase(memory_db, phase_id))
        assert load_crew_sheets(memory_db) == []
