"""Tests for the capacity advisor."""

from datetime import date

import pytest

from crewplan.projects.phases import Phase, create_phase, get_phase
from crewplan.schedule.capacity import (
    capacity_for_phase,
    capacity_report,
    covering_phases,
    default_capacity_hours,
    remaining_capacity,
)

JOB = "Acme~1001~North Lot"


def _phase(pid, manpower, start=None, end=None):
    return Phase(id=pid, job_key=JOB, title=pid, start_date=start, end_date=end, manpower=manpower)


@pytest.fixture
def phases():
    return [
        _phase("a", 5, date(2026, 3, 2), date(2026, 3, 6)),
        _phase("b", 3, date(2026, 3, 4), date(2026, 3, 10)),
        _phase("c", 9, date(2026, 3, 9), date(2026, 3, 13)),
        _phase("undated", 4),
    ]


def test_default_capacity():
    assert default_capacity_hours() == 210


class TestRemaining:
    def test_subtracts_covering_and_candidate(self, phases):
        candidate = _phase("new", 4)
        assert remaining_capacity("2026-03-04", candidate, phases) == 210 - 50 - 30 - 40

    def test_candidate_not_double_counted(self, phases):
        assert remaining_capacity("2026-03-04", phases[0], phases) == 210 - 30 - 50

    def test_negative_is_returned(self, phases):
        assert remaining_capacity("2026-03-04", _phase("new", 4), phases, 100) == -20

    def test_bad_date_counts_only_candidate(self, phases):
        assert remaining_capacity("someday", _phase("new", 4), phases) == 170

    def test_covering(self, phases):
        assert [p.id for p in covering_phases(date(2026, 3, 9), _phase("new", 1), phases)] == ["b", "c"]


class TestReport:
    def test_over_committed(self, phases):
        report = capacity_report("2026-03-04", _phase("new", 4), phases, 100)
        assert report["over_committed"]
        assert report["committed_hours"] == 80
        assert report["requested_hours"] == 40
        assert [p["id"] for p in report["covering_phases"]] == ["a", "b"]

    def test_within_capacity(self, phases):
        report = capacity_report(date(2026, 3, 16), _phase("new", 2), phases)
        assert not report["over_committed"]
        assert report["remaining_hours"] == 190
        assert report["date"] == "2026-03-16"

    def test_against_stored_phases(self, memory_db, seed_job):
        create_phase(memory_db, seed_job, "Flatwork", "2026-03-02", "2026-03-06", manpower=6)
        other = get_phase(memory_db, create_phase(memory_db, seed_job, "Curb", "2026-03-04", "2026-03-04", manpower=2))
        report = capacity_for_phase(memory_db, "2026-03-04", other)
        assert report["remaining_hours"] == 210 - 60 - 20
