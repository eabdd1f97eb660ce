"""Tests for workers and time-off requests."""

from datetime import date

import pytest

from crewplan.workforce.employees import (
    Worker,
    create_worker,
    get_worker,
    is_crew_leader,
    is_field_worker,
    list_crew_leaders,
    list_field_workers,
    list_workers,
    set_worker_active,
)
from crewplan.workforce.timeoff import (
    TimeOffRequest,
    create_time_off,
    delete_time_off,
    hours_off,
    is_fully_unavailable,
    list_time_off,
)

DAY = date(2026, 3, 4)


class TestWorkers:
    def test_roles_case_insensitive(self):
        assert is_field_worker(Worker("w", role="field worker"))
        assert is_crew_leader(Worker("a", role="LEAD FOREMAN"))
        assert not is_field_worker(Worker("a", role="Foreman"))

    def test_inactive_excluded(self):
        assert not is_field_worker(Worker("w", role="Field Worker", is_active=False))

    def test_lists(self, seed_crew):
        assert [w.id for w in list_crew_leaders(seed_crew)] == ["A", "B"]
        assert [w.id for w in list_field_workers(seed_crew)] == ["W1", "W2", "W3"]

    def test_deactivate(self, seed_crew):
        assert set_worker_active(seed_crew, "W2", False)
        assert [w.id for w in list_field_workers(seed_crew)] == ["W1", "W3"]
        assert len(list_workers(seed_crew, active_only=False)) == 5

    def test_create_and_get(self, memory_db):
        worker_id = create_worker(memory_db, "Dana", "Fox", phone="555-0100")
        worker = get_worker(memory_db, worker_id)
        assert worker.name == "Dana Fox"
        assert worker.role == "Field Worker"
        assert get_worker(memory_db, "missing") is None


class TestHoursOff:
    def _req(self, hours=None, start=DAY, end=DAY, worker="W1"):
        return TimeOffRequest(id="r", worker_id=worker, start_date=start, end_date=end, hours_per_day=hours)

    def test_missing_hours_is_full_day(self):
        assert hours_off("W1", DAY, [self._req()]) == 10

    def test_zero_hours_is_full_day(self):
        assert hours_off("W1", DAY, [self._req(0)]) == 10

    def test_partial_day(self):
        assert hours_off("W1", DAY, [self._req(4)]) == 4
        assert not is_fully_unavailable("W1", DAY, [self._req(4)])

    def test_overlapping_requests_add_up(self):
        reqs = [self._req(4), self._req(6)]
        assert hours_off("W1", DAY, reqs) == 10
        assert is_fully_unavailable("W1", DAY, reqs)

    def test_other_worker_and_day(self):
        assert hours_off("W2", DAY, [self._req()]) == 0
        assert hours_off("W1", date(2026, 3, 5), [self._req()]) == 0

    def test_from_record_camel_case(self):
        req = TimeOffRequest.from_record({"id": "r", "employeeId": "W1", "startDate": "2026-03-02",
                                          "endDate": "2026-03-06", "hours": "6", "type": "Sick"})
        assert req.covers(DAY)
        assert req.effective_hours == 6


class TestPersistence:
    def test_create_and_list_by_day(self, seed_crew):
        create_time_off(seed_crew, "W1", "2026-03-02", "2026-03-06")
        create_time_off(seed_crew, "W2", "2026-03-10", "2026-03-10", hours_per_day=4, type="Personal")
        on_day = list_time_off(seed_crew, day=DAY)
        assert [r.worker_id for r in on_day] == ["W1"]
        assert on_day[0].effective_hours == 10
        assert len(list_time_off(seed_crew, worker_id="W2")) == 1

    def test_bad_range(self, seed_crew):
        with pytest.raises(ValueError):
            create_time_off(seed_crew, "W1", "2026-03-06", "2026-03-02")

    def test_bad_type(self, seed_crew):
        with pytest.raises(ValueError):
            create_time_off(seed_crew, "W1", "2026-03-02", "2026-03-02", type="Beach")

    def test_delete(self, seed_crew):
        request_id = create_time_off(seed_crew, "W1", "2026-03-02", "2026-03-02")
        assert delete_time_off(seed_crew, request_id)
        assert list_time_off(seed_crew) == []
