"""Tests for the schedule merge engine."""

from datetime import date

import pytest

from crewplan.projects.jobs import CostLine, Job
from crewplan.projects.phases import Phase
from crewplan.schedule.dates import DAY, MONTH, WEEK, make_buckets
from crewplan.schedule.merge import (
    SOURCE_ALLOCATION,
    SOURCE_CREW_SHEET,
    SOURCE_FORECAST,
    SOURCE_NONE,
    SOURCE_PHASE,
    AllocationBudget,
    jobs_on_date,
    merge_job,
    merge_schedule,
    schedule_totals,
)
from crewplan.schedule.sources import ScheduleSources


def _job(name="North Lot", budget=100.0):
    job = Job(customer="Acme", project_number="1001", project_name=name, status="In Progress")
    job.cost_lines = [CostLine(job.key, "Concrete", "Labor", hours=budget)]
    return job


def _sources(job=None, phases=(), crew_days=None, forecast=None, allocation=None):
    return ScheduleSources(
        job=job or _job(),
        phases=list(phases),
        crew_days=crew_days or {},
        forecast=forecast or {},
        allocation=allocation or {},
    )


def _phase(job, start, end, hours, title="Flatwork"):
    return Phase(id="p1", job_key=job.key, title=title, start_date=start, end_date=end, hours=hours)


class TestPrecedence:
    def test_phase_beats_allocation(self):
        job = _job()
        src = _sources(job, phases=[_phase(job, date(2026, 3, 2), date(2026, 3, 6), 30)],
                       allocation={"2026-03": 50})
        value = merge_job(src, make_buckets(MONTH, "2026-03-01", 1)).buckets[0]
        assert value.source == SOURCE_PHASE
        assert value.hours == pytest.approx(30)

    def test_crew_sheet_on_day_bucket(self):
        src = _sources(crew_days={date(2026, 3, 4): 30}, forecast={date(2026, 3, 2): 40})
        value = merge_job(src, make_buckets(DAY, "2026-03-04", 1)).buckets[0]
        assert value.source == SOURCE_CREW_SHEET
        assert value.hours == 30

    def test_crew_sheet_ignored_on_week_bucket(self):
        src = _sources(crew_days={date(2026, 3, 4): 30}, forecast={date(2026, 3, 2): 40})
        value = merge_job(src, make_buckets(WEEK, "2026-03-02", 1)).buckets[0]
        assert value.source == SOURCE_FORECAST
        assert value.hours == 40

    def test_forecast_per_workday(self):
        src = _sources(forecast={date(2026, 3, 2): 40})
        days = merge_job(src, make_buckets(DAY, "2026-03-06", 2)).buckets
        assert days[0].hours == 8
        assert days[1].hours == 0
        assert days[1].source == SOURCE_NONE

    def test_forecast_month_bucket(self):
        src = _sources(forecast={date(2026, 3, 2): 40, date(2026, 3, 9): 20})
        value = merge_job(src, make_buckets(MONTH, "2026-03-01", 1)).buckets[0]
        assert value.source == SOURCE_FORECAST
        assert value.hours == pytest.approx(60)

    def test_allocation_fallback(self):
        src = _sources(allocation={"2026-03": 50})
        value = merge_job(src, make_buckets(MONTH, "2026-03-01", 1)).buckets[0]
        assert value.source == SOURCE_ALLOCATION
        assert value.hours == pytest.approx(50)

    def test_precedence_is_per_bucket(self):
        job = _job()
        src = _sources(job, phases=[_phase(job, date(2026, 3, 2), date(2026, 3, 6), 50)],
                       forecast={date(2026, 3, 9): 25})
        weeks = merge_job(src, make_buckets(WEEK, "2026-03-02", 2)).buckets
        assert [w.source for w in weeks] == [SOURCE_PHASE, SOURCE_FORECAST]
        assert [w.hours for w in weeks] == [50, 25]


class TestAllocationCap:
    def test_budget_take(self):
        budget = AllocationBudget(total_hours=200)
        assert budget.take(60) == 120
        assert budget.take(60) == 80
        assert budget.take(10) == 0

    def test_never_more_than_budget(self):
        src = _sources(allocation={"2026-03": 60, "2026-04": 60})
        months = merge_job(src, make_buckets(MONTH, "2026-03-01", 2)).buckets
        assert [m.hours for m in months] == [pytest.approx(60), pytest.approx(40)]

    def test_cap_consumed_in_date_order(self):
        src = _sources(allocation={"2026-03": 60, "2026-04": 60})
        buckets = list(reversed(make_buckets(MONTH, "2026-03-01", 2)))
        months = merge_job(src, buckets).buckets
        assert [m.key for m in months] == ["2026-04", "2026-03"]
        assert months[1].hours == pytest.approx(60)
        assert months[0].hours == pytest.approx(40)

    def test_prorated_by_workdays(self):
        src = _sources(allocation={"2026-03": 66})
        # March 2026 has 22 workdays; the week of 2 March holds 5 of them
        value = merge_job(src, make_buckets(WEEK, "2026-03-02", 1)).buckets[0]
        assert value.hours == pytest.approx(100 * 0.66 * 5 / 22)


class TestUnavailable:
    def test_failed_source_reported(self):
        src = ScheduleSources(job=_job(), phases=None, crew_days={}, forecast=None, allocation={"2026-03": 50})
        schedule = merge_job(src, make_buckets(MONTH, "2026-03-01", 1))
        assert schedule.unavailable == ["phases", "forecasts"]
        assert schedule.buckets[0].source == SOURCE_ALLOCATION

    def test_nothing_loaded_is_zero_not_error(self):
        src = ScheduleSources(job=_job())
        schedule = merge_job(src, make_buckets(WEEK, "2026-03-02", 2))
        assert schedule.total_hours == 0
        assert len(schedule.unavailable) == 4


class TestSchedule:
    def test_totals_and_jobs_on_date(self):
        a, b = _job("North Lot"), _job("South Lot")
        sources = [
            _sources(a, crew_days={date(2026, 3, 4): 30}),
            _sources(b, phases=[_phase(b, date(2026, 3, 2), date(2026, 3, 6), 50)]),
        ]
        schedules = merge_schedule(sources, make_buckets(DAY, "2026-03-04", 1))
        assert schedule_totals(schedules.values()) == {"2026-03-04": pytest.approx(40)}

        active = jobs_on_date(sources, date(2026, 3, 4))
        assert [item["job_key"] for item in active] == [a.key, b.key]
        assert active[0]["source"] == SOURCE_CREW_SHEET

    def test_to_dict(self):
        schedule = merge_job(_sources(allocation={"2026-03": 50}), make_buckets(MONTH, "2026-03-01", 1))
        data = schedule.to_dict()
        assert data["buckets"][0]["key"] == "2026-03"
        assert data["total_hours"] == 50
