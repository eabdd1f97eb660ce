"""
Schedule Merge Engine

For each (job, bucket) one source is authoritative, picked fresh on every
read by strict precedence:

    1. phase       dated phase distribution with hours in the bucket
    2. crew_sheet  day buckets only: crew-sheet hours for that date
    3. forecast    weekly forecast (whole week, or weekly / 5 per workday)
    4. allocation  budgeted hours x monthly percent, prorated by workdays,
                   never more than 100% of the budget per job

Precedence is per bucket, so one job may show phase hours in one week and
crew-sheet hours in the next. Sources that failed to load are skipped and
listed in JobSchedule.unavailable.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from crewplan.core import get_logger
from crewplan.projects.jobs import total_budgeted_hours
from crewplan.schedule.dates import (
    DAY,
    WEEK,
    WORKDAYS_PER_WEEK,
    Bucket,
    date_key,
    is_workday,
    make_buckets,
    month_key,
    month_range,
    overlap,
    week_start,
    workday_dates,
    workdays,
)
from crewplan.schedule.distribution import Strategy, distribute_phases, is_distributable
from crewplan.schedule.sources import ScheduleSources

logger = get_logger("crewplan.schedule.merge")

SOURCE_PHASE = "phase"
SOURCE_CREW_SHEET = "crew_sheet"
SOURCE_FORECAST = "forecast"
SOURCE_ALLOCATION = "allocation"
SOURCE_NONE = "none"


@dataclass
class BucketValue:
    key: str
    start: date
    end: date
    hours: float = 0.0
    source: str = SOURCE_NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "start": date_key(self.start),
            "end": date_key(self.end),
            "hours": round(self.hours, 4),
            "source": self.source,
        }


@dataclass
class JobSchedule:
    job_key: str
    buckets: List[BucketValue] = field(default_factory=list)
    unavailable: List[str] = field(default_factory=list)

    @property
    def total_hours(self) -> float:
        return sum(b.hours for b in self.buckets)

    def hours_by_key(self) -> Dict[str, float]:
        return {b.key: b.hours for b in self.buckets}

    def get(self, key: str) -> Optional[BucketValue]:
        for bucket in self.buckets:
            if bucket.key == key:
                return bucket
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_key": self.job_key,
            "total_hours": round(self.total_hours, 4),
            "unavailable": list(self.unavailable),
            "buckets": [b.to_dict() for b in self.buckets],
        }


@dataclass
class AllocationBudget:
    """Running percent cap for one job's allocation fallback."""

    total_hours: float
    used_percent: float = 0.0

    @property
    def remaining_percent(self) -> float:
        return max(0.0, 100.0 - self.used_percent)

    def take(self, percent: float) -> float:
        """Consume up to *percent* of the budget; returns the hours granted."""
        granted = min(max(percent, 0.0), self.remaining_percent)
        self.used_percent += granted
        return self.total_hours * granted / 100.0


# ---------------------------------------------------------------------------
# Per-source bucket figures
# ---------------------------------------------------------------------------


def _forecast_hours(forecast: Mapping[date, float], bucket: Bucket) -> float:
    if bucket.mode == WEEK:
        return forecast.get(bucket.start, 0.0)
    if bucket.mode == DAY:
        if not is_workday(bucket.start):
            return 0.0
        return forecast.get(week_start(bucket.start), 0.0) / WORKDAYS_PER_WEEK
    return sum(
        forecast.get(week_start(day), 0.0) / WORKDAYS_PER_WEEK
        for day in workday_dates(bucket.start, bucket.end)
    )


def _allocation_percent(allocation: Mapping[str, float], bucket: Bucket) -> float:
    """Percent of the job budget that falls in *bucket*, prorated by workdays."""
    percent = 0.0
    cursor = bucket.start.replace(day=1)
    while cursor <= bucket.end:
        key = month_key(cursor)
        month_percent = allocation.get(key, 0.0)
        span = month_range(key)
        if month_percent > 0 and span is not None:
            shared = overlap(span, bucket.range)
            month_days = workdays(span.start, span.end)
            if shared is not None and month_days:
                percent += month_percent * workdays(shared.start, shared.end) / month_days
        cursor = span.end + timedelta(days=1)
    return percent


def merge_bucket(
    sources: ScheduleSources,
    bucket: Bucket,
    phase_hours: float,
    budget: AllocationBudget,
) -> BucketValue:
    """Resolve one bucket. *phase_hours* is the phase distribution for it."""
    value = BucketValue(key=bucket.key, start=bucket.start, end=bucket.end)

    if phase_hours > 0:
        value.hours, value.source = phase_hours, SOURCE_PHASE
        return value

    if bucket.mode == DAY and sources.crew_days:
        hours = sources.crew_days.get(bucket.start, 0.0)
        if hours > 0:
            value.hours, value.source = hours, SOURCE_CREW_SHEET
            return value

    if sources.forecast:
        hours = _forecast_hours(sources.forecast, bucket)
        if hours > 0:
            value.hours, value.source = hours, SOURCE_FORECAST
            return value

    if sources.allocation:
        percent = _allocation_percent(sources.allocation, bucket)
        if percent > 0:
            hours = budget.take(percent)
            if hours > 0:
                value.hours, value.source = hours, SOURCE_ALLOCATION
    return value


def merge_job(
    sources: ScheduleSources, buckets: Sequence[Bucket], strategy: Strategy = None
) -> JobSchedule:
    """
    Merged hours for one job across *buckets*.

    Buckets are resolved in date order so the allocation cap is consumed
    earliest first; the result keeps the caller's bucket order.
    """
    schedule = JobSchedule(job_key=sources.job_key, unavailable=sources.unavailable)
    if schedule.unavailable:
        logger.debug("Merging %s without %s", sources.job_key, ", ".join(schedule.unavailable))

    cost_lines = sources.cost_lines
    dated = [p for p in sources.phases or [] if is_distributable(p, cost_lines, strategy)]
    phase_hours = distribute_phases(dated, buckets, cost_lines, strategy) if dated else {}

    budget = AllocationBudget(total_budgeted_hours(cost_lines))
    resolved: Dict[int, BucketValue] = {}
    for index in sorted(range(len(buckets)), key=lambda i: buckets[i].start):
        bucket = buckets[index]
        resolved[index] = merge_bucket(sources, bucket, phase_hours.get(bucket.key, 0.0), budget)

    schedule.buckets = [resolved[i] for i in range(len(buckets))]
    return schedule


def merge_schedule(
    all_sources: Iterable[ScheduleSources],
    buckets: Sequence[Bucket],
    strategy: Strategy = None,
) -> Dict[str, JobSchedule]:
    """merge_job() for every job."""
    return {src.job_key: merge_job(src, buckets, strategy) for src in all_sources}


def schedule_totals(schedules: Iterable[JobSchedule]) -> Dict[str, float]:
    """Company-wide hours per bucket key."""
    totals: Dict[str, float] = {}
    for schedule in schedules:
        for bucket in schedule.buckets:
            totals[bucket.key] = totals.get(bucket.key, 0.0) + bucket.hours
    return totals


def jobs_on_date(
    all_sources: Iterable[ScheduleSources], day: date, strategy: Strategy = None
) -> List[Dict[str, Any]]:
    """Jobs with merged hours on *day*, largest first."""
    bucket = make_buckets(DAY, day, 1)
    active = []
    for src in all_sources:
        value = merge_job(src, bucket, strategy).buckets[0]
        if value.hours > 0:
            active.append({"job_key": src.job_key, "hours": value.hours, "source": value.source})
    return sorted(active, key=lambda item: (-item["hours"], item["job_key"]))
