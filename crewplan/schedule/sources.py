"""
Loading the four schedule sources for the merge engine.

Each source is loaded independently. A source that fails to load
(sqlite3.Error, including lock timeouts) is set to None, meaning "no
data". That is different from a loaded source that happens to be empty
("zero data"), and the merge engine reports the difference.

Records referencing a job key with no matching project are dropped.
"""

import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from crewplan.core import get_logger
from crewplan.projects.jobs import CostLine, Job, get_job, load_jobs_cached
from crewplan.projects.phases import Phase, list_phases
from crewplan.schedule.sheets import (
    crew_sheet_days,
    forecast_weeks,
    load_allocations,
    load_crew_sheets,
    load_forecasts,
)

logger = get_logger("crewplan.schedule.sources")

T = TypeVar("T")

SOURCE_NAMES = ("phases", "crew_sheets", "forecasts", "allocations")


@dataclass
class ScheduleSources:
    """Everything the merge engine needs for one job."""

    job: Job
    phases: Optional[List[Phase]] = None
    crew_days: Optional[Dict[date, float]] = None
    forecast: Optional[Dict[date, float]] = None
    allocation: Optional[Dict[str, float]] = None

    @property
    def job_key(self) -> str:
        return self.job.key

    @property
    def cost_lines(self) -> List[CostLine]:
        return self.job.cost_lines

    @property
    def unavailable(self) -> List[str]:
        """Names of sources that could not be loaded."""
        loaded = (self.phases, self.crew_days, self.forecast, self.allocation)
        return [name for name, value in zip(SOURCE_NAMES, loaded) if value is None]


def _attempt(name: str, job_key: str, loader: Callable[[], T]) -> Optional[T]:
    try:
        return loader()
    except sqlite3.Error as exc:
        logger.warning("Source %s unavailable for %s: %s", name, job_key or "*", exc)
        return None


def load_job_sources(
    conn: sqlite3.Connection, job_key: str, job: Optional[Job] = None
) -> Optional[ScheduleSources]:
    """
    Load one job's schedule sources.

    Returns None when the job key does not resolve to a project (or the
    project itself cannot be read).
    """
    if job is None:
        job = _attempt("projects", job_key, lambda: get_job(conn, job_key))
    if job is None:
        logger.debug("No project for job key %s", job_key)
        return None

    phases = _attempt("phases", job_key, lambda: list_phases(conn, job_key))
    sheets = _attempt("crew_sheets", job_key, lambda: load_crew_sheets(conn, job_key))
    forecasts = _attempt("forecasts", job_key, lambda: load_forecasts(conn, job_key))
    allocations = _attempt("allocations", job_key, lambda: load_allocations(conn, job_key))

    allocation = None
    if allocations is not None:
        found = allocations.get(job_key)
        allocation = dict(found.percents) if found else {}

    return ScheduleSources(
        job=job,
        phases=phases,
        crew_days=crew_sheet_days(sheets) if sheets is not None else None,
        forecast=forecast_weeks(forecasts) if forecasts is not None else None,
        allocation=allocation,
    )


def _group(items: Iterable[T], key: Callable[[T], str]) -> Dict[str, List[T]]:
    grouped: Dict[str, List[T]] = {}
    for item in items:
        grouped.setdefault(key(item), []).append(item)
    return grouped


def load_all_sources(
    conn: sqlite3.Connection, jobs: Optional[Dict[str, Job]] = None
) -> Dict[str, ScheduleSources]:
    """
    Bulk-load sources for every job in *jobs* (default: all projects).

    Each table is read once. Rows for job keys outside *jobs* are skipped.
    """
    if jobs is None:
        jobs = _attempt("projects", "", lambda: load_jobs_cached(conn)) or {}

    phases = _attempt("phases", "", lambda: list_phases(conn))
    sheets = _attempt("crew_sheets", "", lambda: load_crew_sheets(conn))
    forecasts = _attempt("forecasts", "", lambda: load_forecasts(conn))
    allocations = _attempt("allocations", "", lambda: load_allocations(conn))

    phases_by_job = _group(phases or [], lambda p: p.job_key)
    sheets_by_job = _group(sheets or [], lambda s: s.job_key)
    forecasts_by_job = _group(forecasts or [], lambda f: f.job_key)

    for orphan in set(sheets_by_job) - set(jobs):
        logger.debug("Skipping crew sheets for unknown job %s", orphan)
    for orphan in set(forecasts_by_job) - set(jobs):
        logger.debug("Skipping forecasts for unknown job %s", orphan)

    result: Dict[str, ScheduleSources] = {}
    for job_key, job in jobs.items():
        allocation = None
        if allocations is not None:
            found = allocations.get(job_key)
            allocation = dict(found.percents) if found else {}
        result[job_key] = ScheduleSources(
            job=job,
            phases=phases_by_job.get(job_key, []) if phases is not None else None,
            crew_days=crew_sheet_days(sheets_by_job.get(job_key, [])) if sheets is not None else None,
            forecast=forecast_weeks(forecasts_by_job.get(job_key, [])) if forecasts is not None else None,
            allocation=allocation,
        )
    return result
