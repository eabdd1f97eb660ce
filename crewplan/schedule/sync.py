"""
Keeping derived schedule views in step after edits.

- sync_job_wip: rebuild a job's monthly work-in-progress hours from the
  merge engine and store them in wip_schedules.
- sync_phase_dates_from_crew_sheet: stretch the job's "Scheduled Work"
  phase over the first and last crew-sheet dates that carry hours.
- push_phase_to_crew_sheet: write manpower x 10 hours onto every workday
  of a phase's range.
"""

import json
import sqlite3
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from crewplan.core import get_logger, get_scheduling_settings, write_lock
from crewplan.projects.jobs import coerce_float
from crewplan.projects.phases import Phase, get_phase, list_phases, update_phase
from crewplan.schedule.dates import (
    DAY,
    date_key,
    make_buckets,
    month_range,
    walk_limit,
    week_day_position,
    workday_dates,
)
from crewplan.schedule.distribution import Strategy
from crewplan.schedule.merge import merge_job
from crewplan.schedule.sheets import (
    CrewSheet,
    crew_assignments_for_date,
    crew_sheet_days,
    crew_sheets_for_date,
    get_crew_sheet,
    load_crew_sheets,
    save_crew_sheet,
)
from crewplan.schedule.sources import ScheduleSources, load_job_sources

logger = get_logger("crewplan.schedule.sync")


# ---------------------------------------------------------------------------
# Monthly WIP rollup
# ---------------------------------------------------------------------------


def source_span(sources: ScheduleSources) -> Optional[Tuple[date, date]]:
    """(first, last) date any loaded source touches, or None."""
    points: List[date] = []
    for phase in sources.phases or []:
        span = phase.date_range
        if span is not None:
            points.extend([span.start, span.end])
    points.extend((sources.crew_days or {}).keys())
    for monday in (sources.forecast or {}).keys():
        points.extend([monday, monday + timedelta(days=6)])
    for key, percent in (sources.allocation or {}).items():
        span = month_range(key)
        if span is not None and percent > 0:
            points.extend([span.start, span.end])
    if not points:
        return None
    return min(points), max(points)


def compute_monthly_wip(
    sources: ScheduleSources, start: date, end: date, strategy: Strategy = None
) -> Dict[str, float]:
    """
    Merged hours per month between *start* and *end*.

    A day counts toward the month of its week's Monday, the same month
    document its crew-sheet entry lives in.

    Resolved at day granularity and summed, so crew-sheet overrides show
    up in the monthly figure. The range is clipped like any date walk.
    """
    end = min(end, walk_limit(start))
    if end < start:
        return {}
    count = (end - start).days + 1
    days = make_buckets(DAY, start, count)
    monthly: Dict[str, float] = {}
    for value in merge_job(sources, days, strategy).buckets:
        if value.hours > 0:
            key = week_day_position(value.start)[0]
            monthly[key] = monthly.get(key, 0.0) + value.hours
    return dict(sorted(monthly.items()))


def save_wip(
    conn: sqlite3.Connection, job_key: str, allocations: Dict[str, float], sync_source: str = "auto"
) -> float:
    total = sum(allocations.values())
    conn.execute(
        """INSERT INTO wip_schedules (job_key, allocations, total_hours, sync_source)
           VALUES (?, ?, ?, ?)
           ON CONFLICT(job_key) DO UPDATE SET
               allocations = excluded.allocations,
               total_hours = excluded.total_hours,
               sync_source = excluded.sync_source,
               updated_at = CURRENT_TIMESTAMP""",
        (job_key, json.dumps(allocations), total, sync_source),
    )
    conn.commit()
    return total


def get_wip(conn: sqlite3.Connection, job_key: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM wip_schedules WHERE job_key = ?", (job_key,)).fetchone()
    if row is None:
        return None
    result = dict(row)
    result["allocations"] = json.loads(row["allocations"] or "{}")
    return result


def sync_job_wip(
    conn: sqlite3.Connection, job_key: str, strategy: Strategy = None
) -> Optional[Dict[str, Any]]:
    """
    Rebuild and store the monthly WIP rollup for *job_key*.

    Returns:
        {"job_key", "allocations", "total_hours"}, or None when the job
        key does not resolve to a project.
    """
    sources = load_job_sources(conn, job_key)
    if sources is None:
        return None

    span = source_span(sources)
    monthly = compute_monthly_wip(sources, span[0], span[1], strategy) if span else {}
    total = save_wip(conn, job_key, monthly)
    logger.info("Synced WIP for %s: %.1f total hours", job_key, total)
    return {"job_key": job_key, "allocations": monthly, "total_hours": total}


# ---------------------------------------------------------------------------
# Crew sheet <-> phase dates
# ---------------------------------------------------------------------------


def _scheduled_work_title() -> str:
    return str(get_scheduling_settings()["scheduled_work_title"]).strip().lower()


def sync_phase_dates_from_crew_sheet(conn: sqlite3.Connection, job_key: str) -> Optional[Phase]:
    """
    Move the job's "Scheduled Work" phase to span its crew-sheet dates.

    Only dates with hours count. Returns the updated phase, or None when
    there are no such dates or no phase with that title.
    """
    days = sorted(crew_sheet_days(load_crew_sheets(conn, job_key)))
    if not days:
        return None

    wanted = _scheduled_work_title()
    target = next((p for p in list_phases(conn, job_key) if p.title.strip().lower() == wanted), None)
    if target is None:
        logger.debug("No scheduled-work phase on %s", job_key)
        return None

    update_phase(conn, target.id, start_date=date_key(days[0]), end_date=date_key(days[-1]))
    logger.info(
        "Phase %s on %s moved to %s..%s", target.id, job_key, date_key(days[0]), date_key(days[-1])
    )
    return get_phase(conn, target.id)


def push_phase_to_crew_sheet(
    conn: sqlite3.Connection,
    phase: Phase,
    crew_leader_id: Optional[str] = None,
    hours_per_day: Optional[float] = None,
) -> List[CrewSheet]:
    """
    Write the phase's daily crew hours (manpower x hours_per_day) onto every
    workday of its range, one crew sheet per month document.

    Existing worker lists are kept unless *crew_leader_id* takes over a
    day entry; the entry then carries that leader's existing crew for the
    day, so no worker ends up under two leaders. Nothing is written for an
    undated or unstaffed phase.

    Raises:
        StaleSheetError: a sheet changed while it was being rewritten; no
            month is written in that case.
    """
    if hours_per_day is None:
        hours_per_day = coerce_float(get_scheduling_settings()["hours_per_day"])
    daily = coerce_float(phase.manpower) * hours_per_day
    span = phase.date_range
    if span is None or daily <= 0:
        return []

    by_month: Dict[str, List[date]] = {}
    for day in workday_dates(span.start, span.end):
        by_month.setdefault(week_day_position(day)[0], []).append(day)

    written: List[CrewSheet] = []
    with write_lock(conn):
        for month, days in sorted(by_month.items()):
            sheet = get_crew_sheet(conn, phase.job_key, month) or CrewSheet(phase.job_key, month)
            for day in days:
                entry = sheet.ensure_day(day)
                entry.hours = daily
                if crew_leader_id and entry.crew_leader_id != crew_leader_id:
                    crews = crew_assignments_for_date(crew_sheets_for_date(conn, day), day)
                    entry.crew_leader_id = crew_leader_id
                    entry.worker_ids = list(crews.get(crew_leader_id, []))
            written.append(save_crew_sheet(conn, sheet, commit=False))
    logger.info(
        "Pushed phase %s to %d crew sheet(s) at %.1f h/day", phase.id, len(written), daily
    )
    return written
