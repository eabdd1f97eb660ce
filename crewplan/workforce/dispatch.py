"""
Crew Assignment Ledger

Crew assignments are not stored on their own: for a date and a crew
leader, the crew is the worker list on the crew-sheet day entries that
leader runs. The one hard rule is that a worker appears under at most one
crew leader per date.

assign() enforces that rule by filtering the requested workers against
every other leader's crew for the date and reporting what it dropped. The
read, filter and write run inside one BEGIN IMMEDIATE transaction and each
crew-sheet write is a version compare-and-swap, so concurrent dispatchers
serialize instead of overwriting each other.
"""

import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from crewplan.core import DispatchError, get_logger, write_lock
from crewplan.projects.jobs import load_jobs_cached, qualifying_jobs
from crewplan.schedule.dates import date_key, parse_date, week_day_position
from crewplan.schedule.merge import jobs_on_date
from crewplan.schedule.sheets import (
    CrewSheet,
    crew_assignments_for_date,
    crew_sheets_for_date,
    get_crew_sheet,
    save_crew_sheet,
)
from crewplan.schedule.sources import load_all_sources
from crewplan.schedule.sync import sync_job_wip
from crewplan.workforce.employees import (
    Worker,
    is_field_worker,
    list_crew_leaders,
    list_field_workers,
    list_workers,
)
from crewplan.workforce.timeoff import TimeOffRequest, full_day_hours, hours_off, list_time_off

logger = get_logger("crewplan.workforce.dispatch")

ResyncCallback = Callable[[sqlite3.Connection, str], Any]


def _require_date(value: Any) -> date:
    day = parse_date(value)
    if day is None:
        raise ValueError(f"Invalid date: {value!r}")
    return day


# ---------------------------------------------------------------------------
# Reading the ledger
# ---------------------------------------------------------------------------


def load_crew_assignments(conn: sqlite3.Connection, day: Any) -> Dict[str, List[str]]:
    day = _require_date(day)
    return crew_assignments_for_date(crew_sheets_for_date(conn, day), day)


def claimed_by_others(assignments: Dict[str, List[str]], crew_leader_id: Optional[str]) -> Set[str]:
    """Workers on any crew other than *crew_leader_id*'s."""
    claimed: Set[str] = set()
    for leader, crew in assignments.items():
        if leader != crew_leader_id:
            claimed.update(crew)
    return claimed


def available_workers(
    day: date,
    excluding_leader: Optional[str],
    workers: Iterable[Worker],
    assignments: Dict[str, List[str]],
    time_off: Sequence[TimeOffRequest],
    field_roles: Optional[List[str]] = None,
    threshold: Optional[float] = None,
) -> List[Worker]:
    """
    Workers *excluding_leader* could put on their crew for *day*.

    Active field workers, not on another leader's crew that day, with less
    than a full day of time off.
    """
    if threshold is None:
        threshold = full_day_hours()
    taken = claimed_by_others(assignments, excluding_leader)
    return [
        w
        for w in workers
        if is_field_worker(w, field_roles)
        and w.id not in taken
        and hours_off(w.id, day, time_off) < threshold
    ]


def load_available_workers(
    conn: sqlite3.Connection, day: Any, excluding_leader: Optional[str]
) -> List[Worker]:
    day = _require_date(day)
    return available_workers(
        day,
        excluding_leader,
        list_workers(conn),
        load_crew_assignments(conn, day),
        list_time_off(conn, day=day),
    )


# ---------------------------------------------------------------------------
# Writing the ledger
# ---------------------------------------------------------------------------


@dataclass
class AssignmentResult:
    """Outcome of assign(): who made the crew, who was already taken."""

    date: date
    crew_leader_id: str
    accepted: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    jobs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": date_key(self.date),
            "crew_leader_id": self.crew_leader_id,
            "accepted": list(self.accepted),
            "rejected": list(self.rejected),
            "jobs": list(self.jobs),
        }


def _resync(conn: sqlite3.Connection, job_keys: Iterable[str], callback: Optional[ResyncCallback]) -> None:
    if callback is None:
        return
    for job_key in job_keys:
        try:
            callback(conn, job_key)
        except Exception as exc:
            logger.warning("Resync failed for %s after assignment: %s", job_key, exc, exc_info=True)


def assign(
    conn: sqlite3.Connection,
    day: Any,
    crew_leader_id: str,
    worker_ids: Sequence[str],
    job_key: Optional[str] = None,
    on_assigned: Optional[ResyncCallback] = sync_job_wip,
) -> AssignmentResult:
    """
    Set *crew_leader_id*'s crew for *day*.

    Workers already on another leader's crew that day are rejected; the
    rest are written to every job entry the leader runs that day. With
    *job_key*, that job's entry is created (or taken over) for the leader
    first.

    After the write commits, *on_assigned* is called once per touched job
    (default: monthly WIP rollup). Its failures are logged, not raised.

    Raises:
        ValueError: unparseable date.
        DispatchError: the leader runs no job that day and no job_key given.
        StaleSheetError: a crew sheet changed underneath the write.
    """
    day = _require_date(day)
    requested: List[str] = []
    for worker_id in worker_ids:
        worker_id = str(worker_id).strip()
        if worker_id and worker_id not in requested:
            requested.append(worker_id)

    with write_lock(conn):
        sheets = crew_sheets_for_date(conn, day)
        taken = claimed_by_others(crew_assignments_for_date(sheets, day), crew_leader_id)
        accepted = [w for w in requested if w not in taken]
        rejected = [w for w in requested if w in taken]

        targets: List[CrewSheet] = []
        for sheet in sheets:
            entry = sheet.day_for(day)
            if entry is not None and entry.crew_leader_id == crew_leader_id:
                targets.append(sheet)

        if job_key and not any(s.job_key == job_key for s in targets):
            month = week_day_position(day)[0]
            sheet = next((s for s in sheets if s.job_key == job_key), None)
            if sheet is None:
                sheet = CrewSheet(job_key=job_key, month=month)
            sheet.ensure_day(day).crew_leader_id = crew_leader_id
            targets.append(sheet)

        if not targets:
            raise DispatchError(
                f"Crew leader {crew_leader_id} has no job on {date_key(day)}; dispatch a job first"
            )

        for sheet in targets:
            sheet.ensure_day(day).worker_ids = list(accepted)
            save_crew_sheet(conn, sheet, commit=False)

    result = AssignmentResult(
        date=day,
        crew_leader_id=crew_leader_id,
        accepted=accepted,
        rejected=rejected,
        jobs=[s.job_key for s in targets],
    )
    if rejected:
        logger.info(
            "Crew %s on %s: %d assigned, already on other crews: %s",
            crew_leader_id, date_key(day), len(accepted), ", ".join(rejected),
        )
    else:
        logger.info("Crew %s on %s: %d assigned", crew_leader_id, date_key(day), len(accepted))

    _resync(conn, result.jobs, on_assigned)
    return result


def dispatch_job(
    conn: sqlite3.Connection,
    day: Any,
    job_key: str,
    crew_leader_id: Optional[str],
    hours: Optional[float] = None,
    on_assigned: Optional[ResyncCallback] = sync_job_wip,
) -> Dict[str, Any]:
    """
    Put *job_key* under *crew_leader_id* on *day* (None unassigns it).

    The entry's crew becomes the leader's existing crew for that day, so
    the one-crew-per-worker rule still holds. *hours* replaces the entry's
    hours when given.
    """
    day = _require_date(day)
    month = week_day_position(day)[0]

    with write_lock(conn):
        sheets = crew_sheets_for_date(conn, day)
        crews = crew_assignments_for_date(sheets, day)
        sheet = get_crew_sheet(conn, job_key, month) or CrewSheet(job_key=job_key, month=month)
        entry = sheet.ensure_day(day)
        entry.crew_leader_id = crew_leader_id or None
        entry.worker_ids = list(crews.get(crew_leader_id, [])) if crew_leader_id else []
        if hours is not None:
            entry.hours = max(float(hours), 0.0)
        save_crew_sheet(conn, sheet, commit=False)

    logger.info("Dispatched %s on %s to %s", job_key, date_key(day), crew_leader_id or "(unassigned)")
    _resync(conn, [job_key], on_assigned)
    return {"job_key": job_key, "date": date_key(day), "month": month, **entry.to_dict()}


# ---------------------------------------------------------------------------
# Board views
# ---------------------------------------------------------------------------


def _merged_jobs(conn: sqlite3.Connection, day: date) -> Dict[str, Dict[str, Any]]:
    jobs = {job.key: job for job in qualifying_jobs(load_jobs_cached(conn).values())}
    return {item["job_key"]: item for item in jobs_on_date(load_all_sources(conn, jobs).values(), day)}


def crew_board(conn: sqlite3.Connection, day: Any) -> Dict[str, Any]:
    """
    Dispatch board for *day*: each crew leader's jobs and crew, plus jobs
    with scheduled hours but no leader.
    """
    day = _require_date(day)
    sheets = crew_sheets_for_date(conn, day)
    crews = crew_assignments_for_date(sheets, day)
    merged = _merged_jobs(conn, day)

    led: Dict[str, List[Dict[str, Any]]] = {}
    for sheet in sheets:
        entry = sheet.day_for(day)
        if entry is None or not entry.crew_leader_id:
            continue
        hours = merged[sheet.job_key]["hours"] if sheet.job_key in merged else entry.hours
        led.setdefault(entry.crew_leader_id, []).append({"job_key": sheet.job_key, "hours": hours})

    leaders = []
    for leader in list_crew_leaders(conn):
        jobs = led.pop(leader.id, [])
        leaders.append({
            "id": leader.id,
            "name": leader.name,
            "jobs": jobs,
            "scheduled_hours": sum(j["hours"] for j in jobs),
            "worker_ids": crews.get(leader.id, []),
        })
    for leader_id, jobs in sorted(led.items()):
        # Leader id on a sheet with no matching active leader record
        leaders.append({
            "id": leader_id,
            "name": "",
            "jobs": jobs,
            "scheduled_hours": sum(j["hours"] for j in jobs),
            "worker_ids": crews.get(leader_id, []),
        })

    with_leader = {
        sheet.job_key
        for sheet in sheets
        if sheet.day_for(day) is not None and sheet.day_for(day).crew_leader_id
    }
    unassigned = [item for key, item in merged.items() if key not in with_leader]
    return {"date": date_key(day), "leaders": leaders, "unassigned": unassigned}


def day_summary(conn: sqlite3.Connection, day: Any) -> Dict[str, Any]:
    """
    Company totals for *day*.

    Capacity is field workers x full day minus their hours off. Assigned
    hours count a full day per worker on a crew.
    """
    day = _require_date(day)
    per_day = full_day_hours()
    field_workers = list_field_workers(conn)
    requests = list_time_off(conn, day=day)

    people_off = []
    total_off = 0.0
    for worker in field_workers:
        worker_requests = [r for r in requests if r.worker_id == worker.id]
        off = hours_off(worker.id, day, worker_requests)
        if off > 0:
            total_off += off
            people_off.append({
                "worker_id": worker.id,
                "name": worker.name,
                "hours": off,
                "type": worker_requests[0].type,
            })

    assigned = set()
    for crew in load_crew_assignments(conn, day).values():
        assigned.update(crew)

    merged = _merged_jobs(conn, day)
    return {
        "date": date_key(day),
        "field_workers": len(field_workers),
        "capacity_hours": len(field_workers) * per_day - total_off,
        "hours_off": total_off,
        "people_off": people_off,
        "assigned_workers": len(assigned),
        "assigned_hours": len(assigned) * per_day,
        "scheduled_hours": sum(item["hours"] for item in merged.values()),
    }
