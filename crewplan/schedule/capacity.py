"""
Capacity Advisor

Answers "if this phase runs on that day, how many company field hours are
left?" while a phase is being edited. A negative answer is a warning for
the editor to show; saving is never blocked.
"""

import sqlite3
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from crewplan.core import get_logger, get_scheduling_settings
from crewplan.projects.jobs import coerce_float
from crewplan.projects.phases import HOURS_PER_DAY, Phase, list_phases
from crewplan.schedule.dates import date_key, parse_date

logger = get_logger("crewplan.schedule.capacity")


def default_capacity_hours() -> float:
    return coerce_float(get_scheduling_settings()["company_capacity_hours"])


def _is_same_phase(phase: Phase, candidate: Phase) -> bool:
    if phase is candidate:
        return True
    return bool(candidate.id) and phase.id == candidate.id


def covering_phases(day: Optional[date], candidate: Phase, all_phases: Iterable[Phase]) -> List[Phase]:
    """Phases other than *candidate* whose date range includes *day*."""
    if day is None:
        return []
    covering = []
    for phase in all_phases:
        if _is_same_phase(phase, candidate):
            continue
        span = phase.date_range
        if span is not None and span.contains(day):
            covering.append(phase)
    return covering


def remaining_capacity(
    candidate_date: Any,
    candidate_phase: Phase,
    all_phases: Iterable[Phase],
    daily_company_capacity_hours: Optional[float] = None,
) -> float:
    """
    capacity - sum(other covering phases' manpower x 10) - candidate manpower x 10.

    An unparseable date means no other phase is counted as covering it.
    """
    if daily_company_capacity_hours is None:
        daily_company_capacity_hours = default_capacity_hours()
    day = parse_date(candidate_date)
    committed = sum(
        coerce_float(p.manpower) * HOURS_PER_DAY
        for p in covering_phases(day, candidate_phase, all_phases)
    )
    requested = coerce_float(candidate_phase.manpower) * HOURS_PER_DAY
    return daily_company_capacity_hours - committed - requested


def capacity_report(
    candidate_date: Any,
    candidate_phase: Phase,
    all_phases: Iterable[Phase],
    daily_company_capacity_hours: Optional[float] = None,
) -> Dict[str, Any]:
    """remaining_capacity() with its breakdown, for the phase editor."""
    if daily_company_capacity_hours is None:
        daily_company_capacity_hours = default_capacity_hours()
    phases = list(all_phases)
    day = parse_date(candidate_date)
    covering = covering_phases(day, candidate_phase, phases)
    remaining = remaining_capacity(day, candidate_phase, phases, daily_company_capacity_hours)
    if remaining < 0:
        logger.warning(
            "Phase '%s' over-commits %s by %.1f hours",
            candidate_phase.title,
            date_key(day) if day else candidate_date,
            -remaining,
        )
    return {
        "date": date_key(day) if day else None,
        "capacity_hours": daily_company_capacity_hours,
        "committed_hours": sum(coerce_float(p.manpower) * HOURS_PER_DAY for p in covering),
        "requested_hours": coerce_float(candidate_phase.manpower) * HOURS_PER_DAY,
        "remaining_hours": remaining,
        "over_committed": remaining < 0,
        "covering_phases": [
            {"id": p.id, "job_key": p.job_key, "title": p.title, "manpower": p.manpower}
            for p in covering
        ],
    }


def capacity_for_phase(
    conn: sqlite3.Connection,
    candidate_date: Any,
    candidate_phase: Phase,
    daily_company_capacity_hours: Optional[float] = None,
) -> Dict[str, Any]:
    """capacity_report() against every stored phase."""
    return capacity_report(
        candidate_date, candidate_phase, list_phases(conn), daily_company_capacity_hours
    )
