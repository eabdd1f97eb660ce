"""
crewplan Workforce Module

Field workers, time off, and the crew assignment ledger.
"""

from crewplan.workforce.employees import (
    Worker,
    create_worker,
    get_worker,
    list_crew_leaders,
    list_field_workers,
    list_workers,
)
from crewplan.workforce.timeoff import TimeOffRequest, create_time_off, hours_off, list_time_off
from crewplan.workforce.dispatch import (
    AssignmentResult,
    assign,
    available_workers,
    crew_board,
    day_summary,
    dispatch_job,
)

__all__ = [
    # employees.py
    "Worker",
    "create_worker",
    "get_worker",
    "list_workers",
    "list_crew_leaders",
    "list_field_workers",
    # timeoff.py
    "TimeOffRequest",
    "create_time_off",
    "list_time_off",
    "hours_off",
    # dispatch.py
    "AssignmentResult",
    "assign",
    "available_workers",
    "dispatch_job",
    "crew_board",
    "day_summary",
]
