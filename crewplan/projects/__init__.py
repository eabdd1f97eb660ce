"""
crewplan Projects Module

Jobs and their budget cost lines, work phases, and matching phases to the
cost lines they cover.
"""

from crewplan.projects.jobs import (
    CostLine,
    Job,
    create_project,
    add_cost_line,
    get_job,
    is_qualifying_job,
    jobs_from_records,
    load_jobs,
    load_jobs_cached,
    make_job_key,
    qualifying_jobs,
    total_budgeted_hours,
)
from crewplan.projects.phases import (
    Phase,
    create_phase,
    delete_phase,
    get_match_strategy,
    get_phase,
    list_phases,
    match_hours,
    normalize_title,
    phases_for_job,
    update_phase,
)

__all__ = [
    # jobs.py
    "CostLine",
    "Job",
    "make_job_key",
    "jobs_from_records",
    "total_budgeted_hours",
    "is_qualifying_job",
    "qualifying_jobs",
    "create_project",
    "add_cost_line",
    "get_job",
    "load_jobs",
    "load_jobs_cached",
    # phases.py
    "Phase",
    "normalize_title",
    "get_match_strategy",
    "match_hours",
    "phases_for_job",
    "create_phase",
    "get_phase",
    "list_phases",
    "update_phase",
    "delete_phase",
]
