"""
Jobs and cost lines.

A job has no row id of its own that the scheduler trusts: it is identified
by the composite key ``customer~project number~project name``. Every place
that derives a key goes through make_job_key() so that two raw records with
the same three fields always land on the same job.

Cost lines are read-only budget rows (sales, cost, hours) imported from the
estimating system. They are the raw material the phase reconciler matches
against and the allocation fallback budgets from.
"""

import math
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from crewplan.core import get_logger, get_qualifying_rules, get_scheduling_settings
from crewplan.core.cache import TTLCache

logger = get_logger("crewplan.projects.jobs")

JOB_KEY_SEPARATOR = "~"


# ---------------------------------------------------------------------------
# Job keys
# ---------------------------------------------------------------------------


def _clean_key_part(value: Any) -> str:
    text = "" if value is None else str(value)
    text = text.replace(JOB_KEY_SEPARATOR, "-")
    return " ".join(text.split())


def make_job_key(customer: Any, project_number: Any, project_name: Any) -> str:
    """
    Compose the job key.

    Each part is trimmed, internal whitespace collapsed, and any separator
    character inside a part replaced with '-'.

    Example:
        make_job_key(" Acme ", "1001", "North  Lot")  # 'Acme~1001~North Lot'
    """
    parts = (customer, project_number, project_name)
    return JOB_KEY_SEPARATOR.join(_clean_key_part(p) for p in parts)


def split_job_key(job_key: Optional[str]) -> Tuple[str, str, str]:
    """Split a job key into (customer, project number, project name)."""
    parts = (job_key or "").split(JOB_KEY_SEPARATOR, 2)
    parts += [""] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def is_blank_job_key(job_key: Optional[str]) -> bool:
    return not any(split_job_key(job_key))


def coerce_float(value: Any) -> float:
    """Best-effort number: strings like '1,200' or '$5' parse, junk becomes 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "").replace("$", "")
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _pick(record: Dict[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in record and record[name] is not None:
            return record[name]
    return default


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class CostLine:
    job_key: str
    cost_item: str = ""
    cost_type: str = ""
    group: str = ""
    sales: float = 0.0
    cost: float = 0.0
    hours: float = 0.0
    phase_id: Optional[str] = None

    @property
    def is_management(self) -> bool:
        return "management" in self.cost_type.lower()

    @classmethod
    def from_record(cls, job_key: str, record: Dict[str, Any]) -> "CostLine":
        """Build from a raw dict (snake_case or camelCase field names)."""
        phase_id = _pick(record, "phase_id", "phaseId", "scope_id", "scopeId")
        return cls(
            job_key=job_key,
            cost_item=str(_pick(record, "cost_item", "costItem", "costitems", default="")).strip(),
            cost_type=str(_pick(record, "cost_type", "costType", default="")).strip(),
            group=str(_pick(record, "group", "group_label", "pmcGroup", default="")).strip(),
            sales=coerce_float(record.get("sales")),
            cost=coerce_float(record.get("cost")),
            hours=coerce_float(record.get("hours")),
            phase_id=str(phase_id) if phase_id is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_key": self.job_key,
            "cost_item": self.cost_item,
            "cost_type": self.cost_type,
            "group": self.group,
            "sales": self.sales,
            "cost": self.cost,
            "hours": self.hours,
            "phase_id": self.phase_id,
        }


@dataclass
class Job:
    customer: str
    project_number: str
    project_name: str
    status: str = ""
    archived: bool = False
    cost_lines: List[CostLine] = field(default_factory=list)

    @property
    def key(self) -> str:
        return make_job_key(self.customer, self.project_number, self.project_name)

    @property
    def total_budgeted_hours(self) -> float:
        return total_budgeted_hours(self.cost_lines)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Job":
        customer = _clean_key_part(record.get("customer"))
        number = _clean_key_part(_pick(record, "project_number", "projectNumber"))
        name = _clean_key_part(_pick(record, "project_name", "projectName"))
        job = cls(
            customer=customer,
            project_number=number,
            project_name=name,
            status=str(record.get("status") or "").strip(),
            archived=bool(_pick(record, "archived", "projectArchived", default=False)),
        )
        raw_lines = _pick(record, "cost_lines", "costLines", default=[]) or []
        job.cost_lines = [CostLine.from_record(job.key, line) for line in raw_lines if isinstance(line, dict)]
        return job

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_key": self.key,
            "customer": self.customer,
            "project_number": self.project_number,
            "project_name": self.project_name,
            "status": self.status,
            "archived": self.archived,
            "total_budgeted_hours": self.total_budgeted_hours,
            "cost_line_count": len(self.cost_lines),
        }


def jobs_from_records(records: Iterable[Dict[str, Any]]) -> Dict[str, Job]:
    """
    Fold raw job records into one Job per key.

    Records sharing the three key fields merge: cost lines concatenate and
    the first non-empty status wins. Records with an all-blank key are
    dropped.
    """
    jobs: Dict[str, Job] = {}
    for record in records:
        job = Job.from_record(record)
        if is_blank_job_key(job.key):
            logger.debug("Skipping job record with blank key")
            continue
        existing = jobs.get(job.key)
        if existing is None:
            jobs[job.key] = job
            continue
        existing.cost_lines.extend(job.cost_lines)
        if not existing.status:
            existing.status = job.status
        existing.archived = existing.archived and job.archived
    return jobs


def total_budgeted_hours(cost_lines: Iterable[CostLine]) -> float:
    """Field labor hours budgeted on *cost_lines* (management excluded)."""
    return sum(line.hours for line in cost_lines if not line.is_management)


# ---------------------------------------------------------------------------
# Qualifying jobs
# ---------------------------------------------------------------------------


def is_qualifying_job(job: Job, rules: Optional[Dict[str, List[str]]] = None) -> bool:
    """
    Whether *job* belongs on the schedule boards.

    Status must be one of the configured statuses and the job must not be
    archived. Customer substrings, exact project names, project-name
    substrings and exact project numbers can exclude it; all comparisons
    are case-insensitive.
    """
    if rules is None:
        rules = get_qualifying_rules()

    statuses = [s.strip().lower() for s in rules.get("statuses", [])]
    if job.status.strip().lower() not in statuses:
        return False
    if job.archived:
        return False

    customer = job.customer.lower()
    name = job.project_name.lower()
    number = job.project_number.lower()

    if any(s.lower() in customer for s in rules.get("excluded_customer_substrings", []) if s):
        return False
    if name in (n.lower() for n in rules.get("excluded_project_names", [])):
        return False
    if any(s.lower() in name for s in rules.get("excluded_project_name_substrings", []) if s):
        return False
    if number in (n.lower() for n in rules.get("excluded_project_numbers", [])):
        return False
    return True


def qualifying_jobs(
    jobs: Iterable[Job], rules: Optional[Dict[str, List[str]]] = None
) -> List[Job]:
    if rules is None:
        rules = get_qualifying_rules()
    return [job for job in jobs if is_qualifying_job(job, rules)]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def create_project(
    conn: sqlite3.Connection,
    customer: str,
    project_number: str,
    project_name: str,
    *,
    status: str = "In Progress",
    archived: bool = False,
) -> str:
    """
    Insert a project row (or update its status when the key exists).

    Returns:
        The job key.
    """
    job_key = make_job_key(customer, project_number, project_name)
    parts = split_job_key(job_key)
    conn.execute(
        """INSERT INTO projects (job_key, customer, project_number, project_name, status, archived)
           VALUES (?, ?, ?, ?, ?, ?)
           ON CONFLICT(job_key) DO UPDATE SET
               status = excluded.status,
               archived = excluded.archived,
               updated_at = CURRENT_TIMESTAMP""",
        (job_key, parts[0], parts[1], parts[2], status, 1 if archived else 0),
    )
    conn.commit()
    invalidate_job_cache()
    logger.debug("Upserted project %s", job_key)
    return job_key


def add_cost_line(
    conn: sqlite3.Connection,
    job_key: str,
    cost_item: str,
    *,
    cost_type: str = "Labor",
    group: str = "",
    sales: float = 0.0,
    cost: float = 0.0,
    hours: float = 0.0,
    phase_id: Optional[str] = None,
) -> int:
    """Insert a cost line. Returns the new row id."""
    cursor = conn.execute(
        """INSERT INTO cost_lines (job_key, cost_item, cost_type, group_label, sales, cost, hours, phase_id)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            job_key,
            cost_item,
            cost_type,
            group,
            coerce_float(sales),
            coerce_float(cost),
            coerce_float(hours),
            phase_id,
        ),
    )
    conn.commit()
    invalidate_job_cache()
    return cursor.lastrowid


def load_cost_lines(conn: sqlite3.Connection, job_key: Optional[str] = None) -> List[CostLine]:
    sql = "SELECT * FROM cost_lines"
    params: Tuple = ()
    if job_key is not None:
        sql += " WHERE job_key = ?"
        params = (job_key,)
    rows = conn.execute(sql + " ORDER BY id", params).fetchall()
    return [
        CostLine(
            job_key=row["job_key"],
            cost_item=row["cost_item"] or "",
            cost_type=row["cost_type"] or "",
            group=row["group_label"] or "",
            sales=coerce_float(row["sales"]),
            cost=coerce_float(row["cost"]),
            hours=coerce_float(row["hours"]),
            phase_id=row["phase_id"],
        )
        for row in rows
    ]


def load_jobs(conn: sqlite3.Connection, *, include_archived: bool = True) -> Dict[str, Job]:
    """Load every project with its cost lines, keyed by job key."""
    sql = "SELECT * FROM projects"
    if not include_archived:
        sql += " WHERE archived = 0"
    jobs: Dict[str, Job] = {}
    for row in conn.execute(sql + " ORDER BY job_key").fetchall():
        job = Job(
            customer=row["customer"],
            project_number=row["project_number"],
            project_name=row["project_name"],
            status=row["status"] or "",
            archived=bool(row["archived"]),
        )
        jobs[job.key] = job

    for line in load_cost_lines(conn):
        job = jobs.get(line.job_key)
        if job is None:
            logger.debug("Cost line references unknown job %s", line.job_key)
            continue
        job.cost_lines.append(line)
    return jobs


def get_job(conn: sqlite3.Connection, job_key: str) -> Optional[Job]:
    row = conn.execute("SELECT * FROM projects WHERE job_key = ?", (job_key,)).fetchone()
    if row is None:
        return None
    job = Job(
        customer=row["customer"],
        project_number=row["project_number"],
        project_name=row["project_name"],
        status=row["status"] or "",
        archived=bool(row["archived"]),
    )
    job.cost_lines = load_cost_lines(conn, job.key)
    return job


# ---------------------------------------------------------------------------
# Cached read model
# ---------------------------------------------------------------------------

_JOB_CACHE: Optional[TTLCache] = None


def get_job_cache() -> TTLCache:
    global _JOB_CACHE
    if _JOB_CACHE is None:
        _JOB_CACHE = TTLCache(ttl_seconds=get_scheduling_settings()["cache_ttl_seconds"])
    return _JOB_CACHE


def load_jobs_cached(
    conn: sqlite3.Connection, cache: Optional[TTLCache] = None
) -> Dict[str, Job]:
    """load_jobs() behind the job read-model cache."""
    cache = cache if cache is not None else get_job_cache()
    return cache.get_or_load("jobs", lambda: load_jobs(conn))


def invalidate_job_cache() -> None:
    """Drop the cached read model; called after project and cost-line writes."""
    if _JOB_CACHE is not None:
        _JOB_CACHE.invalidate()
