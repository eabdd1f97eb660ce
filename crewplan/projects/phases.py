"""
Work-Phase Reconciler

Phases ("scopes") are the named, dated stages of a job. Their hours come
from the cost lines they match: phase titles and cost-line labels are typed
by different people, so the default join is a normalized substring match
in either direction. The join is a pluggable strategy so a stricter rule
(exact label, explicit phase id on the cost line) can replace it without
touching distribution or merge logic.

Jobs with cost lines but no explicit phases get virtual phases, one per
cost-line group. Virtual phases are never stored.
"""

import json
import re
import sqlite3
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from crewplan.core import get_logger, get_scheduling_settings
from crewplan.projects.jobs import CostLine, coerce_float
from crewplan.schedule.dates import DateRange, date_key, parse_date, workdays

logger = get_logger("crewplan.projects.phases")

HOURS_PER_DAY = 10
DEFAULT_PHASE_TITLE = "Scope"
DEFAULT_GROUP_LABEL = "Scheduled Work"
UNASSIGNED_LABELS = {"", "unassigned"}

# "1,200 SQ FT - ", "40 LF – ", "3 each - "
_QTY_PREFIX_RE = re.compile(r"^[\d,]+\s*(sq\s*ft\.?|ln\s*ft\.?|each|lf)?\s*[-–]\s*", re.IGNORECASE)


@dataclass
class Phase:
    id: str
    job_key: str
    title: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    manpower: Optional[float] = None
    hours: Optional[float] = None
    description: str = ""
    tasks: List[str] = field(default_factory=list)
    virtual: bool = False
    sales: Optional[float] = None
    cost: Optional[float] = None

    @property
    def date_range(self) -> Optional[DateRange]:
        return DateRange.parse(self.start_date, self.end_date)

    @property
    def is_dated(self) -> bool:
        return self.date_range is not None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Phase":
        """Build from a raw dict; bad dates become None, bad numbers None."""
        def _number(*names: str) -> Optional[float]:
            for name in names:
                if record.get(name) not in (None, ""):
                    return coerce_float(record[name])
            return None

        tasks = record.get("tasks")
        if isinstance(tasks, str):
            try:
                tasks = json.loads(tasks)
            except ValueError:
                tasks = []
        title = str(record.get("title") or "").strip() or DEFAULT_PHASE_TITLE
        return cls(
            id=str(record.get("id") or ""),
            job_key=str(record.get("job_key") or record.get("jobKey") or ""),
            title=title,
            start_date=parse_date(record.get("start_date", record.get("startDate"))),
            end_date=parse_date(record.get("end_date", record.get("endDate"))),
            manpower=_number("manpower"),
            hours=_number("hours"),
            description=str(record.get("description") or ""),
            tasks=[str(t) for t in tasks] if isinstance(tasks, list) else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_key": self.job_key,
            "title": self.title,
            "start_date": date_key(self.start_date) if self.start_date else None,
            "end_date": date_key(self.end_date) if self.end_date else None,
            "manpower": self.manpower,
            "hours": self.hours,
            "description": self.description,
            "tasks": list(self.tasks),
            "virtual": self.virtual,
            "sales": self.sales,
            "cost": self.cost,
        }


# ---------------------------------------------------------------------------
# Title matching
# ---------------------------------------------------------------------------


def normalize_title(title: Optional[str]) -> str:
    """
    Lower-case and strip a leading quantity/unit prefix.

    Example:
        normalize_title("1,200 SQ FT - Flatwork")  # 'flatwork'
    """
    text = (title or "").lower().strip()
    return _QTY_PREFIX_RE.sub("", text).strip()


def _label(line: CostLine) -> str:
    return line.cost_item.strip().lower()


def substring_match(phase: Phase, line: CostLine) -> bool:
    """Either the normalized title contains the label or the other way round."""
    title = normalize_title(phase.title)
    label = _label(line)
    if not title or not label:
        return False
    return label in title or title in label


def exact_match(phase: Phase, line: CostLine) -> bool:
    title = normalize_title(phase.title)
    return bool(title) and title == normalize_title(line.cost_item)


def key_match(phase: Phase, line: CostLine) -> bool:
    """Cost line carries the phase id explicitly."""
    return bool(phase.id) and line.phase_id == phase.id


MatchStrategy = Callable[[Phase, CostLine], bool]

MATCH_STRATEGIES: Dict[str, MatchStrategy] = {
    "substring": substring_match,
    "exact": exact_match,
    "key": key_match,
}


def get_match_strategy(strategy: Union[str, MatchStrategy, None] = None) -> MatchStrategy:
    """
    Resolve a match strategy.

    None reads ``scheduling.match_strategy`` from config; a string is
    looked up in MATCH_STRATEGIES; a callable is used as-is.
    """
    if callable(strategy):
        return strategy
    name = strategy or get_scheduling_settings()["match_strategy"]
    try:
        return MATCH_STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown match strategy: {name!r} (expected one of {sorted(MATCH_STRATEGIES)})"
        ) from None


def _as_phase(phase: Union[Phase, str]) -> Phase:
    if isinstance(phase, Phase):
        return phase
    return Phase(id="", job_key="", title=phase)


def match_lines(
    phase: Union[Phase, str],
    cost_lines: Iterable[CostLine],
    strategy: Union[str, MatchStrategy, None] = None,
) -> List[CostLine]:
    """Cost lines that belong to *phase* under *strategy*."""
    phase = _as_phase(phase)
    matcher = get_match_strategy(strategy)
    matched = []
    for line in cost_lines:
        if phase.job_key and line.job_key and line.job_key != phase.job_key:
            continue
        if matcher(phase, line):
            matched.append(line)
    return matched


@dataclass
class MatchTotals:
    count: int = 0
    sales: float = 0.0
    cost: float = 0.0
    hours: float = 0.0


def match_totals(
    phase: Union[Phase, str],
    cost_lines: Iterable[CostLine],
    strategy: Union[str, MatchStrategy, None] = None,
) -> MatchTotals:
    """Sum sales, cost and field hours of the matched lines.

    Management cost types add to sales and cost but never to hours.
    """
    totals = MatchTotals()
    for line in match_lines(phase, cost_lines, strategy):
        totals.count += 1
        totals.sales += line.sales
        totals.cost += line.cost
        if not line.is_management:
            totals.hours += line.hours
    return totals


def match_hours(
    phase: Union[Phase, str],
    cost_lines: Iterable[CostLine],
    strategy: Union[str, MatchStrategy, None] = None,
) -> float:
    """
    Field hours budgeted for *phase*.

    Matched lines win even when their hours sum to 0. With no match the
    phase's own stored hours are used (0 when absent).
    """
    phase = _as_phase(phase)
    totals = match_totals(phase, cost_lines, strategy)
    if totals.count:
        return totals.hours
    return phase.hours or 0.0


def reconcile_phase(
    phase: Phase,
    cost_lines: Iterable[CostLine],
    strategy: Union[str, MatchStrategy, None] = None,
) -> Phase:
    """Copy of *phase* carrying matched sales, cost and hours."""
    totals = match_totals(phase, cost_lines, strategy)
    if not totals.count:
        return replace(phase, sales=None, cost=None)
    return replace(phase, sales=totals.sales, cost=totals.cost, hours=totals.hours)


# ---------------------------------------------------------------------------
# Virtual phases
# ---------------------------------------------------------------------------


def _group_label(line: CostLine) -> str:
    for label in (line.group, line.cost_type):
        if label.strip().lower() not in UNASSIGNED_LABELS:
            return label.strip()
    return DEFAULT_GROUP_LABEL


def synthesize_phases(job_key: str, cost_lines: Iterable[CostLine]) -> List[Phase]:
    """
    One undated virtual phase per cost-line group.

    Lines group by group label, then cost type, then "Scheduled Work".
    Lines with neither hours nor sales are skipped. Groups keep first-seen
    order.
    """
    groups: Dict[str, Phase] = {}
    for line in cost_lines:
        if line.job_key and line.job_key != job_key:
            continue
        if line.hours == 0 and line.sales == 0:
            continue
        label = _group_label(line)
        phase = groups.get(label.lower())
        if phase is None:
            phase = Phase(
                id=f"virtual::{job_key}::{label}",
                job_key=job_key,
                title=label,
                hours=0.0,
                virtual=True,
                sales=0.0,
                cost=0.0,
            )
            groups[label.lower()] = phase
        phase.hours += line.hours
        phase.sales += line.sales
        phase.cost += line.cost
    return list(groups.values())


def phases_for_job(
    job_key: str,
    explicit: Sequence[Phase],
    cost_lines: Sequence[CostLine],
    strategy: Union[str, MatchStrategy, None] = None,
) -> List[Phase]:
    """Explicit phases reconciled against cost lines, else virtual phases."""
    own = [p for p in explicit if p.job_key == job_key]
    if own:
        return [reconcile_phase(p, cost_lines, strategy) for p in own]
    return synthesize_phases(job_key, cost_lines)


# ---------------------------------------------------------------------------
# Manpower <-> hours
# ---------------------------------------------------------------------------


def auto_phase_hours(
    manpower: Optional[float], start: Any, end: Any, hours_per_day: float = HOURS_PER_DAY
) -> float:
    """manpower x hours_per_day x workdays(start, end)."""
    return coerce_float(manpower) * hours_per_day * workdays(start, end)


def apply_manpower(phase: Phase, manpower: Optional[float]) -> Phase:
    """
    Set manpower and, when the phase is dated, re-derive its hours.

    This is the only point where hours follow manpower; later date edits
    leave hours alone.
    """
    if not phase.is_dated:
        return replace(phase, manpower=manpower)
    hours = auto_phase_hours(manpower, phase.start_date, phase.end_date)
    return replace(phase, manpower=manpower, hours=hours)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

_UPDATABLE = {"title", "start_date", "end_date", "manpower", "hours", "description", "tasks"}


def _row_to_phase(row: sqlite3.Row) -> Phase:
    return Phase.from_record(dict(row))


def _db_value(name: str, value: Any) -> Any:
    if name in ("start_date", "end_date"):
        parsed = parse_date(value)
        return date_key(parsed) if parsed else None
    if name == "tasks":
        return json.dumps(list(value or []))
    return value


def create_phase(
    conn: sqlite3.Connection,
    job_key: str,
    title: str,
    start_date: Any = None,
    end_date: Any = None,
    manpower: Optional[float] = None,
    hours: Optional[float] = None,
    description: str = "",
    tasks: Optional[List[str]] = None,
) -> str:
    """Create a phase. Hours are derived from manpower when not given. Returns phase id."""
    phase_id = str(uuid.uuid4())
    if hours is None and manpower is not None:
        hours = auto_phase_hours(manpower, start_date, end_date)
    conn.execute(
        """INSERT INTO phases (id, job_key, title, start_date, end_date, manpower, hours, description, tasks)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            phase_id,
            job_key,
            title.strip() or DEFAULT_PHASE_TITLE,
            _db_value("start_date", start_date),
            _db_value("end_date", end_date),
            manpower,
            hours,
            description,
            _db_value("tasks", tasks),
        ),
    )
    conn.commit()
    logger.info("Created phase %s '%s' on %s", phase_id, title, job_key)
    return phase_id


def get_phase(conn: sqlite3.Connection, phase_id: str) -> Optional[Phase]:
    row = conn.execute("SELECT * FROM phases WHERE id = ?", (phase_id,)).fetchone()
    return _row_to_phase(row) if row else None


def list_phases(conn: sqlite3.Connection, job_key: Optional[str] = None) -> List[Phase]:
    if job_key is None:
        rows = conn.execute("SELECT * FROM phases ORDER BY job_key, start_date, title").fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM phases WHERE job_key = ? ORDER BY start_date, title", (job_key,)
        ).fetchall()
    return [_row_to_phase(r) for r in rows]


def update_phase(conn: sqlite3.Connection, phase_id: str, **updates) -> bool:
    """
    Update a phase by id.

    Editing manpower without an explicit ``hours`` re-derives hours from
    the (possibly also edited) date range.
    """
    fields = {k: v for k, v in updates.items() if k in _UPDATABLE}
    if not fields:
        return False

    if "manpower" in fields and "hours" not in fields:
        current = get_phase(conn, phase_id)
        if current is None:
            return False
        start = fields.get("start_date", current.start_date)
        end = fields.get("end_date", current.end_date)
        staged = replace(current, start_date=parse_date(start), end_date=parse_date(end))
        fields["hours"] = apply_manpower(staged, fields["manpower"]).hours

    set_clause = ", ".join(f"{k} = ?" for k in fields)
    values = [_db_value(k, v) for k, v in fields.items()] + [phase_id]
    cursor = conn.execute(
        f"UPDATE phases SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE id = ?", values
    )
    conn.commit()
    return cursor.rowcount > 0


def delete_phase(conn: sqlite3.Connection, phase_id: str) -> bool:
    cursor = conn.execute("DELETE FROM phases WHERE id = ?", (phase_id,))
    conn.commit()
    return cursor.rowcount > 0
