"""
Crew sheets, weekly forecasts and monthly allocations.

All three are per-job, per-month documents. Crew sheets and forecasts
address days by (week, day) position inside the month (see
crewplan.schedule.dates); positions that do not map to a real date are kept
in the document but ignored by every dated view.

Crew sheets carry a version stamp. save_crew_sheet() only writes when the
stored version still matches the one that was read, so two dispatchers
cannot silently overwrite each other.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from crewplan.core import StaleSheetError, get_logger
from crewplan.projects.jobs import coerce_float
from crewplan.schedule.dates import (
    date_for_position,
    date_key,
    is_valid_month_key,
    week_day_position,
)

logger = get_logger("crewplan.schedule.sheets")

MAX_WEEKS = 6
MAX_DAYS = 7


def _position(value: Any, upper: int) -> Optional[int]:
    number = coerce_float(value)
    if number != int(number) or not 1 <= number <= upper:
        return None
    return int(number)


def _worker_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    seen: List[str] = []
    for item in value:
        text = str(item).strip() if item is not None else ""
        if text and text not in seen:
            seen.append(text)
    return seen


# ---------------------------------------------------------------------------
# Daily crew sheet
# ---------------------------------------------------------------------------


@dataclass
class CrewDay:
    hours: float = 0.0
    crew_leader_id: Optional[str] = None
    worker_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hours": self.hours,
            "crew_leader_id": self.crew_leader_id,
            "worker_ids": list(self.worker_ids),
        }


@dataclass
class CrewSheet:
    job_key: str
    month: str
    days: Dict[Tuple[int, int], CrewDay] = field(default_factory=dict)
    version: int = 0

    @classmethod
    def from_doc(cls, job_key: str, month: str, weeks: Any, version: int = 0) -> "CrewSheet":
        """
        Parse the stored weeks structure.

        Accepts snake_case or camelCase names (weekNumber, dayNumber,
        foreman, employees). Malformed weeks and days are dropped.
        """
        sheet = cls(job_key=job_key, month=month, version=version)
        for week in weeks if isinstance(weeks, list) else []:
            if not isinstance(week, dict):
                continue
            week_no = _position(week.get("week_number", week.get("weekNumber")), MAX_WEEKS)
            if week_no is None:
                continue
            for day in week.get("days") or []:
                if not isinstance(day, dict):
                    continue
                day_no = _position(day.get("day_number", day.get("dayNumber")), MAX_DAYS)
                if day_no is None:
                    continue
                leader = day.get("crew_leader_id", day.get("foreman"))
                leader = str(leader).strip() if leader else ""
                sheet.days[(week_no, day_no)] = CrewDay(
                    hours=max(coerce_float(day.get("hours")), 0.0),
                    crew_leader_id=leader or None,
                    worker_ids=_worker_list(day.get("worker_ids", day.get("employees"))),
                )
        return sheet

    def to_doc(self) -> List[Dict[str, Any]]:
        weeks: Dict[int, List[Dict[str, Any]]] = {}
        for (week_no, day_no), day in sorted(self.days.items()):
            weeks.setdefault(week_no, []).append({"day_number": day_no, **day.to_dict()})
        return [{"week_number": w, "days": days} for w, days in sorted(weeks.items())]

    def day_for(self, day: date) -> Optional[CrewDay]:
        month, week_no, day_no = week_day_position(day)
        if month != self.month:
            return None
        return self.days.get((week_no, day_no))

    def ensure_day(self, day: date) -> CrewDay:
        """Return the entry for *day*, creating an empty one if needed."""
        month, week_no, day_no = week_day_position(day)
        if month != self.month:
            raise ValueError(f"{date_key(day)} does not belong to crew sheet month {self.month}")
        return self.days.setdefault((week_no, day_no), CrewDay())

    def dated_days(self) -> List[Tuple[date, CrewDay]]:
        """Entries that map to a real date, in date order."""
        out = []
        for (week_no, day_no), day in self.days.items():
            actual = date_for_position(self.month, week_no, day_no)
            if actual is not None:
                out.append((actual, day))
        return sorted(out, key=lambda pair: pair[0])

    @property
    def total_hours(self) -> float:
        return sum(day.hours for _, day in self.dated_days())


def crew_sheet_days(sheets: Iterable[CrewSheet]) -> Dict[date, float]:
    """Hours per date across *sheets* (one job's sheets)."""
    hours: Dict[date, float] = {}
    for sheet in sheets:
        for day, entry in sheet.dated_days():
            if entry.hours > 0:
                hours[day] = hours.get(day, 0.0) + entry.hours
    return hours


def crew_assignments_for_date(sheets: Iterable[CrewSheet], day: date) -> Dict[str, List[str]]:
    """
    Crew per leader on *day*, from the crew-sheet day entries.

    A leader running several jobs that day gets the union of their lists.
    """
    crews: Dict[str, List[str]] = {}
    for sheet in sheets:
        entry = sheet.day_for(day)
        if entry is None or not entry.crew_leader_id:
            continue
        crew = crews.setdefault(entry.crew_leader_id, [])
        for worker_id in entry.worker_ids:
            if worker_id not in crew:
                crew.append(worker_id)
    return crews


# ---------------------------------------------------------------------------
# Weekly forecast
# ---------------------------------------------------------------------------


@dataclass
class ForecastSheet:
    job_key: str
    month: str
    weeks: Dict[int, float] = field(default_factory=dict)

    @classmethod
    def from_doc(cls, job_key: str, month: str, weeks: Any) -> "ForecastSheet":
        sheet = cls(job_key=job_key, month=month)
        for week in weeks if isinstance(weeks, list) else []:
            if not isinstance(week, dict):
                continue
            week_no = _position(week.get("week_number", week.get("weekNumber")), MAX_WEEKS)
            if week_no is None:
                continue
            sheet.weeks[week_no] = max(coerce_float(week.get("hours")), 0.0)
        return sheet

    def to_doc(self) -> List[Dict[str, Any]]:
        return [{"week_number": w, "hours": h} for w, h in sorted(self.weeks.items())]

    def dated_weeks(self) -> List[Tuple[date, float]]:
        """(Monday, hours) for weeks that exist in the month."""
        out = []
        for week_no, hours in sorted(self.weeks.items()):
            monday = date_for_position(self.month, week_no, 1)
            if monday is not None:
                out.append((monday, hours))
        return out


def forecast_weeks(sheets: Iterable[ForecastSheet]) -> Dict[date, float]:
    """Forecast hours keyed by week Monday across *sheets* (one job's forecasts)."""
    weeks: Dict[date, float] = {}
    for sheet in sheets:
        for monday, hours in sheet.dated_weeks():
            if hours > 0:
                weeks[monday] = weeks.get(monday, 0.0) + hours
    return weeks


# ---------------------------------------------------------------------------
# Monthly allocation
# ---------------------------------------------------------------------------


@dataclass
class MonthlyAllocation:
    job_key: str
    percents: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, job_key: str, raw: Dict[str, Any]) -> "MonthlyAllocation":
        """Keep valid YYYY-MM keys only, percent clamped to 0-100."""
        percents = {}
        for key, value in (raw or {}).items():
            if not is_valid_month_key(key):
                continue
            percents[key] = min(max(coerce_float(value), 0.0), 100.0)
        return cls(job_key=job_key, percents=percents)


# ---------------------------------------------------------------------------
# Persistence: crew sheets
# ---------------------------------------------------------------------------


def _load_json(raw: Optional[str], default: Any) -> Any:
    try:
        return json.loads(raw) if raw else default
    except ValueError:
        return default


def _row_to_crew_sheet(row: sqlite3.Row) -> CrewSheet:
    return CrewSheet.from_doc(
        row["job_key"], row["month"], _load_json(row["weeks"], []), version=row["version"]
    )


def get_crew_sheet(conn: sqlite3.Connection, job_key: str, month: str) -> Optional[CrewSheet]:
    row = conn.execute(
        "SELECT * FROM crew_sheets WHERE job_key = ? AND month = ?", (job_key, month)
    ).fetchone()
    return _row_to_crew_sheet(row) if row else None


def load_crew_sheets(
    conn: sqlite3.Connection,
    job_key: Optional[str] = None,
    months: Optional[Iterable[str]] = None,
) -> List[CrewSheet]:
    """Crew sheets filtered by job and/or months. Invalid month keys are skipped."""
    sql = "SELECT * FROM crew_sheets WHERE 1=1"
    params: List[Any] = []
    if job_key is not None:
        sql += " AND job_key = ?"
        params.append(job_key)
    if months is not None:
        wanted = sorted({m for m in months if is_valid_month_key(m)})
        if not wanted:
            return []
        sql += f" AND month IN ({', '.join('?' for _ in wanted)})"
        params.extend(wanted)
    rows = conn.execute(sql + " ORDER BY job_key, month", params).fetchall()
    return [_row_to_crew_sheet(r) for r in rows if is_valid_month_key(r["month"])]


def crew_sheets_for_date(conn: sqlite3.Connection, day: date) -> List[CrewSheet]:
    """Every job's crew sheet for the month document holding *day*."""
    month, _, _ = week_day_position(day)
    return load_crew_sheets(conn, months=[month])


def save_crew_sheet(conn: sqlite3.Connection, sheet: CrewSheet, commit: bool = True) -> CrewSheet:
    """
    Compare-and-swap write.

    A sheet read at version N is written as N+1 only if the stored row is
    still at N (version 0 means "expected not to exist yet").

    Raises:
        StaleSheetError: the stored sheet moved on since it was read.
    """
    weeks = json.dumps(sheet.to_doc())
    if sheet.version == 0:
        cursor = conn.execute(
            """INSERT INTO crew_sheets (job_key, month, weeks, version)
               VALUES (?, ?, ?, 1)
               ON CONFLICT(job_key, month) DO NOTHING""",
            (sheet.job_key, sheet.month, weeks),
        )
    else:
        cursor = conn.execute(
            """UPDATE crew_sheets
               SET weeks = ?, version = version + 1, updated_at = CURRENT_TIMESTAMP
               WHERE job_key = ? AND month = ? AND version = ?""",
            (weeks, sheet.job_key, sheet.month, sheet.version),
        )
    if cursor.rowcount != 1:
        raise StaleSheetError(
            f"Crew sheet {sheet.job_key} {sheet.month} changed since version {sheet.version}"
        )
    if commit:
        conn.commit()
    sheet.version += 1
    logger.debug("Saved crew sheet %s %s (v%d)", sheet.job_key, sheet.month, sheet.version)
    return sheet


# ---------------------------------------------------------------------------
# Persistence: forecasts and allocations
# ---------------------------------------------------------------------------


def load_forecasts(conn: sqlite3.Connection, job_key: Optional[str] = None) -> List[ForecastSheet]:
    sql = "SELECT * FROM weekly_forecasts"
    params: Tuple = ()
    if job_key is not None:
        sql += " WHERE job_key = ?"
        params = (job_key,)
    rows = conn.execute(sql + " ORDER BY job_key, month", params).fetchall()
    return [
        ForecastSheet.from_doc(r["job_key"], r["month"], _load_json(r["weeks"], []))
        for r in rows
        if is_valid_month_key(r["month"])
    ]


def save_forecast(
    conn: sqlite3.Connection, job_key: str, month: str, weeks: Dict[int, float]
) -> ForecastSheet:
    """Replace a job's weekly forecast for *month*."""
    if not is_valid_month_key(month):
        raise ValueError(f"Invalid month key: {month!r}")
    sheet = ForecastSheet.from_doc(
        job_key, month, [{"week_number": w, "hours": h} for w, h in weeks.items()]
    )
    conn.execute(
        """INSERT INTO weekly_forecasts (job_key, month, weeks) VALUES (?, ?, ?)
           ON CONFLICT(job_key, month) DO UPDATE SET
               weeks = excluded.weeks, updated_at = CURRENT_TIMESTAMP""",
        (job_key, month, json.dumps(sheet.to_doc())),
    )
    conn.commit()
    return sheet


def load_allocations(
    conn: sqlite3.Connection, job_key: Optional[str] = None
) -> Dict[str, MonthlyAllocation]:
    sql = "SELECT job_key, month, percent FROM monthly_allocations"
    params: Tuple = ()
    if job_key is not None:
        sql += " WHERE job_key = ?"
        params = (job_key,)
    raw: Dict[str, Dict[str, Any]] = {}
    for row in conn.execute(sql, params).fetchall():
        raw.setdefault(row["job_key"], {})[row["month"]] = row["percent"]
    return {key: MonthlyAllocation.from_mapping(key, months) for key, months in raw.items()}


def set_allocation(conn: sqlite3.Connection, job_key: str, month: str, percent: float) -> float:
    """Store a month percentage (clamped to 0-100). Returns the stored value."""
    if not is_valid_month_key(month):
        raise ValueError(f"Invalid month key: {month!r}")
    value = min(max(coerce_float(percent), 0.0), 100.0)
    conn.execute(
        """INSERT INTO monthly_allocations (job_key, month, percent) VALUES (?, ?, ?)
           ON CONFLICT(job_key, month) DO UPDATE SET
               percent = excluded.percent, updated_at = CURRENT_TIMESTAMP""",
        (job_key, month, value),
    )
    conn.commit()
    return value
