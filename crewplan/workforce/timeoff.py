"""
Time-off requests.

A request covers an inclusive date range at a number of hours per day.
Missing or zero hours mean a full day. Hours from overlapping requests add
up; a worker whose hours off reach the full-day threshold is unavailable
for dispatch that day.
"""

import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from crewplan.core import get_logger, get_workforce_settings
from crewplan.projects.jobs import coerce_float
from crewplan.schedule.dates import DateRange, date_key, parse_date
from crewplan.workforce.employees import generate_uuid

logger = get_logger("crewplan.workforce.timeoff")

FULL_DAY_HOURS = 10.0
TIME_OFF_TYPES = ("Vacation", "Sick", "Personal", "Other", "Company timeoff")


@dataclass
class TimeOffRequest:
    id: str
    worker_id: str
    start_date: Optional[date]
    end_date: Optional[date]
    hours_per_day: Optional[float] = None
    type: str = "Vacation"

    @property
    def effective_hours(self) -> float:
        hours = coerce_float(self.hours_per_day)
        return hours if hours > 0 else FULL_DAY_HOURS

    def covers(self, day: date) -> bool:
        span = DateRange.parse(self.start_date, self.end_date)
        return span is not None and span.contains(day)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "TimeOffRequest":
        hours = record.get("hours_per_day", record.get("hours"))
        return cls(
            id=str(record.get("id") or ""),
            worker_id=str(record.get("worker_id") or record.get("employeeId") or ""),
            start_date=parse_date(record.get("start_date", record.get("startDate"))),
            end_date=parse_date(record.get("end_date", record.get("endDate"))),
            hours_per_day=coerce_float(hours) if hours not in (None, "") else None,
            type=str(record.get("type") or "Vacation"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "worker_id": self.worker_id,
            "start_date": date_key(self.start_date) if self.start_date else None,
            "end_date": date_key(self.end_date) if self.end_date else None,
            "hours_per_day": self.effective_hours,
            "type": self.type,
        }


def full_day_hours() -> float:
    return coerce_float(get_workforce_settings()["full_day_hours"]) or FULL_DAY_HOURS


def hours_off(worker_id: str, day: date, requests: Iterable[TimeOffRequest]) -> float:
    """Summed hours off for *worker_id* on *day*."""
    return sum(
        r.effective_hours for r in requests if r.worker_id == worker_id and r.covers(day)
    )


def is_fully_unavailable(
    worker_id: str,
    day: date,
    requests: Iterable[TimeOffRequest],
    threshold: float = FULL_DAY_HOURS,
) -> bool:
    return hours_off(worker_id, day, requests) >= threshold


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def create_time_off(
    conn: sqlite3.Connection,
    worker_id: str,
    start_date: Any,
    end_date: Any,
    hours_per_day: Optional[float] = None,
    type: str = "Vacation",
    notes: Optional[str] = None,
) -> str:
    """
    Record a time-off request. Returns the request id.

    Raises:
        ValueError: unparseable or reversed dates, or an unknown type.
    """
    span = DateRange.parse(start_date, end_date)
    if span is None:
        raise ValueError(f"Invalid time-off range: {start_date!r} to {end_date!r}")
    if type not in TIME_OFF_TYPES:
        raise ValueError(f"Unknown time-off type: {type!r} (expected one of {TIME_OFF_TYPES})")

    request_id = generate_uuid()
    conn.execute(
        """INSERT INTO time_off_requests (id, worker_id, start_date, end_date, hours_per_day, type, notes)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            request_id,
            worker_id,
            date_key(span.start),
            date_key(span.end),
            hours_per_day,
            type,
            notes,
        ),
    )
    conn.commit()
    logger.info(
        "Time off %s for %s: %s..%s", type, worker_id, date_key(span.start), date_key(span.end)
    )
    return request_id


def list_time_off(
    conn: sqlite3.Connection, worker_id: Optional[str] = None, day: Optional[date] = None
) -> List[TimeOffRequest]:
    """Requests, optionally limited to one worker and/or those covering *day*."""
    sql = "SELECT * FROM time_off_requests WHERE 1=1"
    params: List[Any] = []
    if worker_id is not None:
        sql += " AND worker_id = ?"
        params.append(worker_id)
    if day is not None:
        sql += " AND start_date <= ? AND end_date >= ?"
        params.extend([date_key(day), date_key(day)])
    rows = conn.execute(sql + " ORDER BY start_date", params).fetchall()
    return [TimeOffRequest.from_record(dict(r)) for r in rows]


def delete_time_off(conn: sqlite3.Connection, request_id: str) -> bool:
    cursor = conn.execute("DELETE FROM time_off_requests WHERE id = ?", (request_id,))
    conn.commit()
    return cursor.rowcount > 0
