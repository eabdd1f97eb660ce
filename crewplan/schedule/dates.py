"""
Calendar arithmetic for the scheduling engine.

Weekday counting, inclusive date-range overlap, and day/week/month bucket
enumeration. Everything here is pure: malformed dates come back as None
or 0, never as exceptions.

Crew sheets and forecasts are stored per month with a week/day position.
Week n of a month is the n-th Monday that falls in that month, and day d
is Monday + (d - 1). A date belongs to the month that holds its week's
Monday, so a Wednesday the 1st sits in week 5 of the previous month.
"""

import re
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Tuple

DAY = "day"
WEEK = "week"
MONTH = "month"
BUCKET_MODES = (DAY, WEEK, MONTH)

# Date walks never go further than this past the range start
MAX_WALK_YEARS = 3

WORKDAYS_PER_WEEK = 5

_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:$|[T ])")
_MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


# ---------------------------------------------------------------------------
# Parsing and keys
# ---------------------------------------------------------------------------


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce *value* to a calendar date.

    Accepts date, datetime (time dropped), 'YYYY-MM-DD' and ISO datetime
    strings. Anything else, including impossible dates like 2026-02-30,
    returns None.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    match = _DATE_PREFIX_RE.match(value.strip())
    if not match:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        return None


def date_key(day: date) -> str:
    """Canonical 'YYYY-MM-DD' key."""
    return day.isoformat()


def month_key(day: date) -> str:
    """Canonical 'YYYY-MM' key."""
    return f"{day.year:04d}-{day.month:02d}"


def is_valid_month_key(key: Any) -> bool:
    return isinstance(key, str) and bool(_MONTH_KEY_RE.match(key))


def is_workday(day: date) -> bool:
    return day.weekday() < 5


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range."""

    start: date
    end: date

    @classmethod
    def parse(cls, start: Any, end: Any) -> Optional["DateRange"]:
        """Build a range from raw values; None when either end is bad or reversed."""
        s, e = parse_date(start), parse_date(end)
        if s is None or e is None or e < s:
            return None
        return cls(s, e)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def walk_limit(start: date) -> date:
    """Last date a walk starting at *start* may reach."""
    try:
        return start.replace(year=start.year + MAX_WALK_YEARS)
    except ValueError:
        # Feb 29 with no leap day three years on
        return start.replace(year=start.year + MAX_WALK_YEARS, day=28)


def _clip(start: date, end: date) -> date:
    return min(end, walk_limit(start))


def workdays(start: Any, end: Any) -> int:
    """
    Count Monday-Friday dates in [start, end].

    Returns 0 when either end is unparseable or end < start. Ranges longer
    than MAX_WALK_YEARS are clipped.
    """
    span = DateRange.parse(start, end)
    if span is None:
        return 0
    last = _clip(span.start, span.end)

    total_days = (last - span.start).days + 1
    full_weeks, extra = divmod(total_days, 7)
    count = full_weeks * WORKDAYS_PER_WEEK
    first_weekday = span.start.weekday()
    for offset in range(extra):
        if (first_weekday + offset) % 7 < 5:
            count += 1
    return count


def workday_dates(start: Any, end: Any) -> List[date]:
    """Monday-Friday dates in [start, end], clipped like workdays()."""
    span = DateRange.parse(start, end)
    if span is None:
        return []
    last = _clip(span.start, span.end)
    dates = []
    current = span.start
    while current <= last:
        if is_workday(current):
            dates.append(current)
        current += timedelta(days=1)
    return dates


def overlap(a: Optional[DateRange], b: Optional[DateRange]) -> Optional[DateRange]:
    """Inclusive intersection of two ranges, or None when they do not meet."""
    if a is None or b is None:
        return None
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    if end < start:
        return None
    return DateRange(start, end)


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------


def week_start(day: date) -> date:
    """Monday of the week containing *day*."""
    return day - timedelta(days=day.weekday())


def _add_months(first_of_month: date, months: int) -> date:
    index = first_of_month.year * 12 + (first_of_month.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def _check_mode(mode: str) -> None:
    if mode not in BUCKET_MODES:
        raise ValueError(f"Unknown bucket mode: {mode!r} (expected one of {BUCKET_MODES})")


def bucket_start(mode: str, day: date) -> date:
    """Start of the *mode* bucket containing *day*."""
    _check_mode(mode)
    if mode == WEEK:
        return week_start(day)
    if mode == MONTH:
        return day.replace(day=1)
    return day


def bucket_starts(mode: str, anchor: Any, count: int) -> List[date]:
    """
    Enumerate *count* consecutive bucket start dates.

    The anchor is snapped to the start of its bucket first: week buckets
    start on Monday, month buckets on the 1st. An unparseable anchor or a
    non-positive count yields an empty list.
    """
    _check_mode(mode)
    first = parse_date(anchor)
    if first is None or count <= 0:
        return []
    first = bucket_start(mode, first)

    if mode == MONTH:
        return [_add_months(first, i) for i in range(count)]
    step = 7 if mode == WEEK else 1
    return [first + timedelta(days=step * i) for i in range(count)]


def bucket_range(mode: str, start: date) -> DateRange:
    _check_mode(mode)
    if mode == WEEK:
        return DateRange(start, start + timedelta(days=6))
    if mode == MONTH:
        last_day = monthrange(start.year, start.month)[1]
        return DateRange(start, start.replace(day=last_day))
    return DateRange(start, start)


def bucket_key(mode: str, start: date) -> str:
    """Day and week buckets key on their start date, month buckets on YYYY-MM."""
    _check_mode(mode)
    if mode == MONTH:
        return month_key(start)
    return date_key(start)


@dataclass(frozen=True)
class Bucket:
    mode: str
    start: date
    end: date

    @property
    def key(self) -> str:
        return bucket_key(self.mode, self.start)

    @property
    def range(self) -> DateRange:
        return DateRange(self.start, self.end)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "key": self.key,
            "start": date_key(self.start),
            "end": date_key(self.end),
        }


def make_buckets(mode: str, anchor: Any, count: int) -> List[Bucket]:
    buckets = []
    for start in bucket_starts(mode, anchor, count):
        span = bucket_range(mode, start)
        buckets.append(Bucket(mode, span.start, span.end))
    return buckets


# ---------------------------------------------------------------------------
# Month documents: week / day positions
# ---------------------------------------------------------------------------


def month_range(key: str) -> Optional[DateRange]:
    if not is_valid_month_key(key):
        return None
    year, month = int(key[:4]), int(key[5:7])
    return DateRange(date(year, month, 1), date(year, month, monthrange(year, month)[1]))


def month_week_starts(key: str) -> List[date]:
    """Mondays that fall inside month *key* (4 or 5 of them)."""
    span = month_range(key)
    if span is None:
        return []
    first_monday = span.start + timedelta(days=(7 - span.start.weekday()) % 7)
    starts = []
    current = first_monday
    while current <= span.end:
        starts.append(current)
        current += timedelta(days=7)
    return starts


def week_day_position(day: date) -> Tuple[str, int, int]:
    """
    Locate *day* inside its month document.

    Returns (month key, week 1-6, day 1-7).

    Example:
        week_day_position(date(2026, 4, 1))  # ('2026-03', 5, 3)
    """
    monday = week_start(day)
    return month_key(monday), (monday.day - 1) // 7 + 1, day.weekday() + 1


def date_for_position(key: str, week: int, day: int) -> Optional[date]:
    """Inverse of week_day_position(); None for positions that do not exist."""
    if not 1 <= day <= 7:
        return None
    starts = month_week_starts(key)
    if not 1 <= week <= len(starts):
        return None
    return starts[week - 1] + timedelta(days=day - 1)
