"""Tests for calendar arithmetic and bucket enumeration."""

from datetime import date, datetime

import pytest

from crewplan.schedule.dates import (
    DAY,
    MONTH,
    WEEK,
    DateRange,
    bucket_starts,
    date_for_position,
    make_buckets,
    month_range,
    month_week_starts,
    overlap,
    parse_date,
    walk_limit,
    week_day_position,
    workday_dates,
    workdays,
)


class TestParseDate:
    def test_string(self):
        assert parse_date("2026-03-04") == date(2026, 3, 4)

    def test_iso_datetime_string(self):
        assert parse_date("2026-03-04T08:30:00Z") == date(2026, 3, 4)

    def test_datetime(self):
        assert parse_date(datetime(2026, 3, 4, 17, 0)) == date(2026, 3, 4)

    @pytest.mark.parametrize("raw", [None, "", "03/04/2026", "2026-02-30", 20260304, "garbage"])
    def test_bad_values(self, raw):
        assert parse_date(raw) is None


class TestWorkdays:
    def test_monday_to_friday(self):
        assert workdays("2026-03-02", "2026-03-06") == 5

    def test_weekend_only(self):
        assert workdays("2026-03-07", "2026-03-08") == 0

    def test_reversed(self):
        assert workdays("2026-03-06", "2026-03-02") == 0

    def test_unparseable(self):
        assert workdays("soon", "2026-03-06") == 0
        assert workdays(None, None) == 0

    def test_single_day(self):
        assert workdays("2026-03-04", "2026-03-04") == 1

    def test_two_weeks_midweek(self):
        # Wed to the Tuesday two weeks later
        assert workdays("2026-03-04", "2026-03-17") == 10

    def test_matches_enumeration(self):
        assert workdays("2026-01-01", "2026-12-31") == len(workday_dates("2026-01-01", "2026-12-31"))

    def test_long_range_clipped(self):
        clipped = workdays("2026-01-01", "2040-01-01")
        assert clipped == workdays("2026-01-01", "2029-01-01")


def test_walk_limit_leap_day():
    assert walk_limit(date(2028, 2, 29)) == date(2031, 2, 28)


class TestOverlap:
    def test_partial(self):
        a = DateRange(date(2026, 3, 1), date(2026, 3, 10))
        b = DateRange(date(2026, 3, 5), date(2026, 3, 20))
        assert overlap(a, b) == DateRange(date(2026, 3, 5), date(2026, 3, 10))

    def test_disjoint(self):
        a = DateRange(date(2026, 3, 1), date(2026, 3, 2))
        b = DateRange(date(2026, 3, 3), date(2026, 3, 4))
        assert overlap(a, b) is None

    def test_touching_is_one_day(self):
        a = DateRange(date(2026, 3, 1), date(2026, 3, 3))
        b = DateRange(date(2026, 3, 3), date(2026, 3, 4))
        assert overlap(a, b) == DateRange(date(2026, 3, 3), date(2026, 3, 3))

    def test_none_input(self):
        assert overlap(None, DateRange(date(2026, 3, 1), date(2026, 3, 2))) is None

    def test_parse_rejects_reversed(self):
        assert DateRange.parse("2026-03-05", "2026-03-01") is None


class TestBuckets:
    def test_week_snaps_to_monday(self):
        starts = bucket_starts(WEEK, "2026-03-04", 3)
        assert starts == [date(2026, 3, 2), date(2026, 3, 9), date(2026, 3, 16)]

    def test_month_snaps_to_first(self):
        starts = bucket_starts(MONTH, "2026-11-15", 3)
        assert starts == [date(2026, 11, 1), date(2026, 12, 1), date(2027, 1, 1)]

    def test_day(self):
        assert bucket_starts(DAY, "2026-03-04", 2) == [date(2026, 3, 4), date(2026, 3, 5)]

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            bucket_starts("fortnight", "2026-03-04", 2)

    def test_bad_anchor_or_count(self):
        assert bucket_starts(WEEK, "nope", 3) == []
        assert bucket_starts(WEEK, "2026-03-04", 0) == []

    def test_bucket_keys_and_ranges(self):
        week, = make_buckets(WEEK, "2026-03-04", 1)
        assert week.key == "2026-03-02"
        assert week.end == date(2026, 3, 8)
        month, = make_buckets(MONTH, "2026-02-10", 1)
        assert month.key == "2026-02"
        assert month.end == date(2026, 2, 28)


class TestMonthPositions:
    def test_month_range(self):
        assert month_range("2026-02") == DateRange(date(2026, 2, 1), date(2026, 2, 28))
        assert month_range("2026-13") is None

    def test_month_week_starts(self):
        assert month_week_starts("2026-03") == [
            date(2026, 3, 2), date(2026, 3, 9), date(2026, 3, 16), date(2026, 3, 23), date(2026, 3, 30),
        ]

    def test_first_of_month_belongs_to_previous(self):
        assert week_day_position(date(2026, 4, 1)) == ("2026-03", 5, 3)

    def test_weekend_position(self):
        assert week_day_position(date(2026, 3, 8)) == ("2026-03", 1, 7)

    def test_round_trip_over_a_year(self):
        day = date(2026, 1, 1)
        while day.year == 2026:
            assert date_for_position(*week_day_position(day)) == day
            day = date.fromordinal(day.toordinal() + 1)

    def test_missing_position(self):
        assert date_for_position("2026-02", 5, 1) is None
        assert date_for_position("2026-03", 1, 8) is None
