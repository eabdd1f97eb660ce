"""
crewplan Schedule Module

Calendar buckets, hour distribution, the schedule merge engine, crew
sheets, WIP rollups and the capacity advisor. Submodules import the
projects module, so only the calendar helpers are re-exported here.
"""

from crewplan.schedule.dates import (
    BUCKET_MODES,
    DAY,
    MONTH,
    WEEK,
    Bucket,
    DateRange,
    bucket_starts,
    make_buckets,
    parse_date,
    workdays,
)

__all__ = [
    "DAY",
    "WEEK",
    "MONTH",
    "BUCKET_MODES",
    "Bucket",
    "DateRange",
    "parse_date",
    "workdays",
    "bucket_starts",
    "make_buckets",
]
