"""
Hour Distributor

Spreads a phase's matched hours evenly over the workdays of its date range
and totals them into calendar buckets. Pure functions: the same phase, cost
lines and buckets always give the same map.
"""

from typing import Dict, Iterable, Optional, Sequence, Union

from crewplan.projects.jobs import CostLine
from crewplan.projects.phases import MatchStrategy, Phase, match_hours
from crewplan.schedule.dates import Bucket, DateRange, overlap, walk_limit, workdays

Strategy = Union[str, MatchStrategy, None]


def _effective_range(phase: Phase) -> Optional[DateRange]:
    """Phase range clipped to the walk limit, so buckets see what workdays() counted."""
    span = phase.date_range
    if span is None:
        return None
    return DateRange(span.start, min(span.end, walk_limit(span.start)))


def daily_rate(
    phase: Phase, cost_lines: Iterable[CostLine] = (), strategy: Strategy = None
) -> float:
    """
    Hours per workday for *phase*.

    0 when the phase is undated or its range holds no workdays.
    """
    span = phase.date_range
    if span is None:
        return 0.0
    days = workdays(span.start, span.end)
    if days == 0:
        return 0.0
    return match_hours(phase, cost_lines, strategy) / days


def is_distributable(
    phase: Phase, cost_lines: Iterable[CostLine] = (), strategy: Strategy = None
) -> bool:
    """Dated and carrying non-zero matched hours."""
    return phase.is_dated and match_hours(phase, cost_lines, strategy) != 0


def distribute(
    phase: Phase,
    buckets: Sequence[Bucket],
    cost_lines: Sequence[CostLine] = (),
    strategy: Strategy = None,
) -> Dict[str, float]:
    """
    Map each bucket key to the hours *phase* puts into it.

    Every bucket appears in the result. An undated phase contributes 0
    everywhere; that is "not yet scheduled", not an error.
    """
    result = {bucket.key: 0.0 for bucket in buckets}
    span = _effective_range(phase)
    if span is None:
        return result

    rate = daily_rate(phase, cost_lines, strategy)
    if rate == 0:
        return result

    for bucket in buckets:
        shared = overlap(span, bucket.range)
        if shared is None:
            continue
        result[bucket.key] += workdays(shared.start, shared.end) * rate
    return result


def distribute_phases(
    phases: Iterable[Phase],
    buckets: Sequence[Bucket],
    cost_lines: Sequence[CostLine] = (),
    strategy: Strategy = None,
) -> Dict[str, float]:
    """Sum of distribute() over *phases*."""
    totals = {bucket.key: 0.0 for bucket in buckets}
    for phase in phases:
        for key, hours in distribute(phase, buckets, cost_lines, strategy).items():
            totals[key] += hours
    return totals
