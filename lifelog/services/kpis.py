"""
KPI Computations

Scalar statistics for headline cards: counts, sums, averages, medians,
extremes, the most frequent label and recent-activity counts.
"""

from __future__ import annotations

import logging
import math
import statistics
from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from lifelog.services.records import ActivityRecord

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {
    "day": 1,
    "week": 7,
    "month": 30,
    "quarter": 91,
    "year": 365,
}

COMPUTATIONS = (
    "count",
    "count_distinct",
    "sum",
    "average",
    "mean",
    "median",
    "min",
    "max",
    "mode",
    "count_recent",
)


def _numeric(record: ActivityRecord, field: str) -> float | None:
    """Numeric value of a field, or None when the record does not carry it."""
    if field in ("count", "duration", "minutes"):
        return record.value_of(field)
    if field == "metric":
        return record.metric_value
    return record.values.get(field)


def _label(record: ActivityRecord, field: str) -> Any:
    if field in record.subjects:
        return record.subject(field) or None
    return _numeric(record, field)


def _round(value: float, decimals: int | None) -> float:
    return round(value, decimals) if decimals is not None else value


def compute(
    records: Any,
    computation: str,
    field: str | None = None,
    *,
    decimals: int | None = None,
    default: Any = 0,
    timeframe: str = "month",
    amount: int = 1,
    now: datetime | None = None,
) -> Any:
    """
    Compute one KPI over a set of records.

    Args:
        records: Sequence of ActivityRecord
        computation: One of COMPUTATIONS
        field: Subject label (count_distinct, mode) or numeric field
            (sum, average, median, min, max), see ActivityRecord.value_of
        decimals: Round numeric results to this many places
        default: Returned for empty input, a missing field or an unknown computation
        timeframe: Window unit for count_recent ("day", "week", "month", "quarter", "year")
        amount: Number of timeframe units for count_recent
        now: Reference time for count_recent (defaults to the current time)

    Returns:
        The computed value, or default
    """
    if not isinstance(records, (list, tuple)):
        return default
    items = [r for r in records if isinstance(r, ActivityRecord)]
    if not items:
        return default

    if computation == "count":
        return len(items)

    if computation == "count_recent":
        days = TIMEFRAME_DAYS.get(timeframe)
        if days is None:
            logger.warning(f"Unknown timeframe '{timeframe}' for count_recent")
            return default
        cutoff = (now or datetime.now()) - timedelta(days=days * amount)
        return sum(1 for r in items if r.timestamp is not None and r.timestamp >= cutoff)

    if computation not in COMPUTATIONS:
        logger.warning(f"Unknown computation type: {computation}")
        return default
    if not field:
        logger.warning(f"Computation '{computation}' requires a field")
        return default

    if computation == "count_distinct":
        return len({_label(r, field) for r in items} - {None})

    if computation == "mode":
        labels = [str(label) for label in (_label(r, field) for r in items) if label is not None]
        if not labels:
            return default
        # Counter.most_common keeps first-encountered order among ties
        return Counter(labels).most_common(1)[0][0]

    values = [v for v in (_numeric(r, field) for r in items) if v is not None]
    if computation == "sum":
        return _round(math.fsum(values), decimals)
    if not values:
        return default
    if computation in ("average", "mean"):
        return _round(statistics.fmean(values), decimals)
    if computation == "median":
        return _round(statistics.median(values), decimals)
    if computation == "min":
        return _round(min(values), decimals)
    return _round(max(values), decimals)


def format_duration(seconds: Any) -> str:
    """Short human duration: "0m", "45m", "2h 5m", "3d 4h"."""
    if not isinstance(seconds, (int, float)) or isinstance(seconds, bool) or not seconds > 0:
        return "0m"
    if math.isinf(seconds):
        return "0m"
    minutes = int(seconds) // 60
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"
