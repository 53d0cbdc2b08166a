"""
Period Bucketizer

Builds gap-free time series: every period between two dates is emitted, and
periods without records are zero-filled instead of omitted.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from lifelog.services.records import ActivityRecord, parse_timestamp

logger = logging.getLogger(__name__)

MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class Granularity(str, Enum):
    YEARLY = "yearly"
    MONTHLY = "monthly"
    DAILY = "daily"

    @classmethod
    def parse(cls, value: Any) -> Granularity | None:
        """Resolve a granularity name, or None if it is not one."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class PeriodBucket:
    """One period of a time series."""

    period: str
    display_label: str
    aggregate_value: float
    record_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "display_label": self.display_label,
            "aggregate_value": self.aggregate_value,
            "record_count": self.record_count,
        }


def period_key(moment: date, granularity: Granularity) -> str:
    """Canonical key: "YYYY", "YYYY-MM" or "YYYY-MM-DD"."""
    if granularity is Granularity.YEARLY:
        return f"{moment.year:04d}"
    if granularity is Granularity.MONTHLY:
        return f"{moment.year:04d}-{moment.month:02d}"
    return f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"


def period_label(moment: date, granularity: Granularity) -> str:
    """Display label: "2024", "Jun 2024" or "Jun 15, 2024"."""
    if granularity is Granularity.YEARLY:
        return str(moment.year)
    if granularity is Granularity.MONTHLY:
        return f"{MONTH_ABBR[moment.month - 1]} {moment.year}"
    return f"{MONTH_ABBR[moment.month - 1]} {moment.day}, {moment.year}"


def _floor(day: date, granularity: Granularity) -> date:
    if granularity is Granularity.YEARLY:
        return date(day.year, 1, 1)
    if granularity is Granularity.MONTHLY:
        return date(day.year, day.month, 1)
    return day


def _advance(day: date, granularity: Granularity) -> date:
    # Only ever called on floored dates, so day-of-month overflow cannot happen
    if granularity is Granularity.YEARLY:
        return date(day.year + 1, 1, 1)
    if granularity is Granularity.MONTHLY:
        if day.month == 12:
            return date(day.year + 1, 1, 1)
        return date(day.year, day.month + 1, 1)
    return day + timedelta(days=1)


def _to_date(value: Any) -> date | None:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_timestamp(value)
    return parsed.date() if parsed is not None else None


def period_universe(start: Any, end: Any, granularity: Any) -> list[tuple[str, str]]:
    """
    Enumerate every period touching [start, end], inclusive.

    Args:
        start: First date (date, datetime or parseable string)
        end: Last date
        granularity: Granularity or its name

    Returns:
        Ordered (key, display_label) pairs; empty for unknown granularity,
        unparseable bounds or start after end.
    """
    resolved = Granularity.parse(granularity)
    start_day = _to_date(start)
    end_day = _to_date(end)
    if resolved is None or start_day is None or end_day is None or start_day > end_day:
        return []

    periods = []
    cursor = _floor(start_day, resolved)
    while cursor <= end_day:
        periods.append((period_key(cursor, resolved), period_label(cursor, resolved)))
        cursor = _advance(cursor, resolved)
    return periods


def infer_bounds(records: Any) -> tuple[date, date] | None:
    """Earliest and latest record dates, or None when no record has a timestamp."""
    if not isinstance(records, (list, tuple)):
        return None
    days = [
        r.timestamp.date()
        for r in records
        if isinstance(r, ActivityRecord) and r.timestamp is not None
    ]
    if not days:
        return None
    return min(days), max(days)


def bucketize(
    records: Any,
    start_date: Any = None,
    end_date: Any = None,
    granularity: Any = Granularity.MONTHLY,
    field: str = "count",
) -> list[PeriodBucket]:
    """
    Sum a numeric field per period over a gap-free period universe.

    Args:
        records: Sequence of ActivityRecord
        start_date: First day of the range (inferred from records when None)
        end_date: Last day of the range, inclusive (inferred when None)
        granularity: "yearly", "monthly" or "daily"
        field: Quantity to sum, see ActivityRecord.value_of

    Returns:
        One bucket per period in chronological order. aggregate_value is a
        sum; record_count is the raw number of records in the bucket.
    """
    resolved = Granularity.parse(granularity)
    if resolved is None:
        logger.warning(f"Unknown granularity: {granularity!r}")
        return []
    if not isinstance(records, (list, tuple)):
        records = []

    start_day = _to_date(start_date)
    end_day = _to_date(end_date)
    if start_date is None or end_date is None:
        bounds = infer_bounds(records)
        if bounds is None:
            return []
        start_day = start_day if start_date is not None else bounds[0]
        end_day = end_day if end_date is not None else bounds[1]
    if start_day is None or end_day is None:
        return []

    universe = period_universe(start_day, end_day, resolved)
    sums: dict[str, list[float]] = {key: [] for key, _ in universe}

    excluded = 0
    for record in records:
        if not isinstance(record, ActivityRecord) or record.timestamp is None:
            excluded += 1
            continue
        day = record.timestamp.date()
        if day < start_day or day > end_day:
            continue
        sums[period_key(day, resolved)].append(record.value_of(field))

    if excluded:
        logger.debug(f"Excluded {excluded} record(s) without a usable timestamp")

    buckets = []
    for key, label in universe:
        total = math.fsum(sums[key])
        buckets.append(
            PeriodBucket(
                period=key,
                display_label=label,
                aggregate_value=total if math.isfinite(total) else 0.0,
                record_count=len(sums[key]),
            )
        )
    return buckets
