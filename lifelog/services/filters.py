"""
Record Slicing Filters

Date-range and multi-select filters applied to normalized records before
they reach the ranker, bucketizer or heatmap binner.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Any, Iterable

from lifelog import config
from lifelog.services.range_mapper import RangeChange
from lifelog.services.records import ActivityRecord, clean_string, parse_timestamp

logger = logging.getLogger(__name__)

MATCH_EXACT = "exact"
MATCH_ANY = "any"
MATCH_ALL = "all"


def _as_records(records: Any) -> list[ActivityRecord]:
    if not isinstance(records, (list, tuple)):
        return []
    return [r for r in records if isinstance(r, ActivityRecord)]


def apply_date_range_filter(
    records: Any,
    start_date: Any = None,
    end_date: Any = None,
    strict: bool | None = None,
) -> list[ActivityRecord]:
    """
    Keep records whose timestamp falls within [start_date, end_date].

    Both bounds are whole days: the start day from 00:00 and the end day up
    to 23:59:59.999999. With no bound at all every record is kept, including
    records without a timestamp.

    Args:
        records: Sequence of ActivityRecord
        start_date: First day to keep (date, datetime or string)
        end_date: Last day to keep, inclusive
        strict: Also drop timestamps in or before 1970 (defaults to config.STRICT_DATES)

    Returns:
        The matching records in their original order
    """
    items = _as_records(records)
    if start_date is None and end_date is None:
        return items

    strict = config.STRICT_DATES if strict is None else strict
    start = parse_timestamp(start_date)
    end = parse_timestamp(end_date)
    lower = datetime.combine(start.date(), time.min) if start else None
    upper = datetime.combine(end.date(), time.max) if end else None

    kept = []
    for record in items:
        moment = record.timestamp
        if moment is None:
            continue
        if strict and moment.year <= 1970:
            continue
        if lower is not None and moment < lower:
            continue
        if upper is not None and moment > upper:
            continue
        kept.append(record)

    if len(kept) != len(items):
        logger.debug(f"Date range filter kept {len(kept)} of {len(items)} record(s)")
    return kept


def apply_range_change(records: Any, change: RangeChange | None) -> list[ActivityRecord]:
    """Slice records by a range-selection notification."""
    if change is None:
        return _as_records(records)
    return apply_date_range_filter(records, change.start_date, change.end_date)


def split_labels(value: str, delimiter: str) -> list[str]:
    return [part.strip() for part in value.split(delimiter) if part.strip()]


def _matches(label: str, selected: set[str], delimiter: str | None, match: str) -> bool:
    if not delimiter:
        return label in selected
    parts = split_labels(label, delimiter)
    if not parts:
        return False
    if match == MATCH_EXACT:
        return label in selected
    if match == MATCH_ALL:
        return selected.issubset(parts)
    return any(part in selected for part in parts)


def apply_multi_select_filter(
    records: Any,
    subject: str,
    selected: Iterable[str] | None,
    delimiter: str | None = None,
    match: str = MATCH_EXACT,
) -> list[ActivityRecord]:
    """
    Keep records whose subject label matches the selected values.

    Without a delimiter the whole label must equal one of the selected
    values. With a delimiter (e.g. "rock, pop") the label is split first:
    "exact" still compares the whole label, "any" needs one part selected
    and "all" needs every selected value among the parts. An unknown match
    mode behaves like "any". An empty selection keeps everything.
    """
    items = _as_records(records)
    chosen = {clean_string(value) for value in selected or () if clean_string(value)}
    if not chosen:
        return items
    if match not in (MATCH_EXACT, MATCH_ANY, MATCH_ALL):
        logger.warning(f"Unknown match mode '{match}', using '{MATCH_ANY}'")
        match = MATCH_ANY
    return [r for r in items if _matches(r.subject(subject), chosen, delimiter, match)]


def unique_values(records: Any, subject: str, delimiter: str | None = None) -> list[str]:
    """Sorted distinct non-empty labels of a subject, split on delimiter if given."""
    values: set[str] = set()
    for record in _as_records(records):
        label = record.subject(subject)
        if not label:
            continue
        if delimiter:
            values.update(split_labels(label, delimiter))
        else:
            values.add(label)
    return sorted(values)
