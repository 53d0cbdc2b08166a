"""
Activity Heatmap Binner

Sums a duration-like quantity into a dense (day of week x time bracket) grid.
Day and hour come from the record's wall-clock timestamp as parsed; see
records.parse_timestamp.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from lifelog.services.records import ActivityRecord

logger = logging.getLogger(__name__)

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True)
class TimeBracket:
    """Inclusive hour range [start_hour, end_hour]."""

    name: str
    start_hour: int
    end_hour: int
    label: str = ""

    def contains(self, hour: int) -> bool:
        return self.start_hour <= hour <= self.end_hour


DEFAULT_TIME_BRACKETS: tuple[TimeBracket, ...] = (
    TimeBracket("NIGHT", 0, 5, "Night (12AM-6AM)"),
    TimeBracket("MORNING", 6, 11, "Morning (6AM-12PM)"),
    TimeBracket("AFTERNOON", 12, 17, "Afternoon (12PM-6PM)"),
    TimeBracket("EVENING", 18, 23, "Evening (6PM-12AM)"),
)

# Extra column for date-only sources (stamped exactly 00:00)
UNKNOWN_BRACKET = TimeBracket("UNKNOWN", -1, -1, "Unknown Time")


def brackets_cover_day(brackets: Sequence[TimeBracket]) -> bool:
    """True when the brackets partition hours 0-23 with no gap and no overlap."""
    hits = [0] * 24
    for bracket in brackets:
        if bracket.start_hour < 0 or bracket.end_hour > 23 or bracket.start_hour > bracket.end_hour:
            return False
        for hour in range(bracket.start_hour, bracket.end_hour + 1):
            hits[hour] += 1
    return all(count == 1 for count in hits)


@dataclass(frozen=True)
class HeatmapResult:
    """Dense matrix indexed [day][bracket] plus scaling information."""

    matrix: tuple[tuple[float, ...], ...]
    brackets: tuple[TimeBracket, ...]
    max_value: float
    total: float

    def intensity(self, day: int, bracket: int) -> float:
        """Linear 0..1 intensity of a cell; 0 everywhere when the grid is empty."""
        if self.max_value <= 0:
            return 0.0
        return min(self.matrix[day][bracket] / self.max_value, 1.0)

    def peak(self) -> tuple[int, int] | None:
        """(day, bracket) of the busiest cell, or None when every cell is zero."""
        if self.max_value <= 0:
            return None
        for day, row in enumerate(self.matrix):
            for index, value in enumerate(row):
                if value == self.max_value:
                    return day, index
        return None

    def to_dict(self) -> dict[str, Any]:
        peak = self.peak()
        return {
            "brackets": [
                {"name": b.name, "start_hour": b.start_hour, "end_hour": b.end_hour, "label": b.label}
                for b in self.brackets
            ],
            "days": [
                {"day": DAY_NAMES[day], "values": list(row)}
                for day, row in enumerate(self.matrix)
            ],
            "max_value": self.max_value,
            "total": self.total,
            "peak_day": DAY_NAMES[peak[0]] if peak else None,
            "peak_bracket": self.brackets[peak[1]].name if peak else None,
        }


def bin_activity(
    records: Any,
    time_brackets: Sequence[TimeBracket] = DEFAULT_TIME_BRACKETS,
    filter_key: str | None = None,
    *,
    filter_subject: str = "podcast",
    value: str = "minutes",
    midnight_as_unknown: bool = False,
) -> HeatmapResult:
    """
    Bin records into a day-of-week x time-bracket grid.

    Args:
        records: Sequence of ActivityRecord
        time_brackets: Hour brackets, one matrix column each
        filter_key: Keep only records whose filter_subject equals this label
            ("all" or None keeps everything)
        filter_subject: Subject compared against filter_key
        value: Quantity summed per cell, see ActivityRecord.value_of
        midnight_as_unknown: Route records stamped exactly 00:00 to a
            trailing UNKNOWN column instead of the bracket covering hour 0

    Returns:
        HeatmapResult with every cell present, zero when empty
    """
    brackets = tuple(time_brackets)
    if not brackets_cover_day(brackets):
        logger.warning("Heatmap time brackets do not partition the day; some hours will be dropped")
    if midnight_as_unknown:
        brackets = brackets + (UNKNOWN_BRACKET,)

    grid = [[0.0] * len(brackets) for _ in range(7)]

    if not isinstance(records, (list, tuple)):
        records = []
    if filter_key is not None and filter_key != "all":
        records = [
            r for r in records
            if isinstance(r, ActivityRecord) and r.subject(filter_subject) == filter_key
        ]

    dropped = 0
    for record in records:
        if not isinstance(record, ActivityRecord) or record.timestamp is None:
            dropped += 1
            continue
        moment = record.timestamp
        if midnight_as_unknown and moment.hour == 0 and moment.minute == 0:
            column = len(brackets) - 1
        else:
            column = next(
                (i for i, bracket in enumerate(brackets) if bracket.contains(moment.hour)),
                None,
            )
        if column is None:
            dropped += 1
            continue
        grid[moment.weekday()][column] += record.value_of(value)

    if dropped:
        logger.debug(f"Dropped {dropped} record(s) that could not be binned")

    max_value = max((cell for row in grid for cell in row), default=0.0)
    return HeatmapResult(
        matrix=tuple(tuple(row) for row in grid),
        brackets=brackets,
        max_value=max_value,
        total=sum(cell for row in grid for cell in row),
    )
