"""
Top-N Ranking Service

Groups normalized records by a dimension (artist, track, album, podcast),
reduces each group to an AggregatedEntity and returns the top N in a stable
order. Each dimension is a DimensionStrategy entry in DIMENSIONS.

proportions() breaks a subject column down into share-of-total slices.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from lifelog import config
from lifelog.services.filters import split_labels
from lifelog.services.records import ActivityRecord

logger = logging.getLogger(__name__)

INDICATOR_POPULARITY = "popularity"
INDICATOR_YEAR = "year"

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_TRACK = "Unknown Track"

PLACEHOLDER_LABELS = frozenset(
    {"", "unknown", "unknown artist", "unknown track", "unknown album", "unknown podcast"}
)


def is_placeholder(label: str | None) -> bool:
    """True for empty, whitespace-only or "Unknown ..." labels."""
    if label is None:
        return True
    return label.strip().lower() in PLACEHOLDER_LABELS


def _label(record: ActivityRecord, subject: str, fallback: str) -> str:
    value = record.subject(subject)
    return fallback if is_placeholder(value) else value


@dataclass(frozen=True)
class AggregatedEntity:
    """Summary of one group, rebuilt on every aggregation pass."""

    name: str
    display_name: str
    play_count: int
    total_minutes: float
    indicator_value: float | int | None
    indicator_type: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "play_count": self.play_count,
            "total_minutes": self.total_minutes,
            "indicator_value": self.indicator_value,
            "indicator_type": self.indicator_type,
        }


@dataclass(frozen=True)
class DimensionStrategy:
    """Filtering, grouping, labeling and indicator rules for one dimension."""

    name: str
    include: Callable[[ActivityRecord], bool]
    group_key: Callable[[ActivityRecord], str]
    display_name: Callable[[ActivityRecord], str]
    indicator: Callable[[ActivityRecord], tuple[float | int | None, str | None]]
    rank_by: str = "play_count"
    default_limit: int = config.DEFAULT_TOP_N


def _track_key(record: ActivityRecord) -> str:
    song_key = record.subject("song_key")
    if song_key:
        return song_key
    # Same title by different artists must not collide
    return f"{_label(record, 'track', UNKNOWN_TRACK)} by {_label(record, 'artist', UNKNOWN_ARTIST)}"


def _release_year(record: ActivityRecord) -> tuple[int | None, str]:
    if record.release_date is None:
        return None, INDICATOR_YEAR
    return record.release_date.year, INDICATOR_YEAR


DIMENSIONS: dict[str, DimensionStrategy] = {
    "artist": DimensionStrategy(
        name="artist",
        include=lambda r: not is_placeholder(r.subject("artist")),
        group_key=lambda r: r.subject("artist"),
        display_name=lambda r: r.subject("artist"),
        indicator=lambda r: (r.popularity.get("artist", 0.0), INDICATOR_POPULARITY),
    ),
    "track": DimensionStrategy(
        name="track",
        # A known artist with an unknown title is still a countable play
        include=lambda r: not (is_placeholder(r.subject("track")) and is_placeholder(r.subject("artist"))),
        group_key=_track_key,
        display_name=lambda r: (
            f"{_label(r, 'track', UNKNOWN_TRACK)} - {_label(r, 'artist', UNKNOWN_ARTIST)}"
        ),
        indicator=lambda r: (r.popularity.get("track", 0.0), INDICATOR_POPULARITY),
    ),
    "album": DimensionStrategy(
        name="album",
        include=lambda r: not is_placeholder(r.subject("album")) and not is_placeholder(r.subject("artist")),
        group_key=lambda r: f"{r.subject('album')} by {r.subject('artist')}",
        display_name=lambda r: f"{r.subject('album')} - {r.subject('artist')}",
        indicator=_release_year,
    ),
    "podcast": DimensionStrategy(
        name="podcast",
        include=lambda r: not is_placeholder(r.subject("podcast")),
        group_key=lambda r: r.subject("podcast"),
        display_name=lambda r: r.subject("podcast"),
        indicator=lambda r: (None, None),
        rank_by="total_minutes",
        default_limit=config.PODCAST_TOP_N,
    ),
}


def group_records(
    records: Iterable[ActivityRecord],
    key_fn: Callable[[ActivityRecord], str],
) -> dict[str, list[ActivityRecord]]:
    """
    Group records by key, preserving first-encounter order of the keys.

    Args:
        records: Normalized records
        key_fn: Function deriving the group key of a record

    Returns:
        Insertion-ordered mapping of key to the records sharing it
    """
    groups: dict[str, list[ActivityRecord]] = {}
    for record in records:
        groups.setdefault(key_fn(record), []).append(record)
    return groups


def aggregate_group(
    key: str, group: list[ActivityRecord], strategy: DimensionStrategy
) -> AggregatedEntity:
    """Reduce one group to its summary. The first record supplies labels and indicator."""
    first = group[0]
    total_minutes = math.fsum(record.duration_seconds for record in group) / 60
    if not math.isfinite(total_minutes):
        total_minutes = 0.0
    indicator_value, indicator_type = strategy.indicator(first)
    return AggregatedEntity(
        name=key,
        display_name=strategy.display_name(first) or key,
        play_count=len(group),
        total_minutes=total_minutes,
        indicator_value=indicator_value,
        indicator_type=indicator_type,
    )


def rank_top(records: Any, dimension: str, n: int | None = None) -> list[AggregatedEntity]:
    """
    Rank groups of a dimension and keep the top N.

    Args:
        records: Sequence of ActivityRecord
        dimension: "artist", "track", "album" or "podcast"
        n: Number of entities to keep (defaults to the dimension's limit)

    Returns:
        Entities ordered by the dimension's metric, descending. Ties keep the
        order in which each group's first record was encountered. Unknown
        dimensions and non-sequence input give an empty list.
    """
    if not isinstance(records, (list, tuple)):
        return []

    strategy = DIMENSIONS.get(dimension) if isinstance(dimension, str) else None
    if strategy is None:
        logger.warning(f"Unknown ranking dimension: {dimension!r}")
        return []

    limit = strategy.default_limit if n is None else n
    if limit <= 0:
        return []

    kept = [r for r in records if isinstance(r, ActivityRecord) and strategy.include(r)]
    dropped = len(records) - len(kept)
    if dropped:
        logger.debug(f"Dropped {dropped} record(s) with placeholder {strategy.name} labels")

    groups = group_records(kept, strategy.group_key)
    entities = [aggregate_group(key, group, strategy) for key, group in groups.items()]
    # list.sort is stable, including with reverse=True
    entities.sort(key=lambda entity: getattr(entity, strategy.rank_by), reverse=True)
    return entities[:limit]


def rank_podcasts(records: Any, n: int = config.PODCAST_TOP_N) -> list[AggregatedEntity]:
    """Top podcasts by listening minutes."""
    return rank_top(records, "podcast", n)


METRIC_COUNT = "count"
METRIC_COUNT_DISTINCT = "count_distinct"
METRIC_SUM = "sum"
METRIC_AVERAGE = "average"
PROPORTION_METRICS = (METRIC_COUNT, METRIC_COUNT_DISTINCT, METRIC_SUM, METRIC_AVERAGE)

OTHER_LABEL = "Other"


@dataclass(frozen=True)
class ProportionSlice:
    """One category's share of the total. The "Other" slice sums the tail."""

    name: str
    value: float
    count: int
    percentage: float = 0.0
    is_other: bool = False
    item_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "name": self.name,
            "value": self.value,
            "count": self.count,
            "percentage": self.percentage,
            "is_other": self.is_other,
        }
        if self.is_other:
            data["item_count"] = self.item_count
        return data


@dataclass(frozen=True)
class ProportionResult:
    items: tuple[ProportionSlice, ...]
    other_items: tuple[ProportionSlice, ...]
    total: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "other_items": [item.to_dict() for item in self.other_items],
            "total": self.total,
        }


def _numeric_field(record: ActivityRecord, field: str) -> float | None:
    # None when the record has no parseable value for the column
    if field in ("count", "duration", "minutes"):
        return record.value_of(field)
    if field == "metric":
        return record.metric_value
    return record.values.get(field)


def _distinct_field(record: ActivityRecord, field: str) -> Any:
    if field == "date":
        return record.timestamp.date().isoformat() if record.timestamp else None
    label = record.subject(field)
    if label:
        return label
    return _numeric_field(record, field)


def _metric_value(group: list[ActivityRecord], metric: str, field: str) -> float:
    if metric == METRIC_COUNT_DISTINCT:
        distinct = {_distinct_field(r, field) for r in group}
        distinct.discard(None)
        distinct.discard("")
        return len(distinct)
    if metric == METRIC_SUM:
        return math.fsum(_numeric_field(r, field) or 0.0 for r in group)
    if metric == METRIC_AVERAGE:
        valid = [v for v in (_numeric_field(r, field) for r in group) if v is not None]
        return math.fsum(valid) / len(valid) if valid else 0.0
    return len(group)


def proportions(
    records: Any,
    subject: str,
    metric: str = METRIC_COUNT,
    field: str = "count",
    delimiter: str | None = None,
    max_categories: int | None = None,
) -> ProportionResult:
    """
    Break a subject column down into each label's share of a metric.

    Args:
        records: Sequence of ActivityRecord
        subject: Subject column to group by (e.g. "genre")
        metric: "count", "count_distinct", "sum" or "average"
        field: Column the metric reads; ignored by "count"
        delimiter: Split multi-valued labels ("Rock, Pop") into one entry each
        max_categories: Slices to return; the tail beyond max_categories - 1
            is rolled into a single "Other" slice

    Returns:
        ProportionResult with slices ordered by value descending, the rolled-up
        tail in other_items and the total across every group. Percentages are
        0 when the total is 0.
    """
    if not isinstance(records, (list, tuple)):
        return ProportionResult((), (), 0.0)

    if metric not in PROPORTION_METRICS:
        logger.warning(f"Unknown proportion metric: {metric!r}, counting records")
        metric = METRIC_COUNT
    limit = max(1, config.PROPORTION_MAX_CATEGORIES if max_categories is None else max_categories)

    entries: list[tuple[str, ActivityRecord]] = []
    for record in records:
        if not isinstance(record, ActivityRecord):
            continue
        label = record.subject(subject)
        if is_placeholder(label):
            continue
        if delimiter:
            entries.extend(
                (part, record) for part in split_labels(label, delimiter) if not is_placeholder(part)
            )
        else:
            entries.append((label.strip(), record))

    groups = group_records(entries, lambda entry: entry[0])
    slices = []
    for name, group in groups.items():
        members = [record for _, record in group]
        slices.append((name, _metric_value(members, metric, field), len(members)))
    slices.sort(key=lambda item: item[1], reverse=True)

    total = math.fsum(value for _, value, _ in slices)

    def share(value: float) -> float:
        return value / total * 100 if total > 0 else 0.0

    main = [ProportionSlice(name, value, count, share(value)) for name, value, count in slices]
    other: list[ProportionSlice] = []
    if len(main) > limit:
        main, other = main[: limit - 1], main[limit - 1 :]
        other_value = math.fsum(item.value for item in other)
        main.append(
            ProportionSlice(
                name=OTHER_LABEL,
                value=other_value,
                count=sum(item.count for item in other),
                percentage=share(other_value),
                is_other=True,
                item_count=len(other),
            )
        )
    return ProportionResult(tuple(main), tuple(other), total)
