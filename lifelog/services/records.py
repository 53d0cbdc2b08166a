"""
Record Normalizer

Coerces loosely-typed activity rows (music plays, podcast episodes, reading
sessions) into immutable ActivityRecord values. Nothing in this module raises
on malformed data: unparseable numbers become 0/None and unparseable dates
become None.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from types import MappingProxyType
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1)

_SLASH_DATE = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})(?:[ T](\d{1,2}):(\d{2})(?::(\d{2}))?)?$")


@dataclass(frozen=True)
class ActivityRecord:
    """A single normalized activity: one play, one episode, one reading session."""

    domain: str
    timestamp: datetime | None = None
    duration_seconds: float = 0.0
    metric_value: float | None = None
    subjects: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    popularity: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    release_date: datetime | None = None
    values: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))

    def subject(self, name: str) -> str:
        """Label for a subject column, or "" when absent."""
        return self.subjects.get(name, "")

    def value_of(self, name: str) -> float:
        """
        Numeric quantity selected by name.

        "count" is 1 for every record, "duration" is seconds, "minutes" is
        duration in minutes, "metric" is the domain metric. Anything else is
        looked up in the declared numeric columns (0.0 when missing).
        """
        if name == "count":
            return 1.0
        if name == "duration":
            return self.duration_seconds
        if name == "minutes":
            return self.duration_seconds / 60
        if name == "metric":
            return self.metric_value or 0.0
        return self.values.get(name, 0.0)


@dataclass(frozen=True)
class Projection:
    """How raw columns of one data source map onto an ActivityRecord."""

    timestamp_fields: tuple[str, ...]
    # (column, multiplier to seconds), first parseable column wins
    duration_fields: tuple[tuple[str, float], ...] = ()
    subject_fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    popularity_fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    release_field: str | None = None
    metric_field: str | None = None
    numeric_fields: tuple[str, ...] = ()


PROJECTIONS: dict[str, Projection] = {
    "music": Projection(
        timestamp_fields=("timestamp",),
        duration_fields=(("listening_seconds", 1.0), ("track_duration", 0.001)),
        subject_fields={
            "artist": ("artist_name",),
            "track": ("track_name",),
            "album": ("album_name",),
            "song_key": ("song_key",),
            "genre": ("simplified_genre", "genre"),
        },
        popularity_fields={
            "artist": ("artist_popularity",),
            "track": ("track_popularity", "artist_popularity"),
        },
        release_field="album_release_date",
        metric_field="listening_seconds",
        numeric_fields=("listening_seconds", "track_duration", "listening_hours"),
    ),
    "podcast": Projection(
        timestamp_fields=("listened_date", "modified at", "timestamp"),
        duration_fields=(("listened_seconds", 1.0), ("duration", 1.0)),
        subject_fields={
            "podcast": ("podcast_name",),
            "title": ("title", "episode_title"),
            "artist": ("artist",),
            "genre": ("genre",),
        },
        metric_field="completion_percent",
        numeric_fields=("listened_seconds", "duration", "completion_percent"),
    ),
    "reading": Projection(
        timestamp_fields=("timestamp", "date"),
        duration_fields=(("reading_seconds", 1.0),),
        subject_fields={
            "title": ("title", "Title"),
            "author": ("author", "Author"),
            "genre": ("genre",),
        },
        metric_field="page_split",
        numeric_fields=("page_split", "number_of_pages", "my_rating", "reading_duration_final"),
    ),
}


def clean_string(value: Any) -> str:
    """Strip NUL characters and surrounding whitespace; non-strings become ""."""
    if value is None:
        return ""
    if not isinstance(value, str):
        if isinstance(value, bool):
            return ""
        value = str(value)
    return value.replace("\x00", "").strip()


def coerce_float(value: Any) -> float | None:
    """Parse a finite float from a number or numeric string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        text = clean_string(value).replace(",", "")
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def coerce_duration(value: Any, scale: float = 1.0) -> float:
    """Duration in seconds; negative or unparseable input is 0."""
    number = coerce_float(value)
    if number is None or number <= 0:
        return 0.0
    return number * scale


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a timestamp without ever raising.

    Accepts datetime/date objects, ISO-8601 strings (a trailing "Z" is
    allowed), "YYYY/MM/DD[ HH:MM[:SS]]" strings and numbers, which are read
    as epoch milliseconds.

    The result is always naive. An explicit UTC offset is dropped and the
    wall-clock fields are kept exactly as written, so "10:00+02:00" bins at
    hour 10. No timezone conversion happens anywhere in the engine.
    """
    parsed = _parse_timestamp(value)
    if parsed is not None and parsed.tzinfo is not None:
        return parsed.replace(tzinfo=None)
    return parsed


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return None
        try:
            return _EPOCH + timedelta(milliseconds=value)
        except OverflowError:
            return None
    if not isinstance(value, str):
        return None

    text = clean_string(value)
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass

    match = _SLASH_DATE.match(text)
    if match:
        year, month, day, hour, minute, second = match.groups()
        try:
            return datetime(
                int(year),
                int(month),
                int(day),
                int(hour or 0),
                int(minute or 0),
                int(second or 0),
            )
        except ValueError:
            return None
    return None


def _first_present(raw: Mapping[str, Any], columns: Iterable[str]) -> Any:
    for column in columns:
        value = raw.get(column)
        if clean_string(value):
            return value
    return None


def normalize_record(domain: str, raw: Any) -> ActivityRecord | None:
    """
    Project one raw row onto an ActivityRecord.

    Args:
        domain: One of the keys of PROJECTIONS
        raw: A mapping of column name to loosely-typed value

    Returns:
        The normalized record, or None for an unknown domain or a non-mapping row
    """
    projection = PROJECTIONS.get(domain)
    if projection is None or not isinstance(raw, Mapping):
        return None

    timestamp = None
    for column in projection.timestamp_fields:
        timestamp = parse_timestamp(raw.get(column))
        if timestamp is not None:
            break

    duration = 0.0
    for column, scale in projection.duration_fields:
        if coerce_float(raw.get(column)) is not None:
            duration = coerce_duration(raw.get(column), scale)
            break

    subjects = {
        name: clean_string(_first_present(raw, columns))
        for name, columns in projection.subject_fields.items()
    }

    popularity: dict[str, float] = {}
    for name, columns in projection.popularity_fields.items():
        for column in columns:
            score = coerce_float(raw.get(column))
            if score is not None:
                popularity[name] = score
                break

    values = {}
    for column in projection.numeric_fields:
        number = coerce_float(raw.get(column))
        if number is not None:
            values[column] = number

    return ActivityRecord(
        domain=domain,
        timestamp=timestamp,
        duration_seconds=duration,
        metric_value=coerce_float(raw.get(projection.metric_field)) if projection.metric_field else None,
        subjects=MappingProxyType(subjects),
        popularity=MappingProxyType(popularity),
        release_date=parse_timestamp(raw.get(projection.release_field)) if projection.release_field else None,
        values=MappingProxyType(values),
    )


def normalize_records(domain: str, raws: Any) -> list[ActivityRecord]:
    """Normalize a sequence of raw rows, skipping rows that are not mappings."""
    if domain not in PROJECTIONS:
        logger.warning(f"Unknown domain '{domain}', nothing to normalize")
        return []
    if not isinstance(raws, (list, tuple)):
        return []

    records = []
    for raw in raws:
        record = normalize_record(domain, raw)
        if record is not None:
            records.append(record)

    skipped = len(raws) - len(records)
    if skipped:
        logger.debug(f"Skipped {skipped} non-mapping {domain} row(s)")
    return records
