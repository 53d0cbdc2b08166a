"""Tests for the record normalizer."""

from datetime import date, datetime

from lifelog.services.records import (
    ActivityRecord,
    coerce_duration,
    coerce_float,
    normalize_record,
    normalize_records,
    parse_timestamp,
)


def test_music_row():
    """Test projecting a full music row."""
    record = normalize_record(
        "music",
        {
            "timestamp": "2024-06-15T14:30:00Z",
            "listening_seconds": "180",
            "artist_name": " Daft Punk\x00 ",
            "track_name": "Digital Love",
            "album_name": "Discovery",
            "artist_popularity": "70",
            "album_release_date": "2001-03-12",
        },
    )

    assert record.domain == "music"
    assert record.timestamp == datetime(2024, 6, 15, 14, 30)
    assert record.duration_seconds == 180.0
    assert record.subject("artist") == "Daft Punk"
    assert record.subject("album") == "Discovery"
    assert record.popularity["artist"] == 70.0
    # Track popularity falls back to the artist's
    assert record.popularity["track"] == 70.0
    assert record.release_date.year == 2001
    assert record.metric_value == 180.0


def test_music_duration_from_track_length():
    """Test track_duration (milliseconds) when listening seconds are missing."""
    record = normalize_record("music", {"track_duration": "200000"})

    assert record.duration_seconds == 200.0
    assert record.timestamp is None


def test_podcast_timestamp_fallback():
    """Test that podcast rows fall back to the "modified at" column."""
    record = normalize_record(
        "podcast",
        {"modified at": "2024-01-02 08:15:00", "podcast_name": "Hardcore History", "duration": "3600"},
    )

    assert record.timestamp == datetime(2024, 1, 2, 8, 15)
    assert record.subject("podcast") == "Hardcore History"
    assert record.duration_seconds == 3600.0


def test_reading_numeric_fields():
    record = normalize_record("reading", {"date": "2024/02/29", "Title": "Dune", "page_split": "40"})

    assert record.timestamp == datetime(2024, 2, 29)
    assert record.subject("title") == "Dune"
    assert record.value_of("page_split") == 40.0
    assert record.value_of("metric") == 40.0


def test_malformed_values_do_not_raise():
    """Test that garbage degrades to None/0 instead of raising."""
    record = normalize_record(
        "music",
        {"timestamp": "not a date", "listening_seconds": "lots", "artist_popularity": "n/a"},
    )

    assert record.timestamp is None
    assert record.duration_seconds == 0.0
    assert "artist" not in record.popularity
    assert record.subject("artist") == ""


def test_unknown_domain_and_bad_input():
    assert normalize_record("movies", {"timestamp": "2024-01-01"}) is None
    assert normalize_record("music", ["not", "a", "mapping"]) is None
    assert normalize_records("movies", [{"timestamp": "2024-01-01"}]) == []
    assert normalize_records("music", None) == []
    assert normalize_records("music", "text") == []


def test_normalize_records_skips_non_mappings():
    records = normalize_records("music", [{"artist_name": "A"}, None, 42, {"artist_name": "B"}])

    assert [r.subject("artist") for r in records] == ["A", "B"]


def test_coerce_float():
    assert coerce_float("1,234.5") == 1234.5
    assert coerce_float(" 7 ") == 7.0
    assert coerce_float(3) == 3.0
    assert coerce_float("abc") is None
    assert coerce_float("") is None
    assert coerce_float(True) is None
    assert coerce_float(float("nan")) is None
    assert coerce_float(float("inf")) is None
    assert coerce_float([1]) is None


def test_coerce_duration():
    assert coerce_duration("90") == 90.0
    assert coerce_duration(-5) == 0.0
    assert coerce_duration(None) == 0.0
    assert coerce_duration("1500", 0.001) == 1.5


def test_parse_timestamp_formats():
    assert parse_timestamp("2024/03/05 07:08") == datetime(2024, 3, 5, 7, 8)
    assert parse_timestamp("2024-03-05") == datetime(2024, 3, 5)
    assert parse_timestamp(date(2024, 3, 5)) == datetime(2024, 3, 5)
    assert parse_timestamp(0) == datetime(1970, 1, 1)
    assert parse_timestamp(86_400_000) == datetime(1970, 1, 2)
    assert parse_timestamp("garbage") is None
    assert parse_timestamp("2024/13/40") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp(True) is None


def test_parse_timestamp_keeps_wall_clock():
    """Test that an explicit offset is dropped without shifting the hour."""
    parsed = parse_timestamp("2024-06-15T10:00:00+02:00")

    assert parsed == datetime(2024, 6, 15, 10, 0)
    assert parsed.tzinfo is None


def test_value_of():
    record = ActivityRecord(domain="music", duration_seconds=120.0, metric_value=None)

    assert record.value_of("count") == 1.0
    assert record.value_of("duration") == 120.0
    assert record.value_of("minutes") == 2.0
    assert record.value_of("metric") == 0.0
    assert record.value_of("missing") == 0.0
