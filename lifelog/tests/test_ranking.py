"""Tests for the top-N ranker."""

from lifelog.services.ranking import (
    DIMENSIONS,
    INDICATOR_POPULARITY,
    INDICATOR_YEAR,
    OTHER_LABEL,
    is_placeholder,
    proportions,
    rank_podcasts,
    rank_top,
)
from lifelog.services.records import normalize_records


def _plays(*rows):
    return normalize_records("music", [dict(row) for row in rows])


def test_unknown_artist_excluded():
    """Test three plays of "A" and one of "Unknown Artist" on one day."""
    records = _plays(
        {"timestamp": "2024-06-15T09:00:00", "artist_name": "A", "listening_seconds": "60"},
        {"timestamp": "2024-06-15T10:00:00", "artist_name": "A", "listening_seconds": "60"},
        {"timestamp": "2024-06-15T11:00:00", "artist_name": "A", "listening_seconds": "60"},
        {"timestamp": "2024-06-15T12:00:00", "artist_name": "Unknown Artist", "listening_seconds": "60"},
    )

    result = rank_top(records, "artist", 10)

    assert len(result) == 1
    assert result[0].name == "A"
    assert result[0].play_count == 3
    assert result[0].total_minutes == 3.0


def test_ties_keep_first_encounter_order():
    records = _plays(
        {"artist_name": "B"},
        {"artist_name": "A"},
        {"artist_name": "C"},
        {"artist_name": "A"},
        {"artist_name": "C"},
        {"artist_name": "B"},
    )

    names = [entity.name for entity in rank_top(records, "artist")]

    assert names == ["B", "A", "C"]


def test_ranking_is_idempotent():
    records = _plays(*({"artist_name": name} for name in "XYZYXZWQ"))

    assert rank_top(records, "artist") == rank_top(records, "artist")


def test_never_more_than_n():
    records = _plays(*({"artist_name": f"Artist {i}"} for i in range(30)))

    assert len(rank_top(records, "artist", 5)) == 5
    assert len(rank_top(records, "artist")) == 10
    assert rank_top(records, "artist", 0) == []


def test_track_keeps_known_artist_with_unknown_title():
    records = _plays(
        {"artist_name": "A", "track_name": ""},
        {"artist_name": "", "track_name": ""},
        {"artist_name": "Unknown Artist", "track_name": "Unknown Track"},
    )

    result = rank_top(records, "track")

    assert len(result) == 1
    assert result[0].display_name == "Unknown Track - A"


def test_track_same_title_different_artists():
    """Test that identical titles by different artists stay separate."""
    records = _plays(
        {"artist_name": "A", "track_name": "Intro"},
        {"artist_name": "B", "track_name": "Intro"},
        {"artist_name": "B", "track_name": "Intro"},
    )

    result = rank_top(records, "track")

    assert [e.name for e in result] == ["Intro by B", "Intro by A"]
    assert [e.play_count for e in result] == [2, 1]


def test_track_prefers_song_key():
    records = _plays(
        {"artist_name": "A", "track_name": "Intro", "song_key": "k1"},
        {"artist_name": "A", "track_name": "Intro (Remaster)", "song_key": "k1"},
    )

    result = rank_top(records, "track")

    assert len(result) == 1
    assert result[0].name == "k1"
    assert result[0].play_count == 2


def test_album_requires_album_and_artist():
    records = _plays(
        {"artist_name": "A", "album_name": "First", "album_release_date": "1999-04-01"},
        {"artist_name": "", "album_name": "First"},
        {"artist_name": "A", "album_name": ""},
    )

    result = rank_top(records, "album")

    assert len(result) == 1
    assert result[0].name == "First by A"
    assert result[0].display_name == "First - A"
    assert result[0].indicator_type == INDICATOR_YEAR
    assert result[0].indicator_value == 1999


def test_album_year_missing_is_none():
    result = rank_top(_plays({"artist_name": "A", "album_name": "X", "album_release_date": "soon"}), "album")

    assert result[0].indicator_value is None


def test_popularity_comes_from_first_record():
    records = _plays(
        {"artist_name": "A", "artist_popularity": "80"},
        {"artist_name": "A", "artist_popularity": "20"},
    )

    entity = rank_top(records, "artist")[0]

    assert entity.indicator_type == INDICATOR_POPULARITY
    assert entity.indicator_value == 80.0


def test_podcasts_ranked_by_minutes():
    records = normalize_records(
        "podcast",
        [
            {"podcast_name": "Short", "listened_seconds": "60"},
            {"podcast_name": "Short", "listened_seconds": "60"},
            {"podcast_name": "Short", "listened_seconds": "60"},
            {"podcast_name": "Long", "listened_seconds": "3600"},
        ]
        + [{"podcast_name": f"P{i}", "listened_seconds": "30"} for i in range(10)],
    )

    result = rank_podcasts(records)

    assert len(result) == 5
    assert [e.name for e in result[:2]] == ["Long", "Short"]
    assert result[0].total_minutes == 60.0


def test_invalid_input_gives_empty_result():
    records = _plays({"artist_name": "A"})

    assert rank_top(records, "genre") == []
    assert rank_top(records, None) == []
    assert rank_top("not a list", "artist") == []
    assert rank_top(None, "artist") == []


def test_dimension_table_is_complete():
    assert set(DIMENSIONS) == {"artist", "track", "album", "podcast"}


def test_is_placeholder():
    assert is_placeholder(None)
    assert is_placeholder("  ")
    assert is_placeholder("Unknown Artist")
    assert not is_placeholder("Unknown Mortal Orchestra")


def _genres(*labels):
    return _plays(*({"simplified_genre": label, "listening_seconds": "60"} for label in labels))


def test_proportions_roll_tail_into_other():
    """Test five genres squeezed into three slices."""
    records = _genres("a", "a", "a", "a", "b", "b", "b", "c", "c", "d", "e", "Unknown", "")

    result = proportions(records, "genre", max_categories=3)

    assert [item.name for item in result.items] == ["a", "b", OTHER_LABEL]
    assert result.total == 11
    other = result.items[-1]
    assert other.is_other
    assert other.value == 4
    assert other.count == 4
    assert other.item_count == 3
    assert other.percentage == 4 / 11 * 100
    assert [item.name for item in result.other_items] == ["c", "d", "e"]
    assert result.other_items[0].percentage == 2 / 11 * 100


def test_proportions_without_other_when_under_limit():
    result = proportions(_genres("a", "b"), "genre", max_categories=2)

    assert [item.name for item in result.items] == ["a", "b"]
    assert result.other_items == ()
    assert not any(item.is_other for item in result.items)


def test_proportions_zero_total_gives_zero_percentages():
    records = _plays({"simplified_genre": "a"}, {"simplified_genre": "b"})

    result = proportions(records, "genre", "sum", "minutes")

    assert result.total == 0
    assert [item.percentage for item in result.items] == [0.0, 0.0]


def test_proportions_expand_delimited_labels():
    records = _genres("Rock, Pop", "Rock", "Unknown", "Pop, Unknown", " , Jazz")

    result = proportions(records, "genre", delimiter=",")

    assert [(item.name, item.value) for item in result.items] == [("Rock", 2), ("Pop", 2), ("Jazz", 1)]
    assert result.total == 5


def test_proportions_metrics():
    records = normalize_records(
        "reading",
        [
            {"title": "Dune", "genre": "SF", "page_split": "10"},
            {"title": "Dune", "genre": "SF", "page_split": "30"},
            {"title": "Foundation", "genre": "SF"},
            {"title": "Emma", "genre": "Classic", "page_split": "abc"},
        ],
    )

    def values(metric, field):
        return {item.name: item.value for item in proportions(records, "genre", metric, field).items}

    assert values("count", "page_split") == {"SF": 3, "Classic": 1}
    assert values("count_distinct", "title") == {"SF": 2, "Classic": 1}
    assert values("sum", "page_split") == {"SF": 40.0, "Classic": 0.0}
    assert values("average", "page_split") == {"SF": 20.0, "Classic": 0.0}
    assert values("median", "page_split") == {"SF": 3, "Classic": 1}


def test_proportions_invalid_input():
    assert proportions(None, "genre").items == ()
    assert proportions("not a list", "genre").total == 0.0
