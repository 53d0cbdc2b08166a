"""Tests for date range selection and drag gestures."""

import math
from datetime import datetime

import pytest

from lifelog.services.range_mapper import (
    POINTER_CANCEL,
    POINTER_MOVE,
    POINTER_UP,
    DateRangeState,
    GestureStatus,
    PointerBus,
    RangeChange,
    RangeMapper,
)
from lifelog.services.records import normalize_records


def _state():
    # 2024 is 366 days long, so each position unit is 3.66 days
    return DateRangeState(RangeMapper("2024-01-01", "2025-01-01"))


def _collect(state):
    changes = []
    state.subscribe(changes.append)
    return changes


def test_round_trip():
    mapper = RangeMapper(datetime(2020, 3, 1, 12), datetime(2024, 8, 9, 6))

    for position in (0, 0.5, 12.345, 50, 99.99, 100):
        assert math.isclose(mapper.date_to_position(mapper.position_to_date(position)), position, abs_tol=1e-6)


def test_bounds():
    mapper = RangeMapper("2024-01-01", "2025-01-01")

    assert mapper.position_to_date(0) == datetime(2024, 1, 1)
    assert mapper.position_to_date(100) == datetime(2025, 1, 1)
    assert mapper.position_to_date(50) == datetime(2024, 7, 2)


def test_degenerate_range():
    mapper = RangeMapper("2024-05-05", "2024-05-05")

    assert mapper.date_to_position(datetime(2024, 5, 5)) == 0.0
    assert mapper.position_to_date(70) == datetime(2024, 5, 5)


def test_invalid_bounds():
    with pytest.raises(ValueError):
        RangeMapper("2025-01-01", "2024-01-01")
    with pytest.raises(ValueError):
        RangeMapper("garbage", "2024-01-01")


def test_initial_selection_matches_bounds():
    state = _state()

    assert state.current() == RangeChange("2024-01-01", "2025-01-01")
    assert state.current().to_dict() == {"startDate": "2024-01-01", "endDate": "2025-01-01"}


def test_accepted_move_notifies():
    state = _state()
    changes = _collect(state)

    assert state.move_start(50)
    assert state.move_end(75)

    assert changes == [
        RangeChange("2024-07-02", "2025-01-01"),
        RangeChange("2024-07-02", "2024-10-01"),
    ]


def test_move_past_other_handle_is_rejected():
    state = _state()
    state.move_end(40)
    changes = _collect(state)
    before = (state.start, state.end)

    assert not state.move_start(60)
    assert not state.move_start(40)
    assert not state.move_end(0)

    assert (state.start, state.end) == before
    assert changes == []


def test_positions_are_clamped_to_track():
    state = _state()

    assert state.move_end(150) is True
    assert state.end == datetime(2025, 1, 1)
    assert not state.move_start("not a number")


def test_click_moves_nearest_handle():
    state = _state()
    changes = _collect(state)

    assert state.click(10)
    assert state.current().start_date == "2024-02-06"
    assert state.click(90)
    assert state.current().end_date == "2024-11-25"
    assert len(changes) == 2


def test_typed_dates():
    state = _state()

    assert state.set_start("2024-03-01")
    assert state.set_end("2024-04-01")
    assert not state.set_end("2024-02-01")
    assert not state.set_start("2023-06-01")
    assert not state.set_start("garbage")
    assert state.current() == RangeChange("2024-03-01", "2024-04-01")


def test_unsubscribe():
    state = _state()
    changes = []
    unsubscribe = state.subscribe(changes.append)

    unsubscribe()
    unsubscribe()
    state.move_start(10)

    assert changes == []


def test_from_records():
    records = normalize_records(
        "music",
        [{"timestamp": "2024-03-05T10:00:00"}, {"timestamp": "bad"}, {"timestamp": "2023-01-02T08:00:00"}],
    )

    state = DateRangeState.from_records(records)

    assert state.current() == RangeChange("2023-01-02", "2024-03-05")
    assert DateRangeState.from_records([]) is None


def test_drag_emits_one_notification():
    state = _state()
    changes = _collect(state)
    bus = PointerBus()

    with state.drag("start", bus) as gesture:
        assert gesture.status is GestureStatus.DRAGGING
        for position in (5, 10, 15, 20):
            bus.dispatch(POINTER_MOVE, position)
        assert gesture.pending == 20
        gesture.frame()
        bus.dispatch(POINTER_MOVE, 25)
        bus.dispatch(POINTER_UP)

        assert gesture.status is GestureStatus.IDLE

    assert len(changes) == 1
    assert changes[0].start_date == state.current().start_date
    assert state.mapper.date_to_position(state.start) == pytest.approx(25)
    assert bus.handler_count() == 0


def test_release_after_rejected_moves_notifies_once():
    state = _state()
    state.move_end(30)
    changes = _collect(state)
    bus = PointerBus()

    with state.drag("start", bus) as gesture:
        bus.dispatch(POINTER_MOVE, 80)
        assert gesture.frame() is False
        bus.dispatch(POINTER_UP, 90)

    assert changes == [state.current()]
    assert state.start == datetime(2024, 1, 1)
    assert bus.handler_count() == 0


def test_release_without_moving_notifies_once():
    state = _state()
    changes = _collect(state)
    bus = PointerBus()

    with state.drag("end", bus):
        bus.dispatch(POINTER_UP)

    assert changes == [RangeChange("2024-01-01", "2025-01-01")]


def test_release_within_same_day_notifies_once():
    state = DateRangeState(RangeMapper("2024-01-01", "2024-01-03"))
    changes = _collect(state)
    bus = PointerBus()

    with state.drag("start", bus):
        bus.dispatch(POINTER_MOVE, 10)
        bus.dispatch(POINTER_UP)

    assert state.start == datetime(2024, 1, 1, 4, 48)
    assert changes == [RangeChange("2024-01-01", "2024-01-03")]


def test_cancel_drops_pending_move():
    state = _state()
    changes = _collect(state)
    bus = PointerBus()

    with state.drag("end", bus):
        bus.dispatch(POINTER_MOVE, 50)
        bus.dispatch(POINTER_CANCEL)

    assert changes == []
    assert state.end == datetime(2025, 1, 1)
    assert bus.handler_count() == 0


def test_cancel_after_accepted_move_notifies_once():
    state = _state()
    changes = _collect(state)
    bus = PointerBus()

    with state.drag("end", bus) as gesture:
        bus.dispatch(POINTER_MOVE, 50)
        assert gesture.frame() is True
        bus.dispatch(POINTER_MOVE, 60)
        bus.dispatch(POINTER_CANCEL)

    assert len(changes) == 1
    assert changes[0] == state.current()
    assert state.mapper.date_to_position(state.end) == pytest.approx(50)
    assert bus.handler_count() == 0


def test_listeners_detached_when_block_raises():
    state = _state()
    bus = PointerBus()

    with pytest.raises(RuntimeError):
        with state.drag("start", bus):
            assert bus.handler_count() == 3
            raise RuntimeError("boom")

    assert bus.handler_count() == 0
    assert state.move_start(10)


def test_unknown_handle():
    state = _state()

    with pytest.raises(ValueError):
        with state.drag("middle", PointerBus()):
            pass
