"""
Date Range Selection

RangeMapper maps slider positions in [0, 100] to dates within fixed bounds.
DateRangeState holds the selected {start, end} and only accepts updates that
keep start strictly before end. DragGesture models a pointer drag as an
explicit idle/dragging state machine whose pointer handlers are always
detached when the gesture ends.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterator

from lifelog.services.records import ActivityRecord, coerce_float, parse_timestamp

logger = logging.getLogger(__name__)

HANDLE_START = "start"
HANDLE_END = "end"
HANDLES = (HANDLE_START, HANDLE_END)

POINTER_MOVE = "move"
POINTER_UP = "up"
POINTER_CANCEL = "cancel"


@dataclass(frozen=True)
class RangeChange:
    """Change notification payload: ISO calendar dates, time of day dropped."""

    start_date: str
    end_date: str

    def to_dict(self) -> dict[str, str]:
        return {"startDate": self.start_date, "endDate": self.end_date}


def _clamp_position(position: Any) -> float | None:
    number = coerce_float(position)
    if number is None:
        return None
    return max(0.0, min(100.0, number))


class RangeMapper:
    """Bidirectional position <-> date mapping over immutable bounds."""

    def __init__(self, min_date: Any, max_date: Any) -> None:
        lower = parse_timestamp(min_date)
        upper = parse_timestamp(max_date)
        if lower is None or upper is None:
            raise ValueError(f"Invalid range bounds: {min_date!r}, {max_date!r}")
        if lower > upper:
            raise ValueError(f"Range minimum {lower} is after maximum {upper}")
        self._min = lower
        self._max = upper

    @property
    def min_date(self) -> datetime:
        return self._min

    @property
    def max_date(self) -> datetime:
        return self._max

    def position_to_date(self, position: float) -> datetime:
        return self._min + (self._max - self._min) * (position / 100)

    def date_to_position(self, moment: datetime) -> float:
        span = (self._max - self._min).total_seconds()
        if span == 0:
            return 0.0
        return (moment - self._min).total_seconds() / span * 100


class DateRangeState:
    """
    Selected date range over a RangeMapper.

    Every accepted update notifies subscribers with a RangeChange, except
    during a drag gesture, which notifies once when it ends.
    """

    def __init__(self, mapper: RangeMapper) -> None:
        self.mapper = mapper
        self._start = mapper.min_date
        self._end = mapper.max_date
        self._listeners: list[Callable[[RangeChange], None]] = []
        self._gesture: DragGesture | None = None

    @classmethod
    def from_records(cls, records: Any) -> DateRangeState | None:
        """State spanning the earliest to latest record timestamp, or None."""
        if not isinstance(records, (list, tuple)):
            return None
        moments = [
            r.timestamp for r in records
            if isinstance(r, ActivityRecord) and r.timestamp is not None
        ]
        if not moments:
            return None
        return cls(RangeMapper(min(moments), max(moments)))

    @property
    def start(self) -> datetime:
        return self._start

    @property
    def end(self) -> datetime:
        return self._end

    def current(self) -> RangeChange:
        return RangeChange(
            start_date=self._start.date().isoformat(),
            end_date=self._end.date().isoformat(),
        )

    def subscribe(self, listener: Callable[[RangeChange], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        change = self.current()
        for listener in list(self._listeners):
            listener(change)

    def _apply(self, handle: str, moment: datetime) -> bool:
        if handle == HANDLE_START:
            if not moment < self._end:
                return False
            self._start = moment
        elif handle == HANDLE_END:
            if not moment > self._start:
                return False
            self._end = moment
        else:
            raise ValueError(f"Unknown range handle: {handle!r}")

        if self._gesture is None:
            self._notify()
        return True

    def move(self, handle: str, position: Any) -> bool:
        """Move a handle to a slider position. Returns False when rejected."""
        clamped = _clamp_position(position)
        if clamped is None:
            return False
        return self._apply(handle, self.mapper.position_to_date(clamped))

    def move_start(self, position: Any) -> bool:
        return self.move(HANDLE_START, position)

    def move_end(self, position: Any) -> bool:
        return self.move(HANDLE_END, position)

    def nearest_handle(self, moment: datetime) -> str:
        """Handle chronologically closest to a date; ties go to start."""
        if abs(moment - self._start) <= abs(moment - self._end):
            return HANDLE_START
        return HANDLE_END

    def click(self, position: Any) -> bool:
        """Move whichever handle is closer to the clicked date."""
        clamped = _clamp_position(position)
        if clamped is None:
            return False
        moment = self.mapper.position_to_date(clamped)
        return self._apply(self.nearest_handle(moment), moment)

    def set_date(self, handle: str, value: Any) -> bool:
        """Typed-in date for a handle; rejected when unparseable or out of bounds."""
        moment = parse_timestamp(value)
        if moment is None or not self.mapper.min_date <= moment <= self.mapper.max_date:
            return False
        return self._apply(handle, moment)

    def set_start(self, value: Any) -> bool:
        return self.set_date(HANDLE_START, value)

    def set_end(self, value: Any) -> bool:
        return self.set_date(HANDLE_END, value)

    @contextmanager
    def drag(self, handle: str, bus: PointerBus) -> Iterator[DragGesture]:
        """
        Run one drag gesture with pointer handlers attached to ``bus``.

        Handlers are detached when the pointer is released or cancelled, and
        again on leaving the block, whatever the exit path.
        """
        gesture = DragGesture(self)
        gesture.pointer_down(handle, bus)
        try:
            yield gesture
        finally:
            if gesture.is_dragging:
                gesture.cancel()
            gesture.detach()


class PointerBus:
    """Document-level pointer event source."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = {}

    def subscribe(self, kind: str, handler: Callable[..., Any]) -> Callable[[], None]:
        self._handlers.setdefault(kind, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(kind, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def dispatch(self, kind: str, position: Any = None) -> None:
        for handler in list(self._handlers.get(kind, [])):
            handler(position)

    def handler_count(self, kind: str | None = None) -> int:
        if kind is not None:
            return len(self._handlers.get(kind, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class GestureStatus(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DragGesture:
    """
    idle --pointer_down--> dragging(handle) --pointer_up/cancel--> idle

    Moves are coalesced: only the latest position is kept, and frame()
    applies it. Releasing the pointer always emits exactly one notification;
    a cancelled gesture emits one only if a move was accepted before it.
    """

    def __init__(self, state: DateRangeState) -> None:
        self._state = state
        self.status = GestureStatus.IDLE
        self.handle: str | None = None
        self._pending: Any = None
        self._moved = False
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def is_dragging(self) -> bool:
        return self.status is GestureStatus.DRAGGING

    @property
    def pending(self) -> Any:
        return self._pending

    def pointer_down(self, handle: str, bus: PointerBus | None = None) -> None:
        if handle not in HANDLES:
            raise ValueError(f"Unknown range handle: {handle!r}")
        if self.is_dragging:
            self.cancel()
        self.status = GestureStatus.DRAGGING
        self.handle = handle
        self._pending = None
        self._moved = False
        self._state._gesture = self
        if bus is not None:
            self._unsubscribers = [
                bus.subscribe(POINTER_MOVE, self.pointer_move),
                bus.subscribe(POINTER_UP, self.pointer_up),
                bus.subscribe(POINTER_CANCEL, lambda _position=None: self.cancel()),
            ]

    def pointer_move(self, position: Any) -> None:
        if self.is_dragging:
            self._pending = position

    def frame(self) -> bool:
        """Apply the latest pending move. Returns True if it was accepted."""
        if not self.is_dragging or self._pending is None:
            return False
        position, self._pending = self._pending, None
        accepted = self._state.move(self.handle, position)
        self._moved = self._moved or accepted
        return accepted

    def pointer_up(self, position: Any = None) -> bool:
        """Apply any final position, end the gesture and notify once."""
        if not self.is_dragging:
            return False
        if position is not None:
            self._pending = position
        self.frame()
        self._finish()
        self._state._notify()
        return True

    def cancel(self) -> bool:
        """
        End the gesture without applying the pending move (lost capture).

        Returns True when earlier accepted moves were notified.
        """
        if not self.is_dragging:
            return False
        self._pending = None
        moved = self._moved
        self._finish()
        if moved:
            self._state._notify()
        else:
            logger.debug("Drag gesture cancelled before any accepted move")
        return moved

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _finish(self) -> None:
        self.detach()
        self.status = GestureStatus.IDLE
        self.handle = None
        self._moved = False
        self._state._gesture = None
