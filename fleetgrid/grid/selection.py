from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

"""Selection engine.

Tracks the anchor / current cell pair of a rectangular selection and the
drag-to-fill target. The engine holds one immutable ``SelectionState``; every
gesture method returns the new snapshot so callers re-derive their view from it.

State machine:
    IDLE -> SELECTING (mouse_down) -> IDLE (mouse_up)
    IDLE/SELECTING -> FILLING (fill_handle_mouse_down) -> IDLE (mouse_up)

Coordinates index the visible (filtered, sorted) row list. Bounds are the
caller's responsibility.
"""

__all__ = [
    "Direction",
    "InteractionMode",
    "SelectionCoord",
    "SelectionRange",
    "SelectionState",
    "SelectionEngine",
]


class InteractionMode(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    FILLING = "filling"


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class SelectionCoord:
    row: int
    col: int


@dataclass(frozen=True)
class SelectionRange:
    """Normalized rectangle: start is the min corner, end the max corner."""
    start: SelectionCoord
    end: SelectionCoord

    @classmethod
    def spanning(cls, a: SelectionCoord, b: SelectionCoord) -> SelectionRange:
        return cls(
            start=SelectionCoord(min(a.row, b.row), min(a.col, b.col)),
            end=SelectionCoord(max(a.row, b.row), max(a.col, b.col)),
        )

    def contains(self, row: int, col: int) -> bool:
        return self.start.row <= row <= self.end.row and self.start.col <= col <= self.end.col

    @property
    def height(self) -> int:
        return self.end.row - self.start.row + 1

    @property
    def width(self) -> int:
        return self.end.col - self.start.col + 1

    def rows(self) -> range:
        return range(self.start.row, self.end.row + 1)

    def cols(self) -> range:
        return range(self.start.col, self.end.col + 1)


@dataclass(frozen=True)
class SelectionState:
    anchor: SelectionCoord | None = None
    current: SelectionCoord | None = None
    mode: InteractionMode = InteractionMode.IDLE
    fill_end: SelectionCoord | None = None

    @property
    def range(self) -> SelectionRange | None:
        if self.anchor is None or self.current is None:
            return None
        return SelectionRange.spanning(self.anchor, self.current)

    @property
    def has_selection(self) -> bool:
        return self.anchor is not None and self.current is not None

    def is_selected(self, row: int, col: int) -> bool:
        rng = self.range
        return rng is not None and rng.contains(row, col)

    def fill_range(self) -> SelectionRange | None:
        """Source range extended down to the fill target, if any."""
        rng = self.range
        if rng is None or self.fill_end is None or self.fill_end.row <= rng.end.row:
            return None
        return SelectionRange(start=rng.start, end=SelectionCoord(self.fill_end.row, rng.end.col))

    def is_fill_preview(self, row: int, col: int) -> bool:
        """Cell is inside the fill target but outside the source selection."""
        target = self.fill_range()
        return target is not None and target.contains(row, col) and not self.is_selected(row, col)


class SelectionEngine:
    def __init__(self, state: SelectionState | None = None) -> None:
        self._state = state or SelectionState()

    @property
    def state(self) -> SelectionState:
        return self._state

    def _set(self, state: SelectionState) -> SelectionState:
        self._state = state
        return state

    def mouse_down(self, row: int, col: int) -> SelectionState:
        coord = SelectionCoord(row, col)
        return self._set(SelectionState(anchor=coord, current=coord, mode=InteractionMode.SELECTING))

    def mouse_enter(self, row: int, col: int) -> SelectionState:
        if self._state.mode is not InteractionMode.SELECTING:
            return self._state
        return self._set(replace(self._state, current=SelectionCoord(row, col)))

    def mouse_up(self) -> SelectionState:
        # Global mouse-up: keeps fill_end so the caller can commit the fill.
        if self._state.mode is InteractionMode.IDLE:
            return self._state
        return self._set(replace(self._state, mode=InteractionMode.IDLE))

    def fill_handle_mouse_down(self) -> SelectionState:
        if not self._state.has_selection:
            return self._state
        return self._set(replace(self._state, mode=InteractionMode.FILLING, fill_end=None))

    def fill_handle_mouse_enter(self, row: int, col: int) -> SelectionState:
        rng = self._state.range
        if self._state.mode is not InteractionMode.FILLING or rng is None:
            return self._state
        if row <= rng.end.row:
            return self._state
        # column pinned to the selection's right edge
        return self._set(replace(self._state, fill_end=SelectionCoord(row, rng.end.col)))

    def extend_to_edge(self, direction: Direction, row_count: int, col_count: int) -> SelectionState:
        """Ctrl+Shift+Arrow: snap ``current`` to the first/last row or column."""
        current = self._state.current
        if current is None:
            return self._state
        if direction is Direction.UP:
            target = SelectionCoord(0, current.col)
        elif direction is Direction.DOWN:
            target = SelectionCoord(max(row_count - 1, 0), current.col)
        elif direction is Direction.LEFT:
            target = SelectionCoord(current.row, 0)
        else:
            target = SelectionCoord(current.row, max(col_count - 1, 0))
        return self._set(replace(self._state, current=target))

    def clear_fill_end(self) -> SelectionState:
        return self._set(replace(self._state, fill_end=None))

    def clear(self) -> SelectionState:
        return self._set(SelectionState())
