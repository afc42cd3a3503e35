from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from fleetgrid.grid.selection import SelectionRange, SelectionState
from fleetgrid.models.record import FieldSpec, Record

"""Fill-down planning.

The selected block tiles downward cyclically: target row ``t`` copies source
row ``start + ((t - start) mod height)``. Raw stored values are copied, not
their display text.
"""

__all__ = [
    "FillRange",
    "fill_range_from",
    "plan_fill",
]


@dataclass(frozen=True)
class FillRange:
    source: SelectionRange
    target_end: int  # last row index receiving values

    def source_row_for(self, target_row: int) -> int:
        start = self.source.start.row
        return start + ((target_row - start) % self.source.height)

    def target_rows(self) -> range:
        return range(self.source.end.row + 1, self.target_end + 1)


def fill_range_from(state: SelectionState) -> FillRange | None:
    """FillRange for a snapshot whose fill target moved below the source."""
    source = state.range
    if source is None or state.fill_end is None or state.fill_end.row <= source.end.row:
        return None
    return FillRange(source=source, target_end=state.fill_end.row)


def plan_fill(
    fill: FillRange | None,
    rows: Sequence[Record],
    columns: Sequence[FieldSpec],
) -> list[dict[str, Any]]:
    """Per-row raw value maps (``{"id": ..., field: value}``) for the fill targets.

    Target rows past the end of ``rows`` are ignored.
    """
    if fill is None:
        return []
    out: list[dict[str, Any]] = []
    last_row = min(fill.target_end, len(rows) - 1)
    for target in range(fill.source.end.row + 1, last_row + 1):
        src = rows[fill.source_row_for(target)]
        change: dict[str, Any] = {"id": rows[target].id}
        for col in fill.source.cols():
            if col >= len(columns):
                break
            name = columns[col].name
            change[name] = src.get(name)
        out.append(change)
    return out
