from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any

from fleetgrid.models.record import FieldSpec, Record, RecordKind

"""Virtual windowing and per-row presentation data.

- compute_window(): contiguous slice of rows to render for a scroll position
  (fixed estimated row height plus overscan), with the spacer paddings
- group_position(): adjacency grouping of rows sharing equipment / site / week
- format_cell(): display text of a cell (dates always DD/MM/YYYY HH:MM)
"""

__all__ = [
    "DEFAULT_ROW_HEIGHT",
    "DEFAULT_OVERSCAN",
    "VirtualWindow",
    "GroupPosition",
    "compute_window",
    "group_position",
    "format_cell",
    "row_tone",
]

DEFAULT_ROW_HEIGHT = 52
DEFAULT_OVERSCAN = 10

# validation_rdv -> row background
_STATUS_TONES = {
    "Validé PHP": "#68d67d",
    "Validé Pré-Op/Tactique": "#68a4d8",
    "En attente": "#ffc000",
    "Refusé": "#da7c87",
}


@dataclass(frozen=True)
class VirtualWindow:
    start: int  # first rendered index (inclusive)
    end: int  # last rendered index (exclusive)
    padding_top: int
    padding_bottom: int
    total_size: int

    @property
    def indices(self) -> range:
        return range(self.start, self.end)

    def __len__(self) -> int:
        return self.end - self.start


def compute_window(
    scroll_offset: float,
    viewport_height: float,
    row_count: int,
    row_height: int = DEFAULT_ROW_HEIGHT,
    overscan: int = DEFAULT_OVERSCAN,
) -> VirtualWindow:
    total = row_count * row_height
    if row_count <= 0:
        return VirtualWindow(0, 0, 0, 0, 0)

    offset = min(max(scroll_offset, 0.0), max(total - viewport_height, 0.0))
    first_visible = min(int(offset // row_height), row_count - 1)
    last_visible = min(int(math.ceil((offset + max(viewport_height, 0.0)) / row_height)), row_count)
    last_visible = max(last_visible, first_visible + 1)

    start = max(first_visible - overscan, 0)
    end = min(last_visible + overscan, row_count)
    return VirtualWindow(
        start=start,
        end=end,
        padding_top=start * row_height,
        padding_bottom=total - end * row_height,
        total_size=total,
    )


class GroupPosition(Enum):
    NONE = "none"
    START = "start"
    MIDDLE = "middle"
    END = "end"


def _same_group(kind: RecordKind, a: Record, b: Record) -> bool:
    if a.is_empty(kind) or b.is_empty(kind):
        return False
    if a.get("engin") != b.get("engin") or a.get("site") != b.get("site"):
        return False
    if a.get("semaine") == b.get("semaine"):
        return True
    entree_a, entree_b = a.get("entree"), b.get("entree")
    return entree_a is not None and entree_b is not None and entree_a == entree_b


def group_position(rows: Sequence[Record], index: int, kind: RecordKind) -> GroupPosition:
    """Position of ``rows[index]`` within its run of grouped neighbours.

    ``rows`` is the full filtered row list, not just the rendered window.
    """
    if not (kind.has_field("engin") and kind.has_field("site")):
        return GroupPosition.NONE
    current = rows[index]
    with_prev = index > 0 and _same_group(kind, current, rows[index - 1])
    with_next = index < len(rows) - 1 and _same_group(kind, current, rows[index + 1])
    if with_prev and with_next:
        return GroupPosition.MIDDLE
    if with_prev:
        return GroupPosition.END
    if with_next:
        return GroupPosition.START
    return GroupPosition.NONE


def format_cell(spec: FieldSpec, value: Any, tz: tzinfo | None = None) -> str:
    """Display text of a cell; aware datetimes are shown in ``tz`` when given."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.strftime("%d/%m/%Y %H:%M")
    return str(value)


def row_tone(record: Record) -> str | None:
    """Background colour keyed by the row's validation status, if any."""
    return _STATUS_TONES.get(record.get("validation_rdv"))
