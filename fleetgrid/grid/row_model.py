from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import tzinfo

from fleetgrid.grid.viewport import format_cell
from fleetgrid.models.record import Record, RecordKind

"""Visible row model: ordering, search and column filters.

Rows are ordered non-empty first, then empty, each group by id ascending (or
by the kind's manual position, e.g. contact ``ordre``) with pending (not yet
confirmed) rows last. Empty rows always pass every filter so
that blank entry rows stay reachable while searching.
"""

__all__ = [
    "RowCounts",
    "RowFilters",
    "sort_rows",
    "visible_rows",
    "row_counts",
    "facet_values",
]


@dataclass(frozen=True)
class RowCounts:
    total: int  # non-empty rows
    filtered: int  # non-empty rows passing the filters
    is_filtered: bool

    @property
    def label(self) -> str:
        if self.is_filtered:
            return f"{self.filtered} ligne{'s' if self.filtered > 1 else ''} sur {self.total}"
        return f"{self.total} ligne{'s' if self.total > 1 else ''}"


@dataclass(frozen=True)
class RowFilters:
    global_text: str = ""
    columns: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def active(self) -> bool:
        return bool(self.global_text) or any(self.columns.values())

    def with_global(self, text: str) -> RowFilters:
        return RowFilters(global_text=text, columns=self.columns)

    def with_column(self, name: str, values: Iterable[str]) -> RowFilters:
        columns = dict(self.columns)
        selected = tuple(values)
        if selected:
            columns[name] = selected
        else:
            columns.pop(name, None)
        return RowFilters(global_text=self.global_text, columns=columns)


def sort_rows(records: Iterable[Record], kind: RecordKind) -> list[Record]:
    manual = kind.order_by != "id"

    def key(r: Record) -> tuple[bool, bool, int, int]:
        position = r.get(kind.order_by) if manual else None
        # provisional ids are negative, so order pending rows by magnitude
        ident = abs(r.id) if r.pending else r.id
        return (r.is_empty(kind), r.pending, position if position is not None else ident, ident)

    return sorted(records, key=key)


def _matches(record: Record, kind: RecordKind, filters: RowFilters, tz: tzinfo | None) -> bool:
    if filters.global_text:
        needle = filters.global_text.lower()
        haystack = [format_cell(spec, record.get(spec.name), tz) for spec in kind.fields]
        if not any(needle in text.lower() for text in haystack):
            return False
    for name, selected in filters.columns.items():
        if not selected:
            continue
        text = format_cell(kind.field(name), record.get(name), tz)
        if not any(value in text for value in selected):
            return False
    return True


def visible_rows(
    records: Iterable[Record],
    kind: RecordKind,
    filters: RowFilters | None = None,
    tz: tzinfo | None = None,
) -> list[Record]:
    rows = sort_rows(records, kind)
    if filters is None or not filters.active:
        return rows
    return [r for r in rows if r.is_empty(kind) or _matches(r, kind, filters, tz)]


def row_counts(records: Sequence[Record], rows: Sequence[Record], kind: RecordKind, filters: RowFilters) -> RowCounts:
    total = sum(1 for r in records if not r.is_empty(kind))
    filtered = sum(1 for r in rows if not r.is_empty(kind))
    return RowCounts(total=total, filtered=filtered, is_filtered=filters.active)


def facet_values(records: Iterable[Record], kind: RecordKind, column: str, tz: tzinfo | None = None) -> list[str]:
    """Sorted distinct display strings of ``column`` (column filter menu)."""
    spec = kind.field(column)
    values = {format_cell(spec, r.get(column), tz) for r in records if r.get(column) is not None}
    values.discard("")
    return sorted(values)
