from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Protocol

from fleetgrid.grid.selection import SelectionCoord, SelectionRange
from fleetgrid.models.record import FieldSpec, Record

"""Clipboard bridge: tab/newline text <-> cell rectangles.

Interchange format:
- cells joined by TAB, rows joined by "\\n", no trailing newline
- null -> "", datetimes as DD/MM/YYYY HH:MM
- a cell containing TAB, LF or CR, or starting with a double quote, is written
  quoted with inner quotes doubled (same convention spreadsheets put on the
  clipboard); plain cells are written as-is

The system clipboard is an injected ``ClipboardPort``.
"""

__all__ = [
    "ClipboardPort",
    "InMemoryClipboard",
    "PendingPaste",
    "PasteOutcome",
    "DISPLAY_DATE_FORMAT",
    "format_clipboard_value",
    "serialize_range",
    "parse_clipboard",
    "missing_row_count",
    "plan_paste",
    "plan_delete",
]

DISPLAY_DATE_FORMAT = "%d/%m/%Y %H:%M"


class ClipboardPort(Protocol):
    def read(self) -> str: ...

    def write(self, text: str) -> None: ...


class InMemoryClipboard:
    def __init__(self, text: str = "") -> None:
        self.text = text

    def read(self) -> str:
        return self.text

    def write(self, text: str) -> None:
        self.text = text


def format_clipboard_value(value: Any, tz: tzinfo | None = None) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.strftime(DISPLAY_DATE_FORMAT)
    return str(value)


def _quote_cell(text: str) -> str:
    if "\t" in text or "\n" in text or "\r" in text or text.startswith('"'):
        return '"' + text.replace('"', '""') + '"'
    return text


def serialize_range(
    rows: Sequence[Record],
    columns: Sequence[FieldSpec],
    rng: SelectionRange,
    tz: tzinfo | None = None,
) -> str:
    lines = []
    for r in rng.rows():
        record = rows[r]
        cells = [
            _quote_cell(format_clipboard_value(record.get(columns[c].name), tz))
            for c in rng.cols()
            if c < len(columns)
        ]
        lines.append("\t".join(cells))
    return "\n".join(lines)


def _read_quoted(text: str, start: int) -> tuple[str, int] | None:
    """Decode the quoted cell opening at ``start``.

    Returns (value, index after the closing quote), or None when the cell is
    not well formed: no closing quote, or the closing quote is not followed by
    TAB, a line break or the end of the text.
    """
    out = []
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch != '"':
            out.append(ch)
            i += 1
            continue
        if text.startswith('""', i):
            out.append('"')
            i += 2
            continue
        end = i + 1
        if end == n or text[end] in "\t\n" or text.startswith("\r\n", end):
            return "".join(out), end
        return None
    return None


def parse_clipboard(text: str) -> list[list[str]]:
    """Parse clipboard text into rows of cells; blank lines are discarded.

    Rows split on LF (CRLF accepted), cells on TAB. Only well formed quoted
    cells are decoded; anything else, stray quotes included, is kept literally.
    """
    rows: list[list[str]] = []
    cells: list[str] = []
    i = 0
    n = len(text)
    while True:
        quoted = _read_quoted(text, i) if text.startswith('"', i) else None
        if quoted is not None:
            cell, i = quoted
        else:
            j = i
            while j < n and text[j] not in "\t\n":
                j += 1
            cell = text[i:j]
            if cell.endswith("\r") and (j == n or text[j] == "\n"):
                cell = cell[:-1]
            i = j
        cells.append(cell)
        if i >= n:
            rows.append(cells)
            break
        if text[i] == "\t":
            i += 1
            continue
        i += 2 if text.startswith("\r\n", i) else 1
        rows.append(cells)
        cells = []
        if i >= n:
            break
    return [r for r in rows if "".join(r).strip()]


@dataclass(frozen=True)
class PendingPaste:
    """Paste payload waiting for enough confirmed rows."""
    cells: tuple[tuple[str, ...], ...]
    start: SelectionCoord

    @classmethod
    def of(cls, cells: Sequence[Sequence[str]], start: SelectionCoord) -> PendingPaste:
        return cls(cells=tuple(tuple(r) for r in cells), start=start)

    @property
    def height(self) -> int:
        return len(self.cells)


@dataclass(frozen=True)
class PasteOutcome:
    """Either ``changes`` ready for one batch call, or ``waiting`` for rows."""
    changes: list[dict[str, Any]]
    waiting: bool = False


def missing_row_count(start_row: int, pasted_rows: int, row_count: int) -> int:
    return max(0, start_row + pasted_rows - row_count)


def plan_paste(pending: PendingPaste, rows: Sequence[Record], columns: Sequence[FieldSpec]) -> PasteOutcome:
    if missing_row_count(pending.start.row, pending.height, len(rows)) > 0:
        return PasteOutcome(changes=[], waiting=True)
    targets = rows[pending.start.row : pending.start.row + pending.height]
    if any(r.pending for r in targets):
        return PasteOutcome(changes=[], waiting=True)

    changes: list[dict[str, Any]] = []
    for record, line in zip(targets, pending.cells):
        change: dict[str, Any] = {"id": record.id}
        for offset, raw in enumerate(line):
            col = pending.start.col + offset
            if col >= len(columns):
                break  # 列数超過は無視
            change[columns[col].name] = None if not raw.strip() else raw
        if len(change) > 1:
            changes.append(change)
    return PasteOutcome(changes=changes)


def plan_delete(rng: SelectionRange, rows: Sequence[Record], columns: Sequence[FieldSpec]) -> list[dict[str, Any]]:
    """Blank every selected cell: one ``{"id", field: ""}`` entry per cell."""
    out: list[dict[str, Any]] = []
    for r in rng.rows():
        if r >= len(rows):
            break
        for c in rng.cols():
            if c >= len(columns):
                break
            out.append({"id": rows[r].id, columns[c].name: ""})
    return out
