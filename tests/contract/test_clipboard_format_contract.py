from __future__ import annotations

from datetime import UTC, datetime

from fleetgrid.grid.clipboard import parse_clipboard, serialize_range
from fleetgrid.grid.selection import SelectionCoord, SelectionRange
from fleetgrid.models.record import MAINTENANCE, Record

"""Clipboard interchange contract: TAB between cells, LF between rows,
no trailing newline, dates as DD/MM/YYYY HH:MM, null as empty cell."""

T0 = datetime(2025, 1, 6, 8, 0, tzinfo=UTC)


def _rows() -> list[Record]:
    return [
        Record(
            id=1,
            values={"flotte": "TGV", "engin": "101", "site": None, "semaine": "02", "entree": datetime(2025, 1, 6, 7, 0, tzinfo=UTC)},
            created_at=T0,
        ),
        Record(id=2, values={"flotte": "TER", "engin": "202", "site": "Lyon", "semaine": "15/2027"}, created_at=T0),
    ]


def test_serialized_block_layout():
    rng = SelectionRange(SelectionCoord(0, 0), SelectionCoord(1, 4))
    text = serialize_range(_rows(), MAINTENANCE.columns, rng)
    assert text == "TGV\t101\t\t02\t06/01/2025 07:00\nTER\t202\tLyon\t15/2027\t"
    assert not text.endswith("\n")


def test_spreadsheet_clipboard_is_accepted():
    # Excel / LibreOffice put CRLF line ends and a trailing newline on the clipboard
    text = "TGV\t101\r\nTER\t202\r\n"
    assert parse_clipboard(text) == [["TGV", "101"], ["TER", "202"]]


def test_copy_then_parse_keeps_cell_grid():
    rng = SelectionRange(SelectionCoord(0, 0), SelectionCoord(1, 4))
    cells = parse_clipboard(serialize_range(_rows(), MAINTENANCE.columns, rng))
    assert [len(r) for r in cells] == [5, 5]
    assert cells[1][3] == "15/2027"
