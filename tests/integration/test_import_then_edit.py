from __future__ import annotations

from pathlib import Path

import pandas as pd

from fleetgrid.cli.__main__ import main
from fleetgrid.grid.clipboard import InMemoryClipboard
from fleetgrid.models.config_models import GridConfig
from fleetgrid.models.record import MAINTENANCE
from fleetgrid.services.grid_session import GridSession
from fleetgrid.services.importer import import_records
from fleetgrid.services.scheduler import ManualClock
from fleetgrid.services.store import InMemoryRecordStore


def _workbook(path: Path) -> Path:
    df = pd.DataFrame(
        {
            "Flotte": ["TGV", "TER", "RER"],
            "Engin": ["101", "202", "303"],
            "Code opération": ["VL", "VG", "ATS"],
            "Entrée": ["06/01/2025 08:00", "07/01/2025 08:00", "08/01/2025 08:00"],
            "Validation RDV": ["Validé PHP", "", "En attente"],
        }
    )
    df.to_excel(path, sheet_name="PHP", index=False)
    return path


def test_imported_rows_are_editable_in_a_session(temp_workdir: Path, error_log):
    clock = ManualClock()
    store = InMemoryRecordStore(MAINTENANCE, clock=clock)
    results = import_records(MAINTENANCE, _workbook(temp_workdir / "data" / "php.xlsx"), store, GridConfig(), error_log=error_log)
    assert [r.created_rows for r in results] == [3]

    session = GridSession(MAINTENANCE, store, GridConfig(), clipboard=InMemoryClipboard(), clock=clock, error_log=error_log)
    session.load()
    session.advance(2.0)
    assert sum(r.is_empty(MAINTENANCE) for r in session.records) == 5
    assert [r.get("flotte") for r in session.rows[:3]] == ["TGV", "TER", "RER"]

    session.mouse_down(0, 0)
    session.mouse_up()
    assert session.copy() == "TGV"
    assert session.clipboard.read() == "TGV"
    assert error_log.records == []


def test_cli_import_in_mock_mode(temp_workdir: Path, monkeypatch, capsys):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    path = _workbook(temp_workdir / "data" / "php.xlsx")
    assert main(["--import-xlsx", str(path), "--ensure-blank-rows", "--config", "config/grid.yml"]) == 1

    (temp_workdir / "config" / "grid.yml").write_text(
        "supply_debounce_seconds: 0.01\nsupply_cooldown_seconds: 0.01\n", encoding="utf-8"
    )
    assert main(["--import-xlsx", str(path), "--ensure-blank-rows"]) == 0
    out = capsys.readouterr().out
    assert "SUMMARY sheets=1 rows=3 skipped=0" in out
    assert "table_php: 5 blank row(s) (floor=5)" in out
