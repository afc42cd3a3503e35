from __future__ import annotations

from contextlib import nullcontext
from pathlib import Path
from unittest.mock import MagicMock, patch

import pandas as pd
import psycopg2
import pytest

from fleetgrid.cli.__main__ import main as cli_main
from fleetgrid.services.store import InMemoryRecordStore


@pytest.fixture()
def workbook(temp_workdir: Path) -> Path:
    path = temp_workdir / "data" / "planning.xlsx"
    pd.DataFrame(
        {
            "Flotte": ["TGV", "TER", "RER"],
            "Engin": ["101", "202", "303"],
            "Code opération": ["VL", "VG", "ATS"],
        }
    ).to_excel(path, sheet_name="PHP", index=False)
    return path


@pytest.fixture()
def mock_mode(monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")


def test_nothing_to_do(temp_workdir: Path, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 0
    assert "nothing to do" in out
    assert "config/grid.yml not found, using defaults" in out


def test_explicit_missing_config_is_fatal(temp_workdir: Path, capsys):
    code = cli_main(["--config", "config/missing.yml", "--import-xlsx", "x.xlsx"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_import_in_mock_mode(workbook: Path, mock_mode, capsys):
    code = cli_main(["--import-xlsx", str(workbook)])
    out = capsys.readouterr().out
    assert code == 0
    assert "mode=mock table=table_php" in out
    assert "SUMMARY sheets=1 rows=3 skipped=0" in out


def test_connection_failure_falls_back_to_mock(workbook: Path, capsys):
    with patch("fleetgrid.cli.__main__.db_connection", side_effect=psycopg2.OperationalError("refused")):
        code = cli_main(["--import-xlsx", str(workbook)])
    out = capsys.readouterr().out
    assert code == 0
    assert "DB connection failed -> fallback to mock mode" in out
    assert "mode=mock" in out


def test_live_mode_uses_postgres_store(workbook: Path, capsys):
    conn = MagicMock()
    stores: list[InMemoryRecordStore] = []

    def fake_store(kind, c):
        assert c is conn
        stores.append(InMemoryRecordStore(kind))
        return stores[-1]

    with patch("fleetgrid.cli.__main__.db_connection", return_value=nullcontext(conn)), patch(
        "fleetgrid.cli.__main__.PostgresRecordStore", side_effect=fake_store
    ), patch("fleetgrid.cli.__main__.create_schema") as schema:
        code = cli_main(["--import-xlsx", str(workbook), "--init-schema"])

    out = capsys.readouterr().out
    assert code == 0
    assert "mode=live" in out
    schema.assert_called_once_with(conn)
    assert len(stores[0].fetch_all()) == 3


def test_debug_flag(temp_workdir: Path, capsys):
    code = cli_main(["--debug"])
    assert code == 0
    assert "DEBUG debug mode enabled" in capsys.readouterr().out


def test_inspect_data(workbook: Path, capsys):
    code = cli_main(["--inspect-data", "--import-xlsx", str(workbook)])
    out = capsys.readouterr().out
    assert code == 0
    assert "FILE: planning.xlsx" in out
    assert "SHEET: PHP cols=['flotte', 'engin', 'code_operation']" in out
    assert "rows=3" in out


def test_inspect_data_missing_file(temp_workdir: Path, capsys):
    assert cli_main(["--inspect-data", "--import-xlsx", "nope.xlsx"]) == 1


def test_contacts_kind_and_sheet_filter(temp_workdir: Path, mock_mode, capsys):
    path = temp_workdir / "data" / "contacts.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame({"Site": ["Lyon"], "Nom": ["Dupont"]}).to_excel(writer, sheet_name="Contacts", index=False)
        pd.DataFrame({"Site": ["Paris"], "Nom": ["Martin"]}).to_excel(writer, sheet_name="Archive", index=False)
    code = cli_main(["--kind", "contacts", "--import-xlsx", str(path), "--sheet", "Contacts"])
    out = capsys.readouterr().out
    assert code == 0
    assert "table=table_contacts" in out
    assert "SUMMARY sheets=1 rows=1" in out


def test_ensure_blank_rows_in_mock_mode(temp_workdir: Path, mock_mode, capsys):
    (temp_workdir / "config" / "grid.yml").write_text(
        "supply_debounce_seconds: 0.01\nsupply_cooldown_seconds: 0.01\n", encoding="utf-8"
    )
    code = cli_main(["--ensure-blank-rows"])
    out = capsys.readouterr().out
    assert code == 0
    assert "table_php: 5 blank row(s) (floor=5)" in out
