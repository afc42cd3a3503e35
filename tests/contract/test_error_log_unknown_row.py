from __future__ import annotations

import json
from pathlib import Path

import jsonschema

from fleetgrid.services.notices import NoticeBoard

"""row は不明時 -1、楽観的作成中の行は負の仮 ID をそのまま記録する。"""

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "fleetgrid" / "contracts" / "error_log_schema.json"


def test_notice_without_row_logs_minus_one(error_log):
    board = NoticeBoard("table_php", error_log)
    board.show("Erreur de chargement", "timeout", error_type="STORE_FETCH")
    rec = error_log.records[0]
    assert rec.row == -1
    jsonschema.validate(json.loads(rec.to_json_line()), json.loads(SCHEMA_PATH.read_text(encoding="utf-8")))


def test_provisional_row_ids_are_valid(error_log):
    board = NoticeBoard("table_php", error_log)
    board.show("Erreur de création", "refused", row_id=-3, error_type="STORE_CREATE")
    data = json.loads(error_log.records[0].to_json_line())
    assert data["row"] == -3
    jsonschema.validate(data, json.loads(SCHEMA_PATH.read_text(encoding="utf-8")))
