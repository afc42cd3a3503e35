from __future__ import annotations

import os
from pathlib import Path

import pytest

from fleetgrid.db.connection import load_env_file, resolve_dsn
from fleetgrid.models.config_models import DatabaseConfig

PG_VARS = ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in PG_VARS:
        monkeypatch.delenv(name, raising=False)


def test_dsn_from_config_fallback():
    cfg = DatabaseConfig(host="db", port=5433, user="grid", password="pw", database="fleet")
    assert resolve_dsn(cfg) == "host=db port=5433 user=grid dbname=fleet password=pw"


def test_pg_vars_override_config(monkeypatch):
    monkeypatch.setenv("PGHOST", "envhost")
    monkeypatch.setenv("PGDATABASE", "envdb")
    dsn = resolve_dsn(DatabaseConfig(host="db", user="grid"))
    assert dsn == "host=envhost port=5432 user=grid dbname=envdb"


def test_database_url_wins(monkeypatch):
    monkeypatch.setenv("PGHOST", "envhost")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/d")
    assert resolve_dsn(DatabaseConfig(dsn="postgresql://cfg")) == "postgresql://u@h/d"


def test_env_file_overrides_process_env(temp_workdir: Path, monkeypatch):
    monkeypatch.setenv("PGHOST", "from-process")
    (temp_workdir / ".env").write_text("PGHOST=from-dotenv\n", encoding="utf-8")
    assert load_env_file(Path(".env")) is True
    assert os.environ["PGHOST"] == "from-dotenv"


def test_missing_env_file(temp_workdir: Path):
    assert load_env_file(Path(".env")) is False
