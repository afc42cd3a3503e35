# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable, Iterator, Mapping, Sequence
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from fleetgrid.grid.clipboard import InMemoryClipboard
from fleetgrid.logging.error_log import ErrorLogBuffer
from fleetgrid.logging.init import reset_logging
from fleetgrid.models.config_models import GridConfig
from fleetgrid.models.record import MAINTENANCE, RecordKind, blank_values
from fleetgrid.services.grid_session import GridSession
from fleetgrid.services.scheduler import ManualClock
from fleetgrid.services.store import InMemoryRecordStore

TODAY = date(2025, 1, 6)


@pytest.fixture(autouse=True)
def _fresh_logging() -> Iterator[None]:
    # ハンドラは setup 時点の sys.stdout を掴むので毎テスト作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Iterator[Path]:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """empty_row_floor: 5
supply_debounce_seconds: 1.0
empty_row_grace_seconds: 5.0
timezone: Europe/Paris
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "grid.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def error_log(tmp_path: Path) -> ErrorLogBuffer:
    return ErrorLogBuffer(logs_dir=tmp_path / "logs")


@pytest.fixture()
def maintenance_row() -> Callable[..., dict[str, Any]]:
    def build(**values: Any) -> dict[str, Any]:
        row: dict[str, Any] = {"flotte": "TGV", "engin": "101", "code_operation": "VL"}
        row.update(values)
        return row

    return build


@pytest.fixture()
def make_session(clock: ManualClock, error_log: ErrorLogBuffer) -> Callable[..., GridSession]:
    """Loaded session over an in-memory store sharing the manual clock."""

    def factory(
        kind: RecordKind = MAINTENANCE,
        rows: Sequence[Mapping[str, Any]] = (),
        blanks: int = 0,
        config: GridConfig | None = None,
        clipboard_text: str = "",
    ) -> GridSession:
        store = InMemoryRecordStore(kind, clock=clock)
        store.seed(rows)
        store.seed([blank_values(kind) for _ in range(blanks)])
        session = GridSession(
            kind,
            store,
            config or GridConfig(),
            clipboard=InMemoryClipboard(clipboard_text),
            clock=clock,
            error_log=error_log,
            today=lambda: TODAY,
        )
        session.load()
        return session

    return factory
