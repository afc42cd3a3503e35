from __future__ import annotations

import argparse
import logging
import os
import sys
from contextlib import ExitStack
from pathlib import Path

import psycopg2

from fleetgrid.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from fleetgrid.db.connection import db_connection, load_env_file
from fleetgrid.db.postgres_store import PostgresRecordStore, create_schema
from fleetgrid.logging.error_log import ErrorLogBuffer
from fleetgrid.logging.init import log_summary, setup_logging
from fleetgrid.models.config_models import GridConfig
from fleetgrid.models.record import KINDS, RecordKind
from fleetgrid.services.grid_session import GridSession
from fleetgrid.services.importer import RecordImportError, import_records
from fleetgrid.services.store import InMemoryRecordStore, RecordStore, StoreError
from fleetgrid.services.summary import render_summary_line

"""CLI entrypoint.

- Load .env (override) and config/grid.yml
- --import-xlsx: import a workbook into the maintenance / contacts table
- --ensure-blank-rows: re-establish the blank row floor of the table
- --inspect-data: print mapped headers and the first rows, then exit

Exit codes: 0 success, 2 partial failure (rows or sheets skipped), 1 fatal.
Without a reachable database (or with DISABLE_DB_CONNECT=1) the run falls back
to an in-memory store (mock mode).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="fleetgrid", description="Fleet maintenance grid: import & maintenance tasks")
    p.add_argument("--config", type=Path, default=None, help=f"Config YAML (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--kind", choices=sorted(KINDS), default="maintenance", help="Record kind / target table")
    p.add_argument("--import-xlsx", type=Path, default=None, metavar="PATH", help="Workbook to import")
    p.add_argument("--sheet", action="append", default=None, help="Restrict import to this sheet (repeatable)")
    p.add_argument("--header-row", type=int, default=1, help="1-based header row of the sheets (default: 1)")
    p.add_argument("--inspect-data", action="store_true", help="Print sheet headers & first rows then exit")
    p.add_argument("--ensure-blank-rows", action="store_true", help="Top up / trim the trailing blank rows")
    p.add_argument("--init-schema", action="store_true", help="Create the tables if they do not exist")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _load_grid_config(path: Path | None) -> GridConfig:
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.info(f"config: {DEFAULT_CONFIG_PATH} not found, using defaults")
            return GridConfig()
        path = DEFAULT_CONFIG_PATH
    return load_config(path)


def _inspect_data(path: Path | None, kind: RecordKind, sheets: list[str] | None, header_row: int) -> int:
    from fleetgrid.excel.reader import MissingColumnsError, SheetHeaderError, normalize_sheet, read_excel_file

    if path is None or not path.exists():
        print(f"inspect: workbook not found: {path}")
        return EXIT_FATAL
    print(f"FILE: {path.name}")
    for sname, df in read_excel_file(path, target_sheets=sheets).items():
        try:
            sd = normalize_sheet(df, sname, kind, header_row=header_row)
        except (SheetHeaderError, MissingColumnsError) as e:
            print(f"  SHEET: {sname} error={e}")
            continue
        print(f"  SHEET: {sname} cols={sd.columns} ignored={sd.ignored_columns} rows={len(sd.rows)}")
        safe_rows = [
            {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in r.items()} for r in sd.rows[:3]
        ]
        print("    sample_rows=", safe_rows)
    return EXIT_SUCCESS_ALL


def _ensure_blank_rows(kind: RecordKind, store: RecordStore, cfg: GridConfig, error_log: ErrorLogBuffer) -> int:
    session = GridSession(kind, store, cfg, error_log=error_log)
    session.load()
    if not session.row_supply.enabled:
        logger.info(f"{kind.table}: no blank row floor for this kind")
        return EXIT_SUCCESS_ALL
    session.row_supply.reassert()
    idle = session.scheduler.run_until_idle(max_seconds=cfg.empty_row_grace_seconds + 5.0)
    empty = sum(1 for r in session.records if r.is_empty(kind))
    logger.info(f"{kind.table}: {empty} blank row(s) (floor={cfg.empty_row_floor})")
    if len(session.notices) or not idle:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _run(args: argparse.Namespace, cfg: GridConfig, kind: RecordKind, store: RecordStore) -> int:
    error_log = ErrorLogBuffer()
    exit_code = EXIT_SUCCESS_ALL
    try:
        if args.import_xlsx is not None:
            try:
                results = import_records(
                    kind,
                    args.import_xlsx,
                    store,
                    cfg,
                    sheets=args.sheet,
                    header_row=args.header_row - 1,
                    error_log=error_log,
                )
            except RecordImportError as e:
                logger.error(f"import: {e}")
                return EXIT_FATAL
            for r in results:
                logger.info(
                    f"sheet={r.sheet} created={r.created_rows} skipped={r.skipped_rows} "
                    f"batches={r.total_batches} p95_batch_sec={r.p95_batch_seconds:.3f}"
                )
            # log_summary adds the "SUMMARY " prefix itself
            log_summary(render_summary_line(results)[len("SUMMARY ") :])
            if any(r.has_failures for r in results):
                exit_code = EXIT_PARTIAL_FAILURE

        if args.ensure_blank_rows:
            try:
                code = _ensure_blank_rows(kind, store, cfg, error_log)
            except StoreError as e:
                logger.error(f"blank rows: {e}")
                return EXIT_FATAL
            exit_code = max(exit_code, code)
        return exit_code
    finally:
        written = error_log.flush()
        if written is not None:
            logger.info(f"error log: {written}")


def main(argv: list[str] | None = None) -> int:
    app_logger = setup_logging()

    # 空リスト [] のときに sys.argv[1:] (pytest の引数) を読まないよう None のみ判定
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in app_logger.handlers:
            h.setLevel("DEBUG")
        app_logger.setLevel("DEBUG")
        app_logger.debug("debug mode enabled")

    try:
        cfg = _load_grid_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    kind = KINDS[args.kind]
    if args.inspect_data:
        return _inspect_data(args.import_xlsx, kind, args.sheet, args.header_row - 1)
    if args.import_xlsx is None and not args.ensure_blank_rows and not args.init_schema:
        logger.info("nothing to do (see --help)")
        return EXIT_SUCCESS_ALL

    with ExitStack() as stack:
        store: RecordStore
        mode = "mock"
        if os.getenv("DISABLE_DB_CONNECT") == "1":
            logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
            store = InMemoryRecordStore(kind)
        else:
            try:
                conn = stack.enter_context(db_connection(cfg.database))
            except psycopg2.Error as e:
                logger.info(f"DB connection failed -> fallback to mock mode: {e}")
                store = InMemoryRecordStore(kind)
            else:
                mode = "live"
                if args.init_schema:
                    create_schema(conn)
                    logger.info("schema: tables ensured")
                store = PostgresRecordStore(kind, conn)
        logger.info(f"mode={mode} table={kind.table}")
        return _run(args, cfg, kind, store)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
