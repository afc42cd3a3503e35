from __future__ import annotations

import logging
import time
import zipfile
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from fleetgrid.errors import DateOrderError, GridError
from fleetgrid.excel.reader import MissingColumnsError, SheetHeaderError, normalize_sheet, read_excel_file
from fleetgrid.logging.error_log import ErrorLogBuffer
from fleetgrid.models.config_models import GridConfig
from fleetgrid.models.error_record import ErrorRecord
from fleetgrid.models.import_result import BatchStatsAccumulator, ImportResult
from fleetgrid.models.record import RecordKind
from fleetgrid.services.normalize import FieldParseError, normalize_field
from fleetgrid.services.progress import ProgressTracker
from fleetgrid.services.reconciliation import check_date_order
from fleetgrid.services.store import RecordStore, StoreError

"""Excel -> record store import.

Per sheet:
1. map the header onto the kind's fields (excel.reader)
2. normalize every cell; a row with an unparseable cell or with
   sortie < entree is skipped and written to the error log
3. send the remaining rows through ``create_batch`` in chunks of
   ``create_chunk_size``; a failing chunk is skipped as a whole

A sheet whose header cannot be mapped is skipped entirely. Only an unreadable
workbook raises (RecordImportError).
"""

__all__ = [
    "RecordImportError",
    "import_records",
    "import_sheet_rows",
]

logger = logging.getLogger(__name__)


class RecordImportError(GridError):
    pass


def _normalize_row(kind: RecordKind, raw: dict[str, Any], tz: ZoneInfo) -> dict[str, Any]:
    return {name: normalize_field(kind.field(name), value, tz) for name, value in raw.items()}


def import_sheet_rows(
    kind: RecordKind,
    sheet_name: str,
    rows: list[dict[str, Any]],
    row_numbers: list[int],
    store: RecordStore,
    config: GridConfig,
    error_log: ErrorLogBuffer,
    progress: ProgressTracker | None = None,
) -> ImportResult:
    tz = ZoneInfo(config.timezone)
    start_time = datetime.now(UTC)
    t0 = time.perf_counter()

    valid: list[tuple[int, dict[str, Any]]] = []
    skipped = 0
    for sheet_row, raw in zip(row_numbers, rows):
        try:
            fields = _normalize_row(kind, raw, tz)
            check_date_order(sheet_row, fields)
        except FieldParseError as e:
            skipped += 1
            logger.warning(f"sheet '{sheet_name}' row {sheet_row}: {e}")
            error_log.append(ErrorRecord.create(kind.table, sheet_row, "PARSE_ERROR", str(e)))
            continue
        except DateOrderError as e:
            skipped += 1
            logger.warning(f"sheet '{sheet_name}' row {sheet_row}: {e}")
            error_log.append(ErrorRecord.create(kind.table, sheet_row, "DATE_ORDER", str(e)))
            continue
        valid.append((sheet_row, fields))

    stats = BatchStatsAccumulator()
    created = 0
    chunk = max(config.create_chunk_size, 1)
    for offset in range(0, len(valid), chunk):
        part = valid[offset : offset + chunk]
        b0 = time.perf_counter()
        try:
            records = store.create_batch([fields for _, fields in part])
        except StoreError as e:
            skipped += len(part)
            first_row = part[0][0]
            logger.error(f"sheet '{sheet_name}' rows {first_row}..{part[-1][0]}: {e}")
            error_log.append(ErrorRecord.create(kind.table, first_row, "STORE_ERROR", str(e)))
        else:
            created += len(records)
        finally:
            stats.add_batch_time(time.perf_counter() - b0)
        if progress is not None:
            progress.advance(len(part))
            progress.set_postfix(created=created, skipped=skipped)

    elapsed = time.perf_counter() - t0
    total_batches, avg_batch, p95_batch = stats.get_stats()
    return ImportResult(
        kind=kind.name,
        sheet=sheet_name,
        created_rows=created,
        skipped_rows=skipped,
        start_time=start_time,
        end_time=datetime.now(UTC),
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=created / elapsed if elapsed > 0 else 0.0,
        total_batches=total_batches,
        avg_batch_seconds=avg_batch,
        p95_batch_seconds=p95_batch,
    )


def import_records(
    kind: RecordKind,
    path: Path,
    store: RecordStore,
    config: GridConfig,
    *,
    sheets: Iterable[str] | None = None,
    header_row: int = 0,
    keep_na_strings: list[str] | None = None,
    null_sentinels: set[str] | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> list[ImportResult]:
    """Import every (or the selected) sheet of ``path`` into ``store``."""
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    if not path.exists():
        raise RecordImportError(f"workbook not found: {path}")
    try:
        frames = read_excel_file(path, target_sheets=sheets, keep_na_strings=keep_na_strings)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise RecordImportError(f"cannot read workbook {path}: {e}") from e

    results: list[ImportResult] = []
    for sheet_name, df in frames.items():
        try:
            data = normalize_sheet(df, sheet_name, kind, header_row=header_row, null_sentinels=null_sentinels)
        except (SheetHeaderError, MissingColumnsError) as e:
            logger.error(f"{e}; sheet skipped")
            error_log.append(ErrorRecord.create(kind.table, -1, "SHEET_HEADER", str(e)))
            now = datetime.now(UTC)
            results.append(
                ImportResult(
                    kind=kind.name,
                    sheet=sheet_name,
                    created_rows=0,
                    skipped_rows=max(df.shape[0] - header_row - 1, 0),
                    start_time=now,
                    end_time=now,
                    elapsed_seconds=0.0,
                    throughput_rows_per_sec=0.0,
                    sheet_error=str(e),
                )
            )
            continue

        logger.info(f"sheet '{sheet_name}': {len(data.rows)} row(s) -> {kind.table}")
        with ProgressTracker(len(data.rows)) as progress:
            progress.start_sheet(sheet_name)
            results.append(
                import_sheet_rows(
                    kind, sheet_name, data.rows, data.row_numbers, store, config, error_log, progress
                )
            )
    return results
