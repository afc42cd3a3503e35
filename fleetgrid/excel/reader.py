from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from fleetgrid.models.record import FieldType, RecordKind

"""Excel reader for bulk record import.

- The header row (first row by default) holds grid labels ("Entrée",
  "Code opération", ...) or field names ("entree", "code_operation");
  matching is case-insensitive
- Rows that are entirely empty are skipped
- Unknown columns are ignored (logged); missing required columns (the
  non-nullable text fields of the kind) raise MissingColumnsError

Values are returned raw (pandas Timestamps converted to datetime, NaN to
None). Field normalization happens in the importer.
"""

__all__ = [
    "SheetHeaderError",
    "MissingColumnsError",
    "SheetData",
    "read_excel_file",
    "normalize_sheet",
    "required_fields",
]

logger = logging.getLogger(__name__)


class SheetHeaderError(Exception):
    """Raised when the header row is missing or has no recognizable column."""


class MissingColumnsError(Exception):
    """Raised when required columns are missing from the sheet header."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]  # field names, in sheet order
    rows: list[dict[str, Any]]  # field name -> raw value
    row_numbers: list[int] = field(default_factory=list)  # 1-based Excel row of each entry
    ignored_columns: list[str] = field(default_factory=list)


def read_excel_file(
    path: Path, target_sheets: Iterable[str] | None = None, keep_na_strings: list[str] | None = None
) -> dict[str, pd.DataFrame]:
    """Read an Excel file returning raw DataFrames keyed by sheet name.

    Parameters
    ----------
    path: Excel ファイルパス
    target_sheets: 対象シート制限 (None なら全シート)
    keep_na_strings: pandas の既定 NaN 変換から除外する文字列 (例: ['NA'])
    """
    import pandas._libs.parsers as parsers

    if keep_na_strings:
        na_values = list(parsers.STR_NA_VALUES - set(keep_na_strings))
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True

    wanted = set(target_sheets) if target_sheets is not None else None
    dfs: dict[str, pd.DataFrame] = {}
    with pd.ExcelFile(path) as xls:
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            # ヘッダなしで生読み (header_row は normalize_sheet で適用)
            dfs[str(name)] = xls.parse(name, header=None, keep_default_na=keep_default_na, na_values=na_values)
    return dfs


def required_fields(kind: RecordKind) -> set[str]:
    return {spec.name for spec in kind.fields if spec.type is FieldType.TEXT}


def _header_index(kind: RecordKind) -> dict[str, str]:
    index: dict[str, str] = {}
    for spec in kind.fields:
        index[spec.name.casefold()] = spec.name
        index[spec.label.casefold()] = spec.name
    return index


def _cell(val: Any) -> Any:
    if val is None:
        return None
    if isinstance(val, pd.Timestamp):
        return None if pd.isna(val) else val.to_pydatetime()
    if not isinstance(val, str) and pd.isna(val):
        return None
    if isinstance(val, np.generic):
        return val.item()
    return val


def normalize_sheet(
    df: pd.DataFrame,
    sheet_name: str,
    kind: RecordKind,
    header_row: int = 0,
    null_sentinels: set[str] | None = None,
) -> SheetData:
    """Map a raw DataFrame onto ``kind`` fields using ``header_row`` as header."""
    if df.shape[0] <= header_row:
        raise SheetHeaderError(f"sheet '{sheet_name}' has no header row {header_row + 1}")

    lookup = _header_index(kind)
    header = [str(c).strip() if not pd.isna(c) else "" for c in df.iloc[header_row].tolist()]
    positions: list[tuple[int, str]] = []
    ignored: list[str] = []
    for pos, label in enumerate(header):
        name = lookup.get(label.casefold())
        if name is None:
            if label:
                ignored.append(label)
            continue
        positions.append((pos, name))
    if not positions:
        raise SheetHeaderError(f"sheet '{sheet_name}' header has no known column: {header}")
    if ignored:
        logger.info(f"sheet '{sheet_name}': ignoring columns {ignored}")

    columns = [name for _, name in positions]
    missing = required_fields(kind) - set(columns)
    if missing:
        raise MissingColumnsError(f"sheet '{sheet_name}' missing columns: {sorted(missing)}")

    sentinels = {s.strip().upper() for s in null_sentinels} if null_sentinels else set()
    rows: list[dict[str, Any]] = []
    row_numbers: list[int] = []
    for offset, raw in enumerate(df.iloc[header_row + 1 :].itertuples(index=False, name=None)):
        values = list(raw)
        row: dict[str, Any] = {}
        for pos, name in positions:
            val = _cell(values[pos]) if pos < len(values) else None
            if isinstance(val, str):
                stripped = val.strip()
                # NULL サニタイズ
                if stripped == "" or stripped.upper() in sentinels:
                    val = None
            row[name] = val
        if all(v is None for v in row.values()):
            continue
        rows.append(row)
        row_numbers.append(header_row + offset + 2)

    return SheetData(
        sheet_name=sheet_name,
        columns=columns,
        rows=rows,
        row_numbers=row_numbers,
        ignored_columns=ignored,
    )
