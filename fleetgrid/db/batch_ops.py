from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Bulk INSERT / DELETE helpers on a psycopg2 cursor.

batch_insert() uses psycopg2.extras.execute_values (one statement per page)
and reports each call's timing through an optional metrics callback, which the
importer uses for batch statistics.
"""

__all__ = [
    "BatchOpError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
    "delete_by_ids",
]


class BatchOpError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single bulk statement."""
    batch_size: int  # rows sent
    elapsed_seconds: float  # time spent in execute_values
    start_time: float  # time.time() at start
    end_time: float  # time.time() at end


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[Any] | None = None


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: bool = False,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Batched INSERT using execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor (RealDictCursor gives dict rows back)
    table: 対象テーブル名 (RecordKind.table, trusted)
    columns: 挿入列
    rows: 行シーケンス (columns と同じ順序)
    returning: True の場合 RETURNING * を付与し全ページ分の行を返す
    page_size: execute_values の page_size
    metrics_callback: receives one BatchMetrics per call; not invoked for empty ``rows``
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if returning:
        sql += " RETURNING *"

    start_time = time.time()
    try:
        returned = execute_values(cursor, sql, rows_list, page_size=page_size, fetch=returning)
    except Exception as e:
        raise BatchOpError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(inserted_rows=len(rows_list), returned_values=list(returned) if returning else None)


def delete_by_ids(cursor: Any, table: str, ids: Sequence[int]) -> int:
    """DELETE every row whose id is in ``ids``; returns the affected row count."""
    if not ids:
        return 0
    try:
        cursor.execute(f"DELETE FROM {table} WHERE id = ANY(%s)", (list(ids),))
    except Exception as e:
        raise BatchOpError(str(e)) from e
    return cursor.rowcount
