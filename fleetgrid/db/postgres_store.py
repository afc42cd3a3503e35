from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from psycopg2.extras import RealDictCursor

from fleetgrid.db.batch_ops import BatchMetrics, BatchOpError, batch_insert, delete_by_ids
from fleetgrid.errors import DateOrderError
from fleetgrid.models.record import FieldType, Record, RecordKind
from fleetgrid.services.reconciliation import check_date_order
from fleetgrid.services.store import StoreError, strip_identity

"""PostgreSQL record store (psycopg2).

One transaction per store call: commit on success, rollback and StoreError on
any driver error or rule violation. Rows come back through RealDictCursor and
``RETURNING *`` so the grid always sees what the database stored.
"""

__all__ = [
    "PostgresRecordStore",
    "SCHEMA_SQL_PATH",
    "create_schema",
]

logger = logging.getLogger(__name__)

SCHEMA_SQL_PATH = Path(__file__).resolve().parent / "schema.sql"

_META_COLUMNS = ("id", "created_at", "updated_at")


def create_schema(conn: Any) -> None:
    """Create the grid tables if missing (fleetgrid/db/schema.sql)."""
    with conn.cursor() as cur:
        cur.execute(SCHEMA_SQL_PATH.read_text(encoding="utf-8"))
    conn.commit()


class PostgresRecordStore:
    def __init__(
        self,
        kind: RecordKind,
        conn: Any,
        page_size: int = 1000,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self.kind = kind
        self.conn = conn
        self.page_size = page_size
        self.metrics_callback = metrics_callback

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        cur = self.conn.cursor(cursor_factory=RealDictCursor)
        try:
            yield cur
            self.conn.commit()
        except (psycopg2.Error, BatchOpError) as e:
            self.conn.rollback()
            raise StoreError(f"{self.kind.table}: {e}") from e
        except StoreError:
            self.conn.rollback()
            raise
        finally:
            cur.close()

    # -- row mapping --------------------------------------------------------
    def _to_record(self, row: Mapping[str, Any]) -> Record:
        values = {name: row.get(name) for name in self.kind.field_names}
        return Record(
            id=row["id"],
            values=values,
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )

    def _clean(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in fields.items():
            if name in _META_COLUMNS:
                continue
            if not self.kind.has_field(name):
                raise StoreError(f"{self.kind.table}: unknown column '{name}'")
            out[name] = value
        return out

    def _full_row(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        row = {spec.name: ("" if spec.type is FieldType.TEXT else None) for spec in self.kind.fields}
        row.update(self._clean(fields))
        return row

    @staticmethod
    def _validate(record_id: int, values: Mapping[str, Any]) -> None:
        try:
            check_date_order(record_id, values)
        except DateOrderError as e:
            raise StoreError(str(e)) from e

    def _next_ordre(self, cur: Any) -> int:
        cur.execute(f"SELECT COALESCE(MAX(ordre), 0) + 1 AS next FROM {self.kind.table}")
        return cur.fetchone()["next"]

    def _select(self, cur: Any, record_id: int, lock: bool = False) -> dict[str, Any]:
        sql = f"SELECT * FROM {self.kind.table} WHERE id = %s"
        if lock:
            sql += " FOR UPDATE"
        cur.execute(sql, (record_id,))
        row = cur.fetchone()
        if row is None:
            raise StoreError(f"{self.kind.table}: record {record_id} not found")
        return row

    def _insert_one(self, cur: Any, fields: Mapping[str, Any]) -> Record:
        row = self._full_row(fields)
        if self.kind.has_field("ordre") and row.get("ordre") is None:
            row["ordre"] = self._next_ordre(cur)
        self._validate(-1, row)
        cols = list(row)
        cols_sql = ",".join(f'"{c}"' for c in cols)
        placeholders = ",".join(["%s"] * len(cols))
        cur.execute(
            f"INSERT INTO {self.kind.table} ({cols_sql}) VALUES ({placeholders}) RETURNING *",
            [row[c] for c in cols],
        )
        return self._to_record(cur.fetchone())

    def _update_one(self, cur: Any, record_id: int, fields: Mapping[str, Any]) -> Record:
        changes = self._clean(fields)
        existing = self._select(cur, record_id, lock=True)
        merged = {name: existing.get(name) for name in self.kind.field_names}
        merged.update(changes)
        self._validate(record_id, merged)
        if not changes:
            return self._to_record(existing)
        set_sql = ", ".join(f'"{c}" = %s' for c in changes)
        cur.execute(
            f"UPDATE {self.kind.table} SET {set_sql}, updated_at = CURRENT_TIMESTAMP WHERE id = %s RETURNING *",
            [*changes.values(), record_id],
        )
        return self._to_record(cur.fetchone())

    # -- RecordStore --------------------------------------------------------
    def fetch_all(self) -> list[Record]:
        order = "id" if self.kind.order_by == "id" else f'"{self.kind.order_by}", id'
        with self._cursor() as cur:
            cur.execute(f"SELECT * FROM {self.kind.table} ORDER BY {order}")
            return [self._to_record(row) for row in cur.fetchall()]

    def create(self, fields: Mapping[str, Any]) -> Record:
        with self._cursor() as cur:
            return self._insert_one(cur, fields)

    def create_batch(self, rows: Sequence[Mapping[str, Any]]) -> list[Record]:
        if not rows:
            return []
        with self._cursor() as cur:
            full = [self._full_row(fields) for fields in rows]
            if self.kind.has_field("ordre"):
                next_ordre = self._next_ordre(cur)
                for row in full:
                    if row.get("ordre") is None:
                        row["ordre"] = next_ordre
                        next_ordre += 1
            for i, row in enumerate(full):
                self._validate(-1 - i, row)
            columns = list(self.kind.field_names)
            result = batch_insert(
                cur,
                self.kind.table,
                columns,
                ([row[c] for c in columns] for row in full),
                returning=True,
                page_size=self.page_size,
                metrics_callback=self.metrics_callback,
            )
            return [self._to_record(r) for r in result.returned_values or []]

    def update(self, record_id: int, fields: Mapping[str, Any]) -> Record:
        with self._cursor() as cur:
            return self._update_one(cur, record_id, fields)

    def update_batch(self, changes: Sequence[Mapping[str, Any]]) -> list[Record]:
        with self._cursor() as cur:
            return [self._update_one(cur, change["id"], change) for change in changes]

    def delete(self, record_id: int) -> None:
        with self._cursor() as cur:
            cur.execute(f"DELETE FROM {self.kind.table} WHERE id = %s", (record_id,))
            if cur.rowcount == 0:
                raise StoreError(f"{self.kind.table}: record {record_id} not found")

    def delete_batch(self, ids: Sequence[int]) -> None:
        with self._cursor() as cur:
            deleted = delete_by_ids(cur, self.kind.table, ids)
            logger.debug(f"{self.kind.table}: deleted {deleted}/{len(ids)} row(s)")

    def duplicate(self, record_id: int) -> Record:
        with self._cursor() as cur:
            source = self._select(cur, record_id)
            values = strip_identity({name: source.get(name) for name in self.kind.field_names})
            if self.kind.has_field("ordre"):
                values["ordre"] = None
            return self._insert_one(cur, values)

    def reorder(self, items: Sequence[tuple[int, int]]) -> None:
        if not self.kind.has_field("ordre"):
            raise StoreError(f"{self.kind.table}: records have no manual order")
        with self._cursor() as cur:
            for record_id, ordre in items:
                cur.execute(
                    f"UPDATE {self.kind.table} SET ordre = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                    (ordre, record_id),
                )
