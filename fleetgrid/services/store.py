from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol

from fleetgrid.errors import DateOrderError, GridError
from fleetgrid.models.record import FieldType, Record, RecordKind
from fleetgrid.services.reconciliation import check_date_order
from fleetgrid.services.scheduler import ManualClock, SystemClock

"""Record store contract and the in-memory implementation.

The grid only talks to a store through ``RecordStore``. Stores own ids and
creation timestamps, re-check the date order rule against the persisted
record, and raise ``StoreError`` for anything that went wrong.

InMemoryRecordStore backs the tests and the CLI's mock mode;
fleetgrid.db.postgres_store.PostgresRecordStore is the PostgreSQL one.
"""

__all__ = [
    "StoreError",
    "RecordStore",
    "InMemoryRecordStore",
    "strip_identity",
]

logger = logging.getLogger(__name__)


class StoreError(GridError):
    pass


class RecordStore(Protocol):
    kind: RecordKind

    def fetch_all(self) -> list[Record]: ...

    def create(self, fields: Mapping[str, Any]) -> Record: ...

    def create_batch(self, rows: Sequence[Mapping[str, Any]]) -> list[Record]: ...

    def update(self, record_id: int, fields: Mapping[str, Any]) -> Record: ...

    def update_batch(self, changes: Sequence[Mapping[str, Any]]) -> list[Record]: ...

    def delete(self, record_id: int) -> None: ...

    def delete_batch(self, ids: Sequence[int]) -> None: ...

    def duplicate(self, record_id: int) -> Record: ...

    def reorder(self, items: Sequence[tuple[int, int]]) -> None: ...


def strip_identity(values: Mapping[str, Any]) -> dict[str, Any]:
    """Field values without id / timestamps (used by duplicate)."""
    return {k: v for k, v in values.items() if k not in ("id", "created_at", "updated_at")}


class InMemoryRecordStore:
    """Dict-backed store with clock-stamped records.

    ``fail_next(op)`` makes the next call of ``op`` raise StoreError (tests).
    """

    def __init__(self, kind: RecordKind, clock: SystemClock | ManualClock | None = None) -> None:
        self.kind = kind
        self.clock = clock or SystemClock()
        self._rows: dict[int, Record] = {}
        self._ids = itertools.count(1)
        self._failures: dict[str, str] = {}
        self.calls: list[str] = []

    # -- test hooks ---------------------------------------------------------
    def fail_next(self, op: str, message: str = "store unavailable") -> None:
        self._failures[op] = message

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        message = self._failures.pop(op, None)
        if message is not None:
            raise StoreError(message)

    # -- helpers ------------------------------------------------------------
    def _clean(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in fields.items():
            if name in ("id", "created_at", "updated_at"):
                continue
            if not self.kind.has_field(name):
                raise StoreError(f"{self.kind.table}: unknown column '{name}'")
            out[name] = value
        return out

    def _defaults(self) -> dict[str, Any]:
        return {spec.name: ("" if spec.type is FieldType.TEXT else None) for spec in self.kind.fields}

    def _existing(self, record_id: int) -> Record:
        try:
            return self._rows[record_id]
        except KeyError:
            raise StoreError(f"{self.kind.table}: record {record_id} not found") from None

    def _validate(self, record_id: int, values: Mapping[str, Any]) -> None:
        try:
            check_date_order(record_id, values)
        except DateOrderError as e:
            raise StoreError(str(e)) from e

    def _next_ordre(self) -> int:
        ordres = [r.get("ordre") for r in self._rows.values() if r.get("ordre") is not None]
        return max(ordres) + 1 if ordres else 1

    def _insert(self, fields: Mapping[str, Any]) -> Record:
        values = self._defaults()
        values.update(self._clean(fields))
        if self.kind.has_field("ordre") and values.get("ordre") is None:
            values["ordre"] = self._next_ordre()
        record_id = next(self._ids)
        self._validate(record_id, values)
        record = Record(id=record_id, values=values, created_at=self.clock.now())
        self._rows[record_id] = record
        return record

    # -- RecordStore --------------------------------------------------------
    def fetch_all(self) -> list[Record]:
        self._enter("fetch_all")
        order_by = self.kind.order_by
        if order_by == "id":
            return sorted(self._rows.values(), key=lambda r: r.id)
        return sorted(self._rows.values(), key=lambda r: (r.get(order_by) is None, r.get(order_by) or 0, r.id))

    def create(self, fields: Mapping[str, Any]) -> Record:
        self._enter("create")
        return self._insert(fields)

    def create_batch(self, rows: Sequence[Mapping[str, Any]]) -> list[Record]:
        self._enter("create_batch")
        # validate everything first: a batch is all or nothing
        for i, fields in enumerate(rows):
            self._validate(-1 - i, {**self._defaults(), **self._clean(fields)})
        return [self._insert(fields) for fields in rows]

    def update(self, record_id: int, fields: Mapping[str, Any]) -> Record:
        self._enter("update")
        return self._apply(record_id, fields)

    def _apply(self, record_id: int, fields: Mapping[str, Any]) -> Record:
        existing = self._existing(record_id)
        changes = self._clean(fields)
        merged = dict(existing.values)
        merged.update(changes)
        self._validate(record_id, merged)
        record = existing.with_values(changes, updated_at=self.clock.now())
        self._rows[record_id] = record
        return record

    def update_batch(self, changes: Sequence[Mapping[str, Any]]) -> list[Record]:
        self._enter("update_batch")
        staged: dict[int, dict[str, Any]] = {}
        for change in changes:
            record_id = change["id"]
            existing = self._existing(record_id)
            merged = staged.setdefault(record_id, dict(existing.values))
            merged.update(self._clean(change))
            self._validate(record_id, merged)
        return [self._apply(change["id"], change) for change in changes]

    def delete(self, record_id: int) -> None:
        self._enter("delete")
        self._existing(record_id)
        del self._rows[record_id]

    def delete_batch(self, ids: Sequence[int]) -> None:
        self._enter("delete_batch")
        for record_id in ids:
            self._rows.pop(record_id, None)

    def duplicate(self, record_id: int) -> Record:
        self._enter("duplicate")
        source = self._existing(record_id)
        values = strip_identity(source.values)
        if self.kind.has_field("ordre"):
            values["ordre"] = None
        return self._insert(values)

    def reorder(self, items: Sequence[tuple[int, int]]) -> None:
        self._enter("reorder")
        if not self.kind.has_field("ordre"):
            raise StoreError(f"{self.kind.table}: records have no manual order")
        for record_id, ordre in items:
            existing = self._existing(record_id)
            self._rows[record_id] = existing.with_values({"ordre": ordre}, updated_at=self.clock.now())

    # convenience for fixtures
    def seed(self, rows: Iterable[Mapping[str, Any]]) -> list[Record]:
        return [self._insert(fields) for fields in rows]
