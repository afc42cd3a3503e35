from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, tzinfo
from typing import Any

from fleetgrid.errors import DateOrderError
from fleetgrid.models.mutation import BatchPlan, CellAction, CellPlan, RowChange, SkippedCell
from fleetgrid.models.record import Record, RecordKind, is_empty_record
from fleetgrid.services.normalize import FieldParseError, normalize_field

"""Batch reconciliation: raw cell edits -> one update set and one delete set.

Edits from paste, fill, delete and the cell editor are grouped per row id,
normalized field by field and merged with the current record. The merged
record decides the outcome:

- empty and the grid holds more blank rows than the floor -> delete
- empty otherwise -> update (never shrink below the floor)
- non-empty -> update

Date order (sortie >= entree) is checked on the merged record; one violation
aborts the whole batch with DateOrderError. Unparseable cells are logged and
skipped. Edits addressed to pending rows are returned as ``deferred``.
"""

__all__ = [
    "BatchReconciler",
    "check_date_order",
]

logger = logging.getLogger(__name__)


def check_date_order(row_id: int, values: Mapping[str, Any]) -> None:
    entree, sortie = values.get("entree"), values.get("sortie")
    if entree is not None and sortie is not None and sortie < entree:
        raise DateOrderError(row_id)


class BatchReconciler:
    def __init__(self, kind: RecordKind, floor: int = 5, tz: tzinfo = UTC) -> None:
        self.kind = kind
        self.floor = floor
        self.tz = tz

    def empty_count(self, records: Iterable[Record]) -> int:
        return sum(1 for r in records if r.is_empty(self.kind))

    def _may_delete_empty(self, records: Sequence[Record]) -> bool:
        return self.kind.maintain_empty_rows and self.empty_count(records) > self.floor

    def normalize_row(self, row_id: int, raw: Mapping[str, Any]) -> tuple[dict[str, Any], list[SkippedCell]]:
        fields: dict[str, Any] = {}
        skipped: list[SkippedCell] = []
        for name, value in raw.items():
            if not self.kind.has_field(name):
                skipped.append(SkippedCell(row_id, name, value, "unknown field"))
                logger.warning(f"{self.kind.table}: row {row_id} has no field '{name}', skipped")
                continue
            try:
                fields[name] = normalize_field(self.kind.field(name), value, self.tz)
            except FieldParseError as e:
                skipped.append(SkippedCell(row_id, name, value, str(e)))
                logger.warning(f"{self.kind.table}: row {row_id} {e}, cell skipped")
        return fields, skipped

    def plan_cell(self, records: Sequence[Record], row_id: int, field: str, value: Any) -> CellPlan | None:
        """Single cell edit. None when the id is unknown or the value unparseable."""
        current = next((r for r in records if r.id == row_id), None)
        if current is None:
            return None
        fields, skipped = self.normalize_row(row_id, {field: value})
        if skipped:
            return None
        final = fields[field]
        merged = dict(current.values)
        merged[field] = final
        check_date_order(row_id, merged)

        if is_empty_record(self.kind, merged) and self._may_delete_empty(records):
            return CellPlan(CellAction.DELETE, row_id, field, final)
        return CellPlan(CellAction.UPDATE, row_id, field, final)

    def plan_batch(self, records: Sequence[Record], updates: Iterable[Mapping[str, Any]]) -> BatchPlan:
        """Group, normalize and partition ``[{"id": ..., field: raw}, ...]``.

        Raises:
            DateOrderError: a merged row ends before it starts (nothing is planned)
        """
        by_id = {r.id: r for r in records}
        grouped: dict[int, dict[str, Any]] = {}
        for update in updates:
            row_id = update["id"]
            grouped.setdefault(row_id, {}).update({k: v for k, v in update.items() if k != "id"})

        plan = BatchPlan()
        emptied: list[RowChange] = []
        for row_id, raw in grouped.items():
            current = by_id.get(row_id)
            if current is None:
                logger.debug(f"{self.kind.table}: row {row_id} no longer exists, edit dropped")
                continue
            if current.pending:
                plan.deferred.append(RowChange(row_id, dict(raw)))
                continue

            fields, skipped = self.normalize_row(row_id, raw)
            plan.skipped.extend(skipped)
            if not fields:
                continue
            merged = dict(current.values)
            merged.update(fields)
            check_date_order(row_id, merged)

            change = RowChange(row_id, fields)
            if is_empty_record(self.kind, merged):
                emptied.append(change)
            else:
                plan.updates.append(change)

        if self._may_delete_empty(records):
            plan.deletes.extend(change.id for change in emptied)
        else:
            plan.updates.extend(emptied)
        return plan
