from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Mutation plan models produced by the batch reconciliation layer.

A plan is pure data: which rows to update (with normalized fields), which rows
to delete, which edits wait for a pending row, and which cells were dropped
because their text could not be parsed. The session turns a plan into at most
one bulk delete and one bulk update request.
"""

__all__ = [
    "RowChange",
    "CellAction",
    "CellPlan",
    "SkippedCell",
    "BatchPlan",
]


@dataclass(frozen=True)
class RowChange:
    """Partial field update addressed to one record id."""
    id: int
    fields: dict[str, Any]

    def as_payload(self) -> dict[str, Any]:
        payload = {"id": self.id}
        payload.update(self.fields)
        return payload


class CellAction(Enum):
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class CellPlan:
    """Outcome of a single cell edit."""
    action: CellAction
    id: int
    field: str
    value: Any


@dataclass(frozen=True)
class SkippedCell:
    id: int
    field: str
    value: Any
    reason: str


@dataclass
class BatchPlan:
    updates: list[RowChange] = field(default_factory=list)
    deletes: list[int] = field(default_factory=list)
    deferred: list[RowChange] = field(default_factory=list)  # addressed to pending rows
    skipped: list[SkippedCell] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.updates and not self.deletes
