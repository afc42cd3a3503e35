from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from fleetgrid.models.record import FieldSpec, FieldType, Record
from fleetgrid.services.normalize import week_label

"""Per-cell editing state machine.

VIEW --click--> INLINE            (text fields)
VIEW --double_click--> PICKER     (date / status fields)
INLINE --Enter/blur--> VIEW + commit if the value changed
INLINE --Escape--> VIEW, draft reverted
PICKER --choose(value)--> VIEW + commit

Picking an entry date commits ``entree`` and the derived ``semaine`` together
so that both land in the same batch request.
"""

__all__ = [
    "EditMode",
    "CellCommit",
    "CellEditor",
    "DEFAULT_PICKER_TIMES",
    "cell_highlight",
]

DEFAULT_PICKER_TIMES = {"entree": time(7, 0), "sortie": time(9, 0)}

_DMY = re.compile(r"(\d{2})/(\d{2})/(\d{4})")


class EditMode(Enum):
    VIEW = "view"
    INLINE = "inline"
    PICKER = "picker"


@dataclass(frozen=True)
class CellCommit:
    id: int
    fields: dict[str, Any] = field(default_factory=dict)
    batch: bool = False  # True: submit through update_batch


class CellEditor:
    def __init__(self, record: Record, spec: FieldSpec, today: date | None = None) -> None:
        self.record = record
        self.spec = spec
        self.today = today or date.today()
        self.mode = EditMode.VIEW
        self.draft: Any = record.get(spec.name)

    @property
    def requires_double_click(self) -> bool:
        return self.spec.type in (FieldType.DATETIME, FieldType.STATUS)

    @property
    def original(self) -> Any:
        return self.record.get(self.spec.name)

    def click(self) -> EditMode:
        if self.spec.editable and self.mode is EditMode.VIEW and not self.requires_double_click:
            self.draft = self.original
            self.mode = EditMode.INLINE
        return self.mode

    def double_click(self) -> EditMode:
        if not self.spec.editable or self.mode is not EditMode.VIEW:
            return self.mode
        self.draft = self.original
        self.mode = EditMode.PICKER if self.requires_double_click else EditMode.INLINE
        return self.mode

    def type(self, text: str) -> None:
        if self.mode is EditMode.INLINE:
            self.draft = text

    def key(self, name: str) -> CellCommit | None:
        if self.mode is EditMode.VIEW:
            return None
        if name == "Enter":
            return self.save()
        if name == "Escape":
            self.cancel()
        return None

    def blur(self) -> CellCommit | None:
        if self.mode is EditMode.INLINE:
            return self.save()
        if self.mode is EditMode.PICKER:
            self.cancel()
        return None

    def cancel(self) -> None:
        self.draft = self.original
        self.mode = EditMode.VIEW

    def save(self) -> CellCommit | None:
        value = self.draft
        self.mode = EditMode.VIEW
        if value == self.original:
            return None
        return CellCommit(id=self.record.id, fields={self.spec.name: value})

    def choose(self, value: Any) -> CellCommit | None:
        """Picker selection: a status ("" = empty) or a date / datetime."""
        if self.mode is not EditMode.PICKER:
            return None
        if self.spec.type is FieldType.STATUS:
            self.draft = value or None
            return self.save()

        if isinstance(value, date) and not isinstance(value, datetime):
            value = datetime.combine(value, DEFAULT_PICKER_TIMES.get(self.spec.name, time(0, 0)))
        self.draft = value
        self.mode = EditMode.VIEW
        if value is None or self.spec.name != "entree":
            return CellCommit(id=self.record.id, fields={self.spec.name: value})
        return CellCommit(
            id=self.record.id,
            fields={"entree": value, "semaine": week_label(value, self.today)},
            batch=True,
        )


def cell_highlight(spec: FieldSpec, value: Any, today: date | None = None) -> str | None:
    """Text colour for the ``butee`` column: mileage in blue, past deadlines in red."""
    if spec.name != "butee" or not isinstance(value, str):
        return None
    m = _DMY.search(value)
    if m:
        day, month, year = (int(g) for g in m.groups())
        try:
            deadline = date(year, month, day)
        except ValueError:
            deadline = None
        if deadline is not None and deadline < (today or date.today()):
            return "red"
    if "kms" in value.lower():
        return "#0070C0"
    return None
