from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

"""Record domain model for the maintenance grid.

A record is "an id plus a set of named fields". Two record kinds exist:
maintenance records (12 editable fields) and contacts (6 editable fields plus
the manual ``ordre`` position). The grid core only relies on ``RecordKind``
metadata, never on a concrete kind.

Emptiness: a record is empty iff every *checked* field is None or "".
"""

__all__ = [
    "FieldType",
    "FieldSpec",
    "RecordKind",
    "Record",
    "ValidationStatus",
    "MAINTENANCE",
    "CONTACT",
    "KINDS",
    "is_empty_record",
    "blank_values",
]


class FieldType(Enum):
    """Storage / normalization class of a field."""
    TEXT = "text"                    # NOT NULL DEFAULT ''
    NULLABLE_TEXT = "nullable_text"
    DATETIME = "datetime"            # timestamp with time zone
    WEEK = "week"                    # always a string, "15" or "15/2027"
    STATUS = "status"                # constrained to ValidationStatus
    INTEGER = "integer"


class ValidationStatus(str, Enum):
    """Appointment validation status (validation_rdv column)."""
    VALIDATED_PHP = "Validé PHP"
    VALIDATED_PRE_OP = "Validé Pré-Op/Tactique"
    PENDING = "En attente"
    REFUSED = "Refusé"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(s.value for s in cls)


@dataclass(frozen=True)
class FieldSpec:
    name: str  # column name (snake_case, same as DB column)
    label: str  # header label shown in the grid / Excel header
    type: FieldType
    checked: bool = True  # participates in the emptiness predicate
    editable: bool = True  # visible grid column

    @property
    def nullable(self) -> bool:
        return self.type is not FieldType.TEXT and self.type is not FieldType.INTEGER

    @property
    def is_date(self) -> bool:
        return self.type is FieldType.DATETIME


@dataclass(frozen=True)
class RecordKind:
    """Static description of a record kind (table + ordered fields)."""
    name: str
    table: str
    fields: tuple[FieldSpec, ...]
    order_by: str = "id"
    maintain_empty_rows: bool = False  # row supply floor applies

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"unknown field '{name}' for kind '{self.name}'")

    def has_field(self, name: str) -> bool:
        return any(spec.name == name for spec in self.fields)

    @property
    def columns(self) -> tuple[FieldSpec, ...]:
        """Grid columns, in display order."""
        return tuple(spec for spec in self.fields if spec.editable)

    @property
    def checked_fields(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields if spec.checked)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)


MAINTENANCE = RecordKind(
    name="maintenance",
    table="table_php",
    fields=(
        FieldSpec("flotte", "Flotte", FieldType.TEXT),
        FieldSpec("engin", "Engin", FieldType.TEXT),
        FieldSpec("site", "Site", FieldType.NULLABLE_TEXT),
        FieldSpec("semaine", "Semaine", FieldType.WEEK),
        FieldSpec("entree", "Entrée", FieldType.DATETIME),
        FieldSpec("sortie", "Sortie", FieldType.DATETIME),
        FieldSpec("code_operation", "Code opération", FieldType.TEXT),
        FieldSpec("libelle", "Libellé", FieldType.NULLABLE_TEXT),
        FieldSpec("num_di", "N° DI", FieldType.NULLABLE_TEXT),
        FieldSpec("butee", "Butée", FieldType.NULLABLE_TEXT),
        FieldSpec("validation_rdv", "Validation RDV", FieldType.STATUS),
        FieldSpec("commentaires", "Commentaires", FieldType.NULLABLE_TEXT),
    ),
    order_by="id",
    maintain_empty_rows=True,
)

CONTACT = RecordKind(
    name="contacts",
    table="table_contacts",
    fields=(
        FieldSpec("site", "Site", FieldType.TEXT),
        FieldSpec("nom", "Nom", FieldType.TEXT),
        FieldSpec("fonction", "Fonction", FieldType.NULLABLE_TEXT),
        FieldSpec("ligne_interne", "Ligne Interne", FieldType.NULLABLE_TEXT),
        FieldSpec("ligne_portable", "Ligne Portable", FieldType.NULLABLE_TEXT),
        FieldSpec("observations", "Observations", FieldType.NULLABLE_TEXT),
        FieldSpec("ordre", "Ordre", FieldType.INTEGER, checked=False, editable=False),
    ),
    order_by="ordre",
    maintain_empty_rows=False,
)

KINDS: dict[str, RecordKind] = {MAINTENANCE.name: MAINTENANCE, CONTACT.name: CONTACT}


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def is_empty_record(kind: RecordKind, values: Mapping[str, Any]) -> bool:
    """True iff every checked field of ``values`` is None, missing or ""."""
    return all(_is_blank(values.get(name)) for name in kind.checked_fields)


def blank_values(kind: RecordKind) -> dict[str, Any]:
    """Field values of a fully blank row (what the row supply creates)."""
    out: dict[str, Any] = {}
    for spec in kind.fields:
        if not spec.checked:
            continue
        out[spec.name] = "" if spec.type is FieldType.TEXT else None
    return out


@dataclass(frozen=True)
class Record:
    """Immutable snapshot of one stored row.

    ``pending`` marks a row created optimistically and not yet confirmed by
    the store; its ``id`` is a provisional (negative) id.
    """
    id: int
    values: Mapping[str, Any]
    created_at: datetime
    updated_at: datetime | None = None
    pending: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def with_values(self, changes: Mapping[str, Any], *, updated_at: datetime | None = None) -> Record:
        merged = dict(self.values)
        merged.update(changes)
        return replace(self, values=merged, updated_at=updated_at or self.updated_at)

    def is_empty(self, kind: RecordKind) -> bool:
        return is_empty_record(kind, self.values)

    def as_dict(self) -> dict[str, Any]:
        out = {"id": self.id}
        out.update(self.values)
        out["created_at"] = self.created_at
        out["updated_at"] = self.updated_at
        return out
