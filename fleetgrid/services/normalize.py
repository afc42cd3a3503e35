from __future__ import annotations

import math
import re
from datetime import date, datetime, tzinfo
from typing import Any

from fleetgrid.errors import GridError
from fleetgrid.models.record import FieldSpec, FieldType, ValidationStatus

"""Per-field value normalization.

Raw values reach the grid from typing, paste, fill, the date picker and
Excel import. normalize_field() turns them into the stored representation:

- DATETIME: datetime / ISO-8601 text / "D/M/YYYY H:MM" (day-first) -> aware
  datetime (naive values are local to the configured zone); "" / None -> None
- WEEK: always text ("15", "15/2027"); 15.0 -> "15"
- STATUS: one of ValidationStatus or None
- NULLABLE_TEXT: "" -> None; TEXT: None -> ""
- INTEGER: int

Anything that cannot be parsed raises FieldParseError; callers log it and
skip the single cell.
"""

__all__ = [
    "FieldParseError",
    "normalize_field",
    "parse_datetime",
    "week_label",
]

_DAY_FIRST = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{1,2}):(\d{2})$")


class FieldParseError(GridError):
    def __init__(self, field: str, value: Any, reason: str = "") -> None:
        self.field = field
        self.value = value
        msg = f"cannot parse {field}={value!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


def _localize(moment: datetime, tz: tzinfo) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment


def parse_datetime(text: str, tz: tzinfo) -> datetime:
    """Parse day-first or ISO-8601 text. Raises ValueError."""
    m = _DAY_FIRST.match(text)
    if m:
        day, month, year, hour, minute = (int(g) for g in m.groups())
        return datetime(year, month, day, hour, minute, tzinfo=tz)
    return _localize(datetime.fromisoformat(text), tz)


def _number_text(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return _number_text(value)
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    return str(value)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value == ""


def normalize_field(spec: FieldSpec, value: Any, tz: tzinfo) -> Any:
    kind = spec.type

    if kind is FieldType.DATETIME:
        if _is_missing(value):
            return None
        if isinstance(value, datetime):
            return _localize(value, tz)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=tz)
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            try:
                return parse_datetime(text, tz)
            except ValueError as e:
                raise FieldParseError(spec.name, value, "expected DD/MM/YYYY HH:MM or ISO-8601") from e
        raise FieldParseError(spec.name, value, f"unsupported type {type(value).__name__}")

    if kind is FieldType.WEEK:
        if _is_missing(value):
            return None
        text = _as_text(value).strip()
        return text or None

    if kind is FieldType.STATUS:
        if _is_missing(value):
            return None
        text = _as_text(value).strip()
        if not text:
            return None
        if text not in ValidationStatus.values():
            raise FieldParseError(spec.name, value, "unknown validation status")
        return text

    if kind is FieldType.INTEGER:
        if _is_missing(value):
            return None
        try:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError("not integral")
            return int(value)
        except (TypeError, ValueError) as e:
            raise FieldParseError(spec.name, value, "expected an integer") from e

    if _is_missing(value):
        return "" if kind is FieldType.TEXT else None
    return _as_text(value)


def week_label(moment: datetime | date, today: date | None = None) -> str:
    """ISO week of ``moment`` ("07"), suffixed "/YYYY" for years after this one."""
    week = moment.isocalendar()[1]
    current_year = (today or date.today()).year
    label = f"{week:02d}"
    if moment.year > current_year:
        label += f"/{moment.year}"
    return label
