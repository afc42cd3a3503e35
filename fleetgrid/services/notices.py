from __future__ import annotations

from dataclasses import dataclass

from fleetgrid.logging.error_log import ErrorLogBuffer
from fleetgrid.logging.init import log_notice
from fleetgrid.models.error_record import ErrorRecord

"""User-facing notices (the blocking alert dialog of the grid).

A notice is scoped to the operation that raised it; nothing here stops the
session. Each one is logged at NOTICE level and mirrored into the JSON Lines
error log.
"""

__all__ = [
    "Notice",
    "NoticeBoard",
]


@dataclass(frozen=True)
class Notice:
    title: str
    message: str
    row_id: int | None = None
    error_type: str = "NOTICE"


class NoticeBoard:
    def __init__(self, table: str, error_log: ErrorLogBuffer | None = None) -> None:
        self.table = table
        self.error_log = error_log
        self._notices: list[Notice] = []

    def show(self, title: str, message: str, *, row_id: int | None = None, error_type: str = "NOTICE") -> Notice:
        notice = Notice(title=title, message=message, row_id=row_id, error_type=error_type)
        self._notices.append(notice)
        log_notice(f"{title}: {message}")
        if self.error_log is not None:
            row = row_id if row_id is not None else -1
            self.error_log.append(ErrorRecord.create(self.table, row, error_type, message))
        return notice

    @property
    def notices(self) -> list[Notice]:
        return list(self._notices)

    @property
    def latest(self) -> Notice | None:
        return self._notices[-1] if self._notices else None

    def dismiss(self) -> Notice | None:
        """Close the oldest open notice."""
        return self._notices.pop(0) if self._notices else None

    def __len__(self) -> int:
        return len(self._notices)
