from __future__ import annotations

"""Exception base classes shared across the grid.

Concrete errors live next to the code that raises them
(FieldParseError in services.normalize, StoreError in services.store, ...).
"""

__all__ = [
    "GridError",
    "ValidationError",
    "DateOrderError",
    "DATE_ORDER_TITLE",
]

DATE_ORDER_TITLE = "Validation des dates"


class GridError(Exception):
    pass


class ValidationError(GridError):
    """A change breaks a record invariant; the whole operation is aborted."""


class DateOrderError(ValidationError):
    def __init__(self, row_id: int) -> None:
        self.row_id = row_id
        super().__init__(
            f"Erreur ligne {row_id}: La date de sortie ne peut pas être antérieure à la date d'entrée."
        )
