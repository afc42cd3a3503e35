"""Domain models for the fleet maintenance grid.

Record kinds and records, mutation plans produced by batch reconciliation,
configuration dataclasses, error log records and import results.
"""

from .config_models import DatabaseConfig, GridConfig
from .mutation import BatchPlan, CellAction, CellPlan, RowChange, SkippedCell
from .record import (
    CONTACT,
    KINDS,
    MAINTENANCE,
    FieldSpec,
    FieldType,
    Record,
    RecordKind,
    ValidationStatus,
    blank_values,
    is_empty_record,
)

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "GridConfig",
    # Records
    "FieldSpec",
    "FieldType",
    "Record",
    "RecordKind",
    "ValidationStatus",
    "MAINTENANCE",
    "CONTACT",
    "KINDS",
    "blank_values",
    "is_empty_record",
    # Mutation plans
    "BatchPlan",
    "CellAction",
    "CellPlan",
    "RowChange",
    "SkippedCell",
]
