from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the grid engine.

Values mirror config/grid.yml. Every key is optional; defaults below are the
behaviour the maintenance grid has always had (5 blank rows, 1 s debounce,
5 s grace window, ...).
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback.

    Environment variables (.env, DATABASE_URL, PG*) take precedence over
    these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class GridConfig:
    """Root configuration object."""
    empty_row_floor: int = 5  # trailing blank rows kept for data entry
    supply_debounce_seconds: float = 1.0  # wait after a data change before re-checking the floor
    empty_row_grace_seconds: float = 5.0  # blank rows younger than this are never auto-deleted
    supply_cooldown_seconds: float = 0.1  # guard release delay after row supply requests settle
    batch_cooldown_seconds: float = 1.0  # guard release delay after a batch update settles
    batch_noop_release_seconds: float = 0.5  # guard release when a batch issued no request
    bulk_create_threshold: int = 10  # paste gap above which rows are created in bulk
    create_chunk_size: int = 100  # max rows per create_batch request
    row_height: int = 52  # estimated row height (px) for the virtual window
    overscan: int = 10  # rows rendered above/below the viewport
    timezone: str = "Europe/Paris"  # naive dates typed by users are local to this zone
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
