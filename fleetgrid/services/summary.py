from __future__ import annotations

from collections.abc import Sequence

from fleetgrid.models.import_result import ImportResult

"""SUMMARY line rendering for the import CLI.

Format:
    SUMMARY sheets={n} rows={created} skipped={skipped} elapsed_sec={elapsed} throughput_rps={rps}
"""

__all__ = [
    "render_summary_line",
    "format_number",
]


def format_number(value: float) -> str:
    """Integers without decimals, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(results: ImportResult | Sequence[ImportResult]) -> str:
    """Aggregate one or several sheet imports into the SUMMARY line.

    >>> from datetime import UTC, datetime
    >>> t = datetime(2025, 1, 1, tzinfo=UTC)
    >>> r = ImportResult("maintenance", "PHP", 100, 2, t, t, 2.0, 50.0)
    >>> render_summary_line(r)
    'SUMMARY sheets=1 rows=100 skipped=2 elapsed_sec=2 throughput_rps=50'
    """
    items = [results] if isinstance(results, ImportResult) else list(results)
    created = sum(r.created_rows for r in items)
    skipped = sum(r.skipped_rows for r in items)
    elapsed = sum(r.elapsed_seconds for r in items)
    throughput = created / elapsed if elapsed > 0 else 0.0
    return (
        f"SUMMARY sheets={len(items)} "
        f"rows={created} "
        f"skipped={skipped} "
        f"elapsed_sec={format_number(elapsed)} "
        f"throughput_rps={format_number(round(throughput, 3))}"
    )
