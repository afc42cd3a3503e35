from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

"""Import result models for the Excel -> record store importer.

ImportResult aggregates one sheet import (rows created / skipped, timings);
BatchStatsAccumulator collects per create_batch timings.
"""


@dataclass(frozen=True)
class ImportResult:
    """Aggregated results for one sheet import."""
    kind: str  # record kind name
    sheet: str  # sheet name
    created_rows: int  # rows created in the store
    skipped_rows: int  # rows rejected (parse / date order / store error)
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0
    sheet_error: str | None = None  # header could not be mapped; sheet skipped

    @property
    def has_failures(self) -> bool:
        return self.skipped_rows > 0 or self.sheet_error is not None


class BatchStatsAccumulator:
    """Collects create_batch timings and derives summary statistics."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Returns (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 95th percentile = 19th of 20 quantiles
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
