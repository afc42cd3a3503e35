from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fleetgrid.models.config_models import GridConfig
from fleetgrid.models.record import Record, RecordKind, blank_values
from fleetgrid.services.notices import NoticeBoard
from fleetgrid.services.scheduler import TaskScheduler

"""Row supply: keep exactly ``empty_row_floor`` blank rows for data entry.

Any data change re-arms a debounced check (named task ``row_supply.reassert``).
The check is skipped while a supply operation or a batch update is in flight.

- shortfall: one create per missing row; guard released ``supply_cooldown``
  after the last one settles
- excess: the oldest blank rows older than the grace window (at most the
  excess) go in one bulk delete; when none is old enough the guard is released
  at once and a check is re-armed for when the oldest one ages out

Failures become notices. No optimistic state is involved, so there is nothing
to roll back.
"""

__all__ = [
    "SupplyPlan",
    "plan_row_supply",
    "RowSupplyManager",
    "REASSERT_TASK",
]

logger = logging.getLogger(__name__)

REASSERT_TASK = "row_supply.reassert"
RELEASE_TASK = "row_supply.release"

# dispatch(name, call, on_success, on_error): runs ``call`` later, then one callback
Dispatch = Callable[[str, Callable[[], Any], Callable[[Any], None], Callable[[Exception], None]], None]


@dataclass(frozen=True)
class SupplyPlan:
    create_count: int = 0
    delete_ids: tuple[int, ...] = ()
    excess_waiting: int = 0  # excess rows still inside the grace window
    retry_after: float | None = None  # seconds until the oldest waiting row ages out

    @property
    def is_noop(self) -> bool:
        return self.create_count == 0 and not self.delete_ids


def plan_row_supply(
    records: Sequence[Record],
    kind: RecordKind,
    floor: int,
    grace_seconds: float,
    now: datetime,
) -> SupplyPlan:
    empty = [r for r in records if r.is_empty(kind)]
    if len(empty) < floor:
        return SupplyPlan(create_count=floor - len(empty))
    if len(empty) == floor:
        return SupplyPlan()

    excess = len(empty) - floor
    candidates = sorted((r for r in empty if not r.pending), key=lambda r: (r.created_at, r.id))
    old_enough = [r for r in candidates if (now - r.created_at).total_seconds() > grace_seconds]
    delete_ids = tuple(r.id for r in old_enough[:excess])
    if delete_ids:
        return SupplyPlan(delete_ids=delete_ids)

    retry_after = None
    if candidates:
        age = (now - candidates[0].created_at).total_seconds()
        retry_after = max(grace_seconds - age, 0.0) + 0.001
    return SupplyPlan(excess_waiting=excess, retry_after=retry_after)


@dataclass
class _Flight:
    remaining: int
    failures: list[str] = field(default_factory=list)


class RowSupplyManager:
    def __init__(
        self,
        kind: RecordKind,
        config: GridConfig,
        scheduler: TaskScheduler,
        notices: NoticeBoard,
        records: Callable[[], Sequence[Record]],
        is_batch_updating: Callable[[], bool],
        dispatch: Dispatch,
        create: Callable[[dict[str, Any]], Any],
        delete_batch: Callable[[list[int]], Any],
    ) -> None:
        self.kind = kind
        self.config = config
        self.scheduler = scheduler
        self.notices = notices
        self._records = records
        self._is_batch_updating = is_batch_updating
        self._dispatch = dispatch
        self._create = create
        self._delete_batch = delete_batch
        self._seq = itertools.count(1)
        self._flight: _Flight | None = None
        self.guarded = False
        self.last_plan: SupplyPlan | None = None

    @property
    def enabled(self) -> bool:
        return self.kind.maintain_empty_rows

    def notify_data_changed(self) -> None:
        if not self.enabled:
            return
        self.scheduler.schedule(REASSERT_TASK, self.config.supply_debounce_seconds, self.reassert)

    def reassert(self) -> SupplyPlan | None:
        if not self.enabled:
            return None
        if self.guarded:
            logger.debug("row supply: operation in flight, check skipped")
            return None
        if self._is_batch_updating():
            logger.debug("row supply: batch update in flight, check skipped")
            return None

        plan = plan_row_supply(
            self._records(),
            self.kind,
            self.config.empty_row_floor,
            self.config.empty_row_grace_seconds,
            self.scheduler.clock.now(),
        )
        self.last_plan = plan
        if plan.create_count:
            self._start_creates(plan.create_count)
        elif plan.delete_ids:
            self._start_delete(list(plan.delete_ids))
        elif plan.retry_after is not None:
            # excess rows are all too young: look again once the oldest ages out
            self.scheduler.schedule(REASSERT_TASK, plan.retry_after, self.reassert)
        return plan

    def _start_creates(self, count: int) -> None:
        self.guarded = True
        self._flight = _Flight(remaining=count)
        logger.info(f"row supply: creating {count} blank row(s) in {self.kind.table}")
        for _ in range(count):
            self._dispatch(
                f"row_supply.create.{next(self._seq)}",
                lambda: self._create(blank_values(self.kind)),
                lambda _record: self._settle_one(None),
                self._settle_one,
            )

    def _settle_one(self, error: Exception | None) -> None:
        flight = self._flight
        if flight is None:
            return
        if error is not None:
            flight.failures.append(str(error))
            self.notices.show("Erreur de création", str(error), error_type="ROW_SUPPLY_CREATE")
        flight.remaining -= 1
        if flight.remaining <= 0:
            self._flight = None
            self.scheduler.schedule(RELEASE_TASK, self.config.supply_cooldown_seconds, self.release)

    def _start_delete(self, ids: list[int]) -> None:
        self.guarded = True
        logger.info(f"row supply: deleting {len(ids)} surplus blank row(s) from {self.kind.table}")

        def on_error(error: Exception) -> None:
            self.notices.show("Erreur de suppression", str(error), error_type="ROW_SUPPLY_DELETE")
            self._schedule_release()

        self._dispatch(
            f"row_supply.delete.{next(self._seq)}",
            lambda: self._delete_batch(ids),
            lambda _result: self._schedule_release(),
            on_error,
        )

    def _schedule_release(self) -> None:
        self.scheduler.schedule(RELEASE_TASK, self.config.supply_cooldown_seconds, self.release)

    def release(self) -> None:
        self.guarded = False
