from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any
from zoneinfo import ZoneInfo

from fleetgrid.errors import DATE_ORDER_TITLE, DateOrderError
from fleetgrid.grid.cell_editor import CellCommit, CellEditor
from fleetgrid.grid.clipboard import (
    ClipboardPort,
    InMemoryClipboard,
    PendingPaste,
    missing_row_count,
    parse_clipboard,
    plan_delete,
    plan_paste,
    serialize_range,
)
from fleetgrid.grid.fill import fill_range_from, plan_fill
from fleetgrid.grid.row_model import RowCounts, RowFilters, facet_values, row_counts, visible_rows
from fleetgrid.grid.selection import (
    Direction,
    InteractionMode,
    SelectionCoord,
    SelectionEngine,
    SelectionRange,
    SelectionState,
)
from fleetgrid.grid.viewport import GroupPosition, VirtualWindow, compute_window, group_position
from fleetgrid.logging.error_log import ErrorLogBuffer
from fleetgrid.models.config_models import GridConfig
from fleetgrid.models.error_record import ErrorRecord
from fleetgrid.models.mutation import BatchPlan, CellAction
from fleetgrid.models.record import FieldSpec, Record, RecordKind, blank_values
from fleetgrid.services.notices import NoticeBoard
from fleetgrid.services.reconciliation import BatchReconciler
from fleetgrid.services.record_cache import RecordCache, Transaction
from fleetgrid.services.row_supply import RowSupplyManager
from fleetgrid.services.scheduler import ManualClock, SystemClock, TaskScheduler
from fleetgrid.services.store import RecordStore, StoreError

"""Grid session: one editable table bound to one record store.

Explicit event cycle replacing UI-framework reactivity:

1. a gesture / edit method updates the selection snapshot or plans a mutation
2. store requests are queued on the scheduler (one task per request) and run
   on ``run_pending()`` / ``advance()``, like network calls completing later
3. when a request settles the snapshot is re-fetched, a pending paste is
   retried and the row supply re-arms its debounced check

Optimistic single-row create / update / delete go through RecordCache
transactions and roll back on StoreError. Batch edits (paste, fill, delete
key, picker) are not optimistic: they hold the ``batch_updating`` guard,
which keeps the row supply quiet until ``batch_cooldown_seconds`` after the
batch settles.
"""

__all__ = [
    "KeyEvent",
    "GridSession",
    "BATCH_RELEASE_TASK",
]

logger = logging.getLogger(__name__)

BATCH_RELEASE_TASK = "batch.release"

_ARROWS = {
    "ArrowUp": Direction.UP,
    "ArrowDown": Direction.DOWN,
    "ArrowLeft": Direction.LEFT,
    "ArrowRight": Direction.RIGHT,
}


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False

    @property
    def command(self) -> bool:
        return self.ctrl or self.meta


def _array_move(items: list[Record], src: int, dst: int) -> list[Record]:
    out = list(items)
    out.insert(dst, out.pop(src))
    return out


class GridSession:
    def __init__(
        self,
        kind: RecordKind,
        store: RecordStore,
        config: GridConfig | None = None,
        clipboard: ClipboardPort | None = None,
        clock: SystemClock | ManualClock | None = None,
        scheduler: TaskScheduler | None = None,
        notices: NoticeBoard | None = None,
        error_log: ErrorLogBuffer | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        self.kind = kind
        self.store = store
        self.config = config or GridConfig()
        self.tz = ZoneInfo(self.config.timezone)
        self.clipboard = clipboard or InMemoryClipboard()
        self.scheduler = scheduler or TaskScheduler(clock or SystemClock())
        self.error_log = error_log
        self.notices = notices or NoticeBoard(kind.table, error_log)
        self._today = today or date.today

        self.cache = RecordCache()
        self.selection = SelectionEngine()
        self.filters = RowFilters()
        self.reconciler = BatchReconciler(kind, self.config.empty_row_floor, self.tz)
        self.row_supply = RowSupplyManager(
            kind,
            self.config,
            self.scheduler,
            self.notices,
            records=lambda: self.cache.snapshot,
            is_batch_updating=lambda: self.batch_updating,
            dispatch=self._dispatch,
            create=self.store.create,
            delete_batch=self.store.delete_batch,
        )

        self.batch_updating = False
        self.pending_paste: PendingPaste | None = None
        self._batch_inflight = 0
        self._deferred: dict[int, dict[str, Any]] = {}
        self._seq = itertools.count(1)
        self.loaded = False

    # ------------------------------------------------------------------
    # snapshot / derived view state
    # ------------------------------------------------------------------
    @property
    def records(self) -> tuple[Record, ...]:
        return self.cache.snapshot

    @property
    def columns(self) -> tuple[FieldSpec, ...]:
        return self.kind.columns

    @property
    def rows(self) -> list[Record]:
        return visible_rows(self.cache.snapshot, self.kind, self.filters, self.tz)

    @property
    def counts(self) -> RowCounts:
        return row_counts(self.cache.snapshot, self.rows, self.kind, self.filters)

    @property
    def state(self) -> SelectionState:
        return self.selection.state

    def window(self, scroll_offset: float, viewport_height: float) -> VirtualWindow:
        return compute_window(
            scroll_offset,
            viewport_height,
            len(self.rows),
            self.config.row_height,
            self.config.overscan,
        )

    def group_position(self, index: int) -> GroupPosition:
        return group_position(self.rows, index, self.kind)

    def facet_values(self, column: str) -> list[str]:
        return facet_values(self.cache.snapshot, self.kind, column, self.tz)

    # ------------------------------------------------------------------
    # loading / request dispatch
    # ------------------------------------------------------------------
    def load(self) -> tuple[Record, ...]:
        """Initial fetch. StoreError propagates: there is nothing to show yet."""
        self.cache.replace(self.store.fetch_all())
        self.loaded = True
        logger.info(f"{self.kind.table}: loaded {len(self.cache.snapshot)} record(s)")
        self.row_supply.notify_data_changed()
        return self.cache.snapshot

    def refresh(self) -> None:
        try:
            records = self.store.fetch_all()
        except StoreError as e:
            self.notices.show("Erreur de chargement", str(e), error_type="STORE_FETCH")
            return
        self.cache.replace(records)

    def _dispatch(
        self,
        name: str,
        call: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        def run() -> None:
            try:
                result = call()
            except StoreError as e:
                logger.warning(f"{self.kind.table}: {name} failed: {e}")
                on_error(e)
            else:
                on_success(result)
            self._after_settle()

        self.scheduler.call_soon(f"{name}#{next(self._seq)}", run)

    def _after_settle(self) -> None:
        self.refresh()
        self._retry_pending_paste()
        self.row_supply.notify_data_changed()

    def run_pending(self) -> int:
        """Run every request / timer that is due now."""
        return self.scheduler.run_due()

    def advance(self, seconds: float) -> int:
        return self.scheduler.advance(seconds)

    # ------------------------------------------------------------------
    # gestures
    # ------------------------------------------------------------------
    def mouse_down(self, row: int, col: int) -> SelectionState:
        return self.selection.mouse_down(row, col)

    def mouse_enter(self, row: int, col: int) -> SelectionState:
        return self.selection.mouse_enter(row, col)

    def fill_handle_mouse_down(self) -> SelectionState:
        return self.selection.fill_handle_mouse_down()

    def fill_handle_mouse_enter(self, row: int, col: int) -> SelectionState:
        return self.selection.fill_handle_mouse_enter(row, col)

    def mouse_up(self) -> SelectionState:
        """Global mouse-up. Leaving FILLING commits the fill."""
        before = self.selection.state
        after = self.selection.mouse_up()
        if before.mode is InteractionMode.FILLING:
            changes = plan_fill(fill_range_from(before), self.rows, self.columns)
            after = self.selection.clear_fill_end()
            if changes:
                logger.info(f"{self.kind.table}: fill down into {len(changes)} row(s)")
                self.update_batch(changes)
        return after

    def handle_key(self, event: KeyEvent) -> bool:
        """Keyboard shortcuts of the grid body. True when the event was consumed."""
        if not self.state.has_selection:
            return False
        key = event.key.lower() if len(event.key) == 1 else event.key
        if event.command and key == "c":
            self.copy()
            return True
        if event.command and key == "v":
            self.paste()
            return True
        if event.key == "Delete":
            self.delete_selection()
            return True
        if event.ctrl and event.shift and event.key in _ARROWS:
            self.selection.extend_to_edge(_ARROWS[event.key], len(self.rows), len(self.columns))
            return True
        return False

    def copy(self) -> str | None:
        rng = self.state.range
        if rng is None:
            return None
        rows = self.rows
        if rng.start.row >= len(rows):
            return None
        # rows below the last one are dropped, the rest is copied
        if rng.end.row >= len(rows):
            rng = SelectionRange(rng.start, SelectionCoord(len(rows) - 1, rng.end.col))
        text = serialize_range(rows, self.columns, rng, self.tz)
        self.clipboard.write(text)
        return text

    def paste(self) -> None:
        rng = self.state.range
        if rng is None:
            return
        cells = parse_clipboard(self.clipboard.read())
        if not cells:
            return
        pending = PendingPaste.of(cells, rng.start)
        missing = missing_row_count(pending.start.row, pending.height, len(self.rows))
        self.pending_paste = pending
        if missing > 0:
            logger.info(f"{self.kind.table}: paste needs {missing} more row(s)")
            self._begin_batch()
            self.add_empty_rows(missing)
        self._retry_pending_paste()

    def _retry_pending_paste(self) -> None:
        pending = self.pending_paste
        if pending is None:
            return
        outcome = plan_paste(pending, self.rows, self.columns)
        if outcome.waiting:
            return
        self.pending_paste = None
        if outcome.changes:
            self.update_batch(outcome.changes)
        else:
            self._release_batch_later(self.config.batch_noop_release_seconds)

    def delete_selection(self) -> None:
        rng = self.state.range
        if rng is None:
            return
        changes = plan_delete(rng, self.rows, self.columns)
        if changes:
            self.update_batch(changes)

    # ------------------------------------------------------------------
    # batch updates
    # ------------------------------------------------------------------
    def _begin_batch(self) -> None:
        self.batch_updating = True
        self.scheduler.cancel(BATCH_RELEASE_TASK)

    def _release_batch_later(self, delay: float) -> None:
        self.scheduler.schedule(BATCH_RELEASE_TASK, delay, self._release_batch)

    def _release_batch(self) -> None:
        self.batch_updating = False
        self.row_supply.notify_data_changed()

    def _batch_request_settled(self) -> None:
        self._batch_inflight -= 1
        if self._batch_inflight <= 0:
            self._batch_inflight = 0
            self._release_batch_later(self.config.batch_cooldown_seconds)

    def update_batch(self, updates: Sequence[Mapping[str, Any]]) -> BatchPlan | None:
        """Reconcile raw edits and issue at most one bulk delete and one bulk update."""
        self._begin_batch()
        try:
            plan = self.reconciler.plan_batch(self.cache.snapshot, updates)
        except DateOrderError as e:
            self.notices.show(DATE_ORDER_TITLE, str(e), row_id=e.row_id, error_type="DATE_ORDER")
            self._release_batch_later(self.config.batch_noop_release_seconds)
            return None

        self._record_skipped(plan)
        for change in plan.deferred:
            self._deferred.setdefault(change.id, {}).update(change.fields)
        if plan.is_empty:
            self._release_batch_later(self.config.batch_noop_release_seconds)
            return plan

        def settled(_result: Any = None) -> None:
            self._batch_request_settled()

        def failed_update(e: Exception) -> None:
            self.notices.show("Erreur de mise à jour", str(e), error_type="STORE_UPDATE")
            self._batch_request_settled()

        def failed_delete(e: Exception) -> None:
            self.notices.show("Erreur de suppression", str(e), error_type="STORE_DELETE")
            self._batch_request_settled()

        if plan.deletes:
            ids = list(plan.deletes)
            self._batch_inflight += 1
            self._dispatch("delete_batch", lambda: self.store.delete_batch(ids), settled, failed_delete)
        if plan.updates:
            payload = [change.as_payload() for change in plan.updates]
            self._batch_inflight += 1
            self._dispatch("update_batch", lambda: self.store.update_batch(payload), settled, failed_update)
        return plan

    def _record_skipped(self, plan: BatchPlan) -> None:
        if self.error_log is None:
            return
        for cell in plan.skipped:
            self.error_log.append(ErrorRecord.create(self.kind.table, cell.id, "PARSE_ERROR", cell.reason))

    # ------------------------------------------------------------------
    # single-row optimistic operations
    # ------------------------------------------------------------------
    def update_cell(self, record_id: int, field: str, value: Any) -> None:
        try:
            plan = self.reconciler.plan_cell(self.cache.snapshot, record_id, field, value)
        except DateOrderError as e:
            self.notices.show(DATE_ORDER_TITLE, str(e), row_id=e.row_id, error_type="DATE_ORDER")
            return
        if plan is None:
            return
        current = self.cache.get(record_id)
        if current is not None and current.pending:
            self._deferred.setdefault(record_id, {})[field] = plan.value
            return
        if plan.action is CellAction.DELETE:
            self.delete_record(record_id)
            return

        changes = {field: plan.value}
        now = self.scheduler.clock.now()

        def apply(records: tuple[Record, ...]) -> list[Record]:
            return [r.with_values(changes, updated_at=now) if r.id == record_id else r for r in records]

        tx = self.cache.begin("update", apply)

        def ok(record: Record) -> None:
            self.cache.commit(tx, settled=lambda rs: [record if r.id == record.id else r for r in rs])

        def failed(e: Exception) -> None:
            self._rollback(tx, e, "Erreur de mise à jour", "STORE_UPDATE", record_id)

        self._dispatch("update", lambda: self.store.update(record_id, changes), ok, failed)

    def commit_cell_edit(self, commit: CellCommit | None) -> None:
        if commit is None:
            return
        if commit.batch or len(commit.fields) > 1:
            self.update_batch([{"id": commit.id, **commit.fields}])
            return
        ((field, value),) = commit.fields.items()
        self.update_cell(commit.id, field, value)

    def editor(self, row: int, col: int) -> CellEditor:
        return CellEditor(self.rows[row], self.columns[col], today=self._today())

    def add_empty_row(self, *, for_paste: bool = False) -> int:
        """Optimistically append a blank row; returns its provisional id."""
        provisional_id = self.cache.next_provisional_id()
        values = blank_values(self.kind)
        row = Record(id=provisional_id, values=values, created_at=self.scheduler.clock.now(), pending=True)
        tx = self.cache.begin("create", lambda records: (*records, row))

        def ok(record: Record) -> None:
            self.cache.commit(tx, settled=lambda rs: (*rs, record))
            self._resubmit_deferred(provisional_id, record.id)

        def failed(e: Exception) -> None:
            self._deferred.pop(provisional_id, None)
            self._rollback(tx, e, "Erreur de création", "STORE_CREATE", None)
            if for_paste:
                self._abandon_pending_paste()

        self._dispatch("create", lambda: self.store.create(values), ok, failed)
        return provisional_id

    def add_empty_rows(self, count: int) -> None:
        """Blank rows for a paste: one by one, or chunked bulk creates past the threshold."""
        if count <= 0:
            return
        if count <= self.config.bulk_create_threshold:
            for _ in range(count):
                self.add_empty_row(for_paste=True)
            return

        chunk = self.config.create_chunk_size
        for offset in range(0, count, chunk):
            rows = [blank_values(self.kind) for _ in range(min(chunk, count - offset))]

            def failed(e: Exception) -> None:
                self.notices.show("Erreur de création", str(e), error_type="STORE_CREATE")
                self._abandon_pending_paste()

            self._dispatch("create_batch", lambda rows=rows: self.store.create_batch(rows), lambda _r: None, failed)

    def _abandon_pending_paste(self) -> None:
        """A row the paste waits for will never exist: drop the paste and lift the batch guard."""
        if self.pending_paste is None:
            return
        logger.warning(f"{self.kind.table}: paste abandoned, rows could not be created")
        self.pending_paste = None
        self._release_batch_later(self.config.batch_noop_release_seconds)

    def _resubmit_deferred(self, provisional_id: int, record_id: int) -> None:
        fields = self._deferred.pop(provisional_id, None)
        if fields:
            logger.info(f"{self.kind.table}: replaying deferred edits on row {record_id}")
            self.update_batch([{"id": record_id, **fields}])

    def delete_record(self, record_id: int) -> None:
        tx = self.cache.begin("delete", lambda records: [r for r in records if r.id != record_id])

        def failed(e: Exception) -> None:
            self._rollback(tx, e, "Erreur de suppression", "STORE_DELETE", record_id)

        self._dispatch("delete", lambda: self.store.delete(record_id), lambda _r: self.cache.commit(tx), failed)

    def duplicate_record(self, record_id: int) -> None:
        def failed(e: Exception) -> None:
            self.notices.show("Erreur de duplication", str(e), row_id=record_id, error_type="STORE_CREATE")

        self._dispatch("duplicate", lambda: self.store.duplicate(record_id), lambda _r: None, failed)

    def reorder(self, from_index: int, to_index: int) -> list[tuple[int, int]]:
        """Move a row and rewrite the manual order as the new list index."""
        if not self.kind.has_field("ordre"):
            raise ValueError(f"{self.kind.name} records have no manual order")
        moved = _array_move(self.rows, from_index, to_index)
        items = [(r.id, index) for index, r in enumerate(moved)]
        positions = dict(items)

        def apply(records: tuple[Record, ...]) -> list[Record]:
            return [r.with_values({"ordre": positions[r.id]}) if r.id in positions else r for r in records]

        tx = self.cache.begin("reorder", apply)

        def failed(e: Exception) -> None:
            self._rollback(tx, e, "Erreur de réorganisation", "STORE_UPDATE", None)

        self._dispatch("reorder", lambda: self.store.reorder(items), lambda _r: self.cache.commit(tx), failed)
        return items

    def _rollback(self, tx: Transaction, error: Exception, title: str, error_type: str, row_id: int | None) -> None:
        self.cache.rollback(tx, error)
        self.notices.show(title, str(error), row_id=row_id, error_type=error_type)

    # ------------------------------------------------------------------
    # filters
    # ------------------------------------------------------------------
    def set_global_filter(self, text: str) -> None:
        self.filters = self.filters.with_global(text)
        self.selection.clear()

    def set_column_filter(self, column: str, values: Iterable[str]) -> None:
        self.kind.field(column)
        self.filters = self.filters.with_column(column, values)
        self.selection.clear()
