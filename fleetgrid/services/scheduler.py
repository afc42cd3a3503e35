from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

"""Single-threaded task scheduler with named, cancellable actions.

Replaces timer-based debounces and ad-hoc "busy" flags with an explicit queue:

- ``schedule("row_supply.reassert", 1.0, cb)`` runs ``cb`` one second from now
  unless superseded by another ``schedule`` with the same name or cancelled.
- ``call_soon(name, cb)`` queues work for the next ``run_due()``; store requests
  are dispatched this way so that they complete "later", like real network calls.

Time comes from a clock object. ``ManualClock`` makes every race reproducible
in tests; ``SystemClock`` is used by the CLI.
"""

__all__ = [
    "ManualClock",
    "SystemClock",
    "ScheduledTask",
    "TaskScheduler",
]

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall clock: monotonic seconds for scheduling, aware UTC for timestamps."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(UTC)

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class ManualClock:
    """Deterministic clock advanced explicitly (tests, replays)."""

    def __init__(self, start: datetime | None = None) -> None:
        self._epoch = start or datetime(2025, 1, 6, 8, 0, tzinfo=UTC)
        self._offset = 0.0

    def monotonic(self) -> float:
        return self._offset

    def now(self) -> datetime:
        return self._epoch + timedelta(seconds=self._offset)

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("cannot move a clock backwards")
        self._offset += seconds

    # run_until_idle() sleeps through the clock
    sleep = advance


@dataclass(order=True)
class ScheduledTask:
    due: float
    seq: int
    name: str = field(compare=False)
    callback: Callable[[], None] = field(compare=False, repr=False)
    cancelled: bool = field(default=False, compare=False)


class TaskScheduler:
    """Named task queue driven by ``run_due()``.

    Scheduling a name that is already queued supersedes (cancels) the older
    task. Tasks run in (due time, insertion order). Callback exceptions are
    not swallowed: they propagate to whoever drives the loop.
    """

    def __init__(self, clock: SystemClock | ManualClock | None = None) -> None:
        self.clock = clock or SystemClock()
        self._heap: list[ScheduledTask] = []
        self._by_name: dict[str, ScheduledTask] = {}
        self._seq = itertools.count()

    def schedule(self, name: str, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        previous = self._by_name.get(name)
        if previous is not None:
            previous.cancelled = True
            logger.debug(f"scheduler: '{name}' superseded")
        task = ScheduledTask(
            due=self.clock.monotonic() + max(0.0, delay),
            seq=next(self._seq),
            name=name,
            callback=callback,
        )
        heapq.heappush(self._heap, task)
        self._by_name[name] = task
        return task

    def call_soon(self, name: str, callback: Callable[[], None]) -> ScheduledTask:
        return self.schedule(name, 0.0, callback)

    def cancel(self, name: str) -> bool:
        task = self._by_name.pop(name, None)
        if task is None:
            return False
        task.cancelled = True
        return True

    def is_scheduled(self, name: str) -> bool:
        return name in self._by_name

    def pending_names(self) -> list[str]:
        return sorted(self._by_name, key=lambda n: (self._by_name[n].due, self._by_name[n].seq))

    def next_due(self) -> float | None:
        self._drop_cancelled()
        return self._heap[0].due if self._heap else None

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0].cancelled:
            heapq.heappop(self._heap)

    def run_due(self) -> int:
        """Run every task whose due time has passed, including ones they queue."""
        ran = 0
        while True:
            self._drop_cancelled()
            if not self._heap or self._heap[0].due > self.clock.monotonic():
                return ran
            task = heapq.heappop(self._heap)
            if self._by_name.get(task.name) is task:
                del self._by_name[task.name]
            task.callback()
            ran += 1

    def advance(self, seconds: float) -> int:
        """Move a ManualClock forward, running tasks at their due times."""
        if not isinstance(self.clock, ManualClock):
            raise TypeError("advance() requires a ManualClock")
        target = self.clock.monotonic() + seconds
        ran = self.run_due()
        while True:
            due = self.next_due()
            if due is None or due > target:
                break
            self.clock.advance(due - self.clock.monotonic())
            ran += self.run_due()
        remaining = target - self.clock.monotonic()
        if remaining > 0:
            self.clock.advance(remaining)
        return ran + self.run_due()

    def run_until_idle(self, max_seconds: float = 30.0) -> bool:
        """Drain the queue, sleeping between due times. False if time ran out."""
        deadline = self.clock.monotonic() + max_seconds
        while True:
            self.run_due()
            due = self.next_due()
            if due is None:
                return True
            if due > deadline:
                return False
            wait = due - self.clock.monotonic()
            if wait > 0:
                self.clock.sleep(wait)
