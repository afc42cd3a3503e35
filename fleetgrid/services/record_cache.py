from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from fleetgrid.models.record import Record

"""Local record snapshot with an optimistic-update transaction log.

The snapshot is the last confirmed store state (``base``) with every open
transaction re-applied on top, in the order they began. So a refresh from the
store keeps in-flight optimistic changes visible.

- begin(op, mutate): capture the pre-image, apply ``mutate``
- commit(tx): fold the confirmed result into the base -> ``Committed``
- rollback(tx, error): drop the transaction -> ``RolledBack``; the snapshot
  goes back to what it would be without it
"""

__all__ = [
    "Mutation",
    "Transaction",
    "Committed",
    "RolledBack",
    "RecordCache",
]

logger = logging.getLogger(__name__)

Mutation = Callable[[tuple[Record, ...]], Iterable[Record]]


@dataclass(frozen=True)
class Transaction:
    txid: int
    op: str  # "create" | "update" | "delete" | "reorder"
    pre_image: tuple[Record, ...] = field(repr=False)
    mutate: Mutation = field(repr=False, compare=False)


@dataclass(frozen=True)
class Committed:
    txid: int
    op: str


@dataclass(frozen=True)
class RolledBack:
    txid: int
    op: str
    error: str
    pre_image: tuple[Record, ...] = field(repr=False, default=())


class RecordCache:
    def __init__(self, records: Iterable[Record] = ()) -> None:
        self._base: tuple[Record, ...] = tuple(records)
        self._records: tuple[Record, ...] = self._base
        self._txids = itertools.count(1)
        self._provisional = itertools.count(-1, -1)
        self._open: dict[int, Transaction] = {}
        self.log: list[Committed | RolledBack] = []

    @property
    def snapshot(self) -> tuple[Record, ...]:
        return self._records

    def _recompute(self) -> None:
        records = self._base
        for tx in self._open.values():
            records = tuple(tx.mutate(records))
        self._records = records

    def replace(self, records: Iterable[Record]) -> None:
        """New confirmed state from the store; open transactions stay applied."""
        self._base = tuple(records)
        self._recompute()

    def get(self, record_id: int) -> Record | None:
        return next((r for r in self._records if r.id == record_id), None)

    def next_provisional_id(self) -> int:
        return next(self._provisional)

    @property
    def open_transactions(self) -> list[Transaction]:
        return list(self._open.values())

    def begin(self, op: str, mutate: Mutation) -> Transaction:
        tx = Transaction(txid=next(self._txids), op=op, pre_image=self._records, mutate=mutate)
        self._open[tx.txid] = tx
        self._records = tuple(mutate(self._records))
        return tx

    def commit(self, tx: Transaction, settled: Mutation | None = None) -> Committed:
        """Close ``tx``. ``settled`` replaces the optimistic change with the store's answer."""
        self._open.pop(tx.txid, None)
        self._base = tuple((settled or tx.mutate)(self._base))
        self._recompute()
        outcome = Committed(tx.txid, tx.op)
        self.log.append(outcome)
        return outcome

    def rollback(self, tx: Transaction, error: Exception | str) -> RolledBack:
        self._open.pop(tx.txid, None)
        self._recompute()
        outcome = RolledBack(tx.txid, tx.op, str(error), tx.pre_image)
        self.log.append(outcome)
        logger.debug(f"cache: rolled back {tx.op} #{tx.txid}")
        return outcome
