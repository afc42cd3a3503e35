from __future__ import annotations

from datetime import UTC, datetime

from fleetgrid.models.record import Record
from fleetgrid.services.record_cache import Committed, RecordCache, RolledBack

T0 = datetime(2025, 1, 6, 8, 0, tzinfo=UTC)


def _rec(rid: int, flotte: str = "") -> Record:
    return Record(id=rid, values={"flotte": flotte}, created_at=T0)


def _set_flotte(rid: int, value: str):
    return lambda records: [r.with_values({"flotte": value}) if r.id == rid else r for r in records]


def test_begin_applies_optimistically_and_commit_folds_into_base():
    cache = RecordCache([_rec(1, "A")])
    tx = cache.begin("update", _set_flotte(1, "B"))
    assert cache.get(1).get("flotte") == "B"
    assert tx.pre_image[0].get("flotte") == "A"

    outcome = cache.commit(tx)
    assert outcome == Committed(tx.txid, "update")
    assert cache.open_transactions == []
    assert cache.get(1).get("flotte") == "B"


def test_rollback_restores_previous_value():
    cache = RecordCache([_rec(1, "A")])
    tx = cache.begin("update", _set_flotte(1, "B"))
    outcome = cache.rollback(tx, "boom")
    assert isinstance(outcome, RolledBack)
    assert outcome.error == "boom"
    assert cache.get(1).get("flotte") == "A"
    assert cache.log == [outcome]


def test_rollback_keeps_later_transactions():
    cache = RecordCache([_rec(1, "A"), _rec(2, "X")])
    first = cache.begin("update", _set_flotte(1, "B"))
    cache.begin("update", _set_flotte(2, "Y"))
    cache.rollback(first, "failed")
    assert cache.get(1).get("flotte") == "A"
    assert cache.get(2).get("flotte") == "Y"


def test_replace_keeps_open_transactions_on_top():
    cache = RecordCache([_rec(1, "A")])
    cache.begin("update", _set_flotte(1, "B"))
    cache.replace([_rec(1, "A"), _rec(2, "new")])
    assert cache.get(1).get("flotte") == "B"
    assert cache.get(2).get("flotte") == "new"


def test_commit_with_settled_result():
    cache = RecordCache([])
    provisional = cache.next_provisional_id()
    assert provisional == -1
    assert cache.next_provisional_id() == -2
    row = Record(id=provisional, values={}, created_at=T0, pending=True)
    tx = cache.begin("create", lambda rs: (*rs, row))
    assert cache.get(-1).pending

    confirmed = _rec(10)
    cache.commit(tx, settled=lambda rs: (*rs, confirmed))
    assert [r.id for r in cache.snapshot] == [10]
