from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fleetgrid.models.record import CONTACT, MAINTENANCE
from fleetgrid.services.scheduler import ManualClock
from fleetgrid.services.store import InMemoryRecordStore, StoreError, strip_identity


@pytest.fixture()
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore(MAINTENANCE, clock=ManualClock())


def test_create_fills_defaults_and_stamps(store):
    rec = store.create({"flotte": "TGV"})
    assert rec.id == 1
    assert rec.get("engin") == ""
    assert rec.get("site") is None
    assert rec.created_at == datetime(2025, 1, 6, 8, 0, tzinfo=UTC)
    assert store.calls == ["create"]


def test_unknown_column_rejected(store):
    with pytest.raises(StoreError):
        store.create({"color": "red"})


def test_update_rechecks_date_order(store):
    rec = store.create({"entree": datetime(2025, 2, 3, tzinfo=UTC)})
    with pytest.raises(StoreError, match="Erreur ligne"):
        store.update(rec.id, {"sortie": datetime(2025, 2, 1, tzinfo=UTC)})
    assert store.fetch_all()[0].get("sortie") is None


def test_update_batch_is_all_or_nothing(store):
    a = store.create({"flotte": "A", "entree": datetime(2025, 2, 3, tzinfo=UTC)})
    b = store.create({"flotte": "B"})
    with pytest.raises(StoreError):
        store.update_batch([{"id": b.id, "flotte": "BB"}, {"id": a.id, "sortie": datetime(2025, 1, 1, tzinfo=UTC)}])
    assert [r.get("flotte") for r in store.fetch_all()] == ["A", "B"]

    updated = store.update_batch([{"id": b.id, "flotte": "BB"}])
    assert updated[0].get("flotte") == "BB"
    assert updated[0].updated_at is not None


def test_delete_and_delete_batch(store):
    ids = [r.id for r in store.seed([{"flotte": str(i)} for i in range(4)])]
    store.delete(ids[0])
    with pytest.raises(StoreError):
        store.delete(ids[0])
    store.delete_batch([ids[1], ids[2], 999])
    assert [r.id for r in store.fetch_all()] == [ids[3]]


def test_create_batch_validates_before_inserting(store):
    rows = [{"flotte": "ok"}, {"entree": datetime(2025, 2, 3, tzinfo=UTC), "sortie": datetime(2025, 2, 1, tzinfo=UTC)}]
    with pytest.raises(StoreError):
        store.create_batch(rows)
    assert store.fetch_all() == []


def test_fail_next_hook(store):
    store.fail_next("create", "db down")
    with pytest.raises(StoreError, match="db down"):
        store.create({})
    assert store.create({}).id == 1


def test_contacts_ordre_duplicate_and_reorder():
    store = InMemoryRecordStore(CONTACT, clock=ManualClock())
    a = store.create({"site": "Lyon", "nom": "A"})
    b = store.create({"site": "Paris", "nom": "B"})
    assert (a.get("ordre"), b.get("ordre")) == (1, 2)

    dup = store.duplicate(a.id)
    assert dup.get("nom") == "A"
    assert dup.get("ordre") == 3

    store.reorder([(dup.id, 0), (a.id, 1), (b.id, 2)])
    assert [r.id for r in store.fetch_all()] == [dup.id, a.id, b.id]


def test_reorder_without_manual_order(store):
    with pytest.raises(StoreError):
        store.reorder([(1, 0)])


def test_strip_identity():
    assert strip_identity({"id": 1, "created_at": 0, "updated_at": 0, "nom": "x"}) == {"nom": "x"}
