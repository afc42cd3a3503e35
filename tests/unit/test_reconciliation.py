from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fleetgrid.errors import DateOrderError
from fleetgrid.models.mutation import CellAction
from fleetgrid.models.record import CONTACT, MAINTENANCE, Record, blank_values
from fleetgrid.services.reconciliation import BatchReconciler, check_date_order

T0 = datetime(2025, 1, 6, 8, 0, tzinfo=UTC)


def _rec(rid: int, pending: bool = False, **values) -> Record:
    base = {"flotte": "TGV", "engin": "101", "code_operation": "VL"}
    base.update(values)
    return Record(id=rid, values=base, created_at=T0, pending=pending)


def _blanks(start: int, n: int, kind=MAINTENANCE) -> list[Record]:
    return [Record(id=start + i, values=blank_values(kind), created_at=T0) for i in range(n)]


def test_check_date_order():
    check_date_order(1, {"entree": T0, "sortie": T0})
    check_date_order(1, {"entree": T0, "sortie": None})
    with pytest.raises(DateOrderError) as exc:
        check_date_order(9, {"entree": T0, "sortie": datetime(2025, 1, 5, tzinfo=UTC)})
    assert exc.value.row_id == 9
    assert "Erreur ligne 9" in str(exc.value)


def test_batch_groups_edits_per_row():
    records = [_rec(1), _rec(2)] + _blanks(3, 5)
    rec = BatchReconciler(MAINTENANCE, floor=5)
    plan = rec.plan_batch(records, [{"id": 1, "flotte": "TER"}, {"id": 1, "site": "Lyon"}, {"id": 2, "engin": "7"}])
    assert [(c.id, c.fields) for c in plan.updates] == [(1, {"flotte": "TER", "site": "Lyon"}), (2, {"engin": "7"})]
    assert plan.deletes == []


def test_emptied_rows_deleted_only_above_floor():
    rec = BatchReconciler(MAINTENANCE, floor=5)
    emptying = [{"id": 1, "flotte": "", "engin": "", "code_operation": ""}]

    # current blank count at the floor: the emptied row is kept
    plan = rec.plan_batch([_rec(1)] + _blanks(2, 5), emptying)
    assert plan.deletes == []
    assert [c.id for c in plan.updates] == [1]

    plan = rec.plan_batch([_rec(1)] + _blanks(2, 6), emptying)
    assert plan.deletes == [1]
    assert plan.updates == []


def test_contacts_never_auto_delete():
    rec = BatchReconciler(CONTACT, floor=0)
    records = [Record(id=1, values={"site": "Lyon", "nom": "A", "ordre": 1}, created_at=T0)] + _blanks(2, 3, CONTACT)
    plan = rec.plan_batch(records, [{"id": 1, "site": "", "nom": ""}])
    assert plan.deletes == []
    assert plan.updates[0].fields == {"site": "", "nom": ""}


def test_date_order_violation_aborts_batch():
    rec = BatchReconciler(MAINTENANCE, floor=5)
    records = [_rec(1, entree=datetime(2025, 2, 3, 7, 0, tzinfo=UTC)), _rec(2)]
    with pytest.raises(DateOrderError):
        rec.plan_batch(records, [{"id": 2, "flotte": "X"}, {"id": 1, "sortie": "01/02/2025 09:00"}])


def test_unparseable_cells_skipped_rest_applied():
    rec = BatchReconciler(MAINTENANCE, floor=5)
    plan = rec.plan_batch([_rec(1)], [{"id": 1, "entree": "n/a", "libelle": "ok", "bogus": 1}])
    assert [c.fields for c in plan.updates] == [{"libelle": "ok"}]
    assert sorted(s.field for s in plan.skipped) == ["bogus", "entree"]


def test_pending_and_unknown_rows():
    rec = BatchReconciler(MAINTENANCE, floor=5)
    records = [_rec(1), Record(id=-1, values=blank_values(MAINTENANCE), created_at=T0, pending=True)]
    plan = rec.plan_batch(records, [{"id": -1, "flotte": "A"}, {"id": 99, "flotte": "B"}])
    assert plan.is_empty
    assert [(c.id, c.fields) for c in plan.deferred] == [(-1, {"flotte": "A"})]


def test_plan_cell():
    rec = BatchReconciler(MAINTENANCE, floor=2)
    records = [_rec(1, libelle="x")] + _blanks(2, 3)
    plan = rec.plan_cell(records, 1, "libelle", "")
    assert plan.action is CellAction.UPDATE
    assert plan.value is None

    only = [_rec(1, flotte="", engin="", code_operation="X")] + _blanks(2, 3)
    plan = rec.plan_cell(only, 1, "code_operation", "")
    assert plan.action is CellAction.DELETE

    assert rec.plan_cell(records, 42, "flotte", "A") is None
    assert rec.plan_cell(records, 1, "entree", "garbage") is None
