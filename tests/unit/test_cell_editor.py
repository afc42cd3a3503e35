from __future__ import annotations

from datetime import UTC, date, datetime

from fleetgrid.grid.cell_editor import CellEditor, EditMode, cell_highlight
from fleetgrid.models.record import CONTACT, MAINTENANCE, Record

T0 = datetime(2025, 1, 6, 8, 0, tzinfo=UTC)
TODAY = date(2025, 1, 6)


def _rec(**values) -> Record:
    base = {"flotte": "TGV", "engin": "101", "code_operation": "VL"}
    base.update(values)
    return Record(id=7, values=base, created_at=T0)


def test_text_cell_click_type_enter_commits_change():
    ed = CellEditor(_rec(), MAINTENANCE.field("engin"), today=TODAY)
    assert ed.click() is EditMode.INLINE
    ed.type("202")
    commit = ed.key("Enter")
    assert ed.mode is EditMode.VIEW
    assert commit is not None
    assert commit.id == 7
    assert commit.fields == {"engin": "202"}
    assert not commit.batch


def test_unchanged_value_does_not_commit():
    ed = CellEditor(_rec(), MAINTENANCE.field("engin"), today=TODAY)
    ed.click()
    assert ed.blur() is None
    assert ed.mode is EditMode.VIEW


def test_escape_reverts_draft():
    ed = CellEditor(_rec(), MAINTENANCE.field("flotte"), today=TODAY)
    ed.click()
    ed.type("XXX")
    assert ed.key("Escape") is None
    assert ed.draft == "TGV"
    assert ed.mode is EditMode.VIEW


def test_blur_commits_inline_edit():
    ed = CellEditor(_rec(), MAINTENANCE.field("libelle"), today=TODAY)
    ed.double_click()
    ed.type("Visite")
    assert ed.blur().fields == {"libelle": "Visite"}


def test_date_cell_needs_double_click():
    ed = CellEditor(_rec(), MAINTENANCE.field("entree"), today=TODAY)
    assert ed.click() is EditMode.VIEW
    assert ed.double_click() is EditMode.PICKER


def test_picking_entry_date_sets_default_time_and_week_in_one_batch():
    ed = CellEditor(_rec(), MAINTENANCE.field("entree"), today=TODAY)
    ed.double_click()
    commit = ed.choose(date(2025, 3, 12))
    assert commit.batch
    assert commit.fields["entree"] == datetime(2025, 3, 12, 7, 0)
    assert commit.fields["semaine"] == "11"


def test_next_year_week_label_carries_the_year():
    ed = CellEditor(_rec(), MAINTENANCE.field("entree"), today=TODAY)
    ed.double_click()
    commit = ed.choose(date(2026, 1, 14))
    assert commit.fields["semaine"] == "03/2026"


def test_picking_exit_date_uses_nine_oclock():
    ed = CellEditor(_rec(), MAINTENANCE.field("sortie"), today=TODAY)
    ed.double_click()
    commit = ed.choose(date(2025, 3, 12))
    assert commit.fields == {"sortie": datetime(2025, 3, 12, 9, 0)}
    assert not commit.batch


def test_status_picker_empty_choice_clears():
    ed = CellEditor(_rec(validation_rdv="En attente"), MAINTENANCE.field("validation_rdv"), today=TODAY)
    ed.double_click()
    commit = ed.choose("")
    assert commit.fields == {"validation_rdv": None}


def test_picker_blur_cancels():
    ed = CellEditor(_rec(), MAINTENANCE.field("validation_rdv"), today=TODAY)
    ed.double_click()
    assert ed.blur() is None
    assert ed.mode is EditMode.VIEW


def test_non_editable_field_stays_in_view():
    rec = Record(id=1, values={"site": "Lyon", "nom": "A", "ordre": 1}, created_at=T0)
    ed = CellEditor(rec, CONTACT.field("ordre"), today=TODAY)
    assert ed.click() is EditMode.VIEW
    assert ed.double_click() is EditMode.VIEW


def test_deadline_highlight():
    spec = MAINTENANCE.field("butee")
    assert cell_highlight(spec, "01/01/2025", TODAY) == "red"
    assert cell_highlight(spec, "01/02/2025", TODAY) is None
    assert cell_highlight(spec, "120000 KMS", TODAY) == "#0070C0"
    assert cell_highlight(MAINTENANCE.field("libelle"), "01/01/2020", TODAY) is None
