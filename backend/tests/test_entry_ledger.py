"""Ledger behaviour for open days: grouping, quantity edits, deletes, listing."""

import pytest
from sqlalchemy.exc import IntegrityError

from prodday.extensions import db
from prodday.models import ProductionEntry
from prodday.models.production import GROUPED_LINE_NO
from prodday.services import entry_service
from prodday.services.errors import (
    AlreadyChecked,
    BelowMinimum,
    DayClosed,
    EntryNotFound,
    InvalidQuantity,
)
from prodday.services import conference_service, day_service
from prodday.time_utils import utcnow

from conftest import PAST_DAY, ledger_rows


def test_grouped_adds_accumulate_into_one_row(operator, product_a):
    first = entry_service.add_entry(PAST_DAY, product_a, 2, operator.id, grouping=True)
    second = entry_service.add_entry(PAST_DAY, product_a, 3, operator.id, grouping=True)

    rows = ledger_rows(PAST_DAY)
    assert len(rows) == 1
    assert rows[0].quantity == 5
    assert rows[0].line_no == GROUPED_LINE_NO
    assert first.id == second.id


def test_ungrouped_adds_create_separate_rows(operator, product_a):
    entry_service.add_entry(PAST_DAY, product_a, 2, operator.id, grouping=False)
    entry_service.add_entry(PAST_DAY, product_a, 3, operator.id, grouping=False)

    rows = ledger_rows(PAST_DAY)
    assert [r.quantity for r in rows] == [2, 3]
    assert len({r.line_no for r in rows}) == 2


def test_grouped_add_after_ungrouped_rows_targets_grouped_slot(operator, product_a):
    entry_service.add_entry(PAST_DAY, product_a, 1, operator.id, grouping=False)
    entry_service.add_entry(PAST_DAY, product_a, 1, operator.id, grouping=False)
    entry_service.add_entry(PAST_DAY, product_a, 4, operator.id, grouping=True)

    rows = ledger_rows(PAST_DAY)
    grouped = [r for r in rows if r.line_no == GROUPED_LINE_NO]
    assert len(grouped) == 1
    assert grouped[0].quantity == 5
    assert len(rows) == 2


def test_add_copies_catalog_fields(operator, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)

    assert entry.product_code == "WID-A"
    assert entry.product_description == "WIDGET A"
    assert entry.photo_url == "https://img.local/a.png"
    assert entry.created_by == operator.id
    assert entry.checked is False


@pytest.mark.parametrize("quantity", [0, -1, "2", 1.5, True])
def test_add_rejects_invalid_quantity(operator, product_a, quantity):
    with pytest.raises(InvalidQuantity):
        entry_service.add_entry(PAST_DAY, product_a, quantity, operator.id)
    assert ledger_rows(PAST_DAY) == []


def test_add_rejects_checked_product(operator, checker, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)
    conference_service.check_entry(entry.id, checker.id)

    with pytest.raises(AlreadyChecked):
        entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)


def test_add_on_closed_day_fails(operator, product_a, product_b):
    entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)
    day_service.finalize_day(PAST_DAY, operator.id)

    with pytest.raises(DayClosed):
        entry_service.add_entry(PAST_DAY, product_b, 1, operator.id)
    assert ledger_rows(PAST_DAY) == []


def test_set_quantity_replaces_value(operator, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 2, operator.id)

    updated = entry_service.set_quantity(entry.id, 7, operator.id)

    assert updated.quantity == 7


def test_set_quantity_rejects_zero(operator, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 2, operator.id)

    with pytest.raises(InvalidQuantity):
        entry_service.set_quantity(entry.id, 0, operator.id)


def test_adjust_quantity_applies_delta(operator, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 3, operator.id)

    assert entry_service.adjust_quantity(entry.id, 2, operator.id).quantity == 5
    assert entry_service.adjust_quantity(entry.id, -4, operator.id).quantity == 1


def test_adjust_quantity_below_one_fails(operator, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 2, operator.id)

    with pytest.raises(BelowMinimum):
        entry_service.adjust_quantity(entry.id, -2, operator.id)

    db.session.expire_all()
    assert db.session.get(ProductionEntry, entry.id).quantity == 2


def test_mutators_reject_checked_entry(operator, checker, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 2, operator.id)
    conference_service.check_entry(entry.id, checker.id)

    with pytest.raises(AlreadyChecked):
        entry_service.set_quantity(entry.id, 3, operator.id)
    with pytest.raises(AlreadyChecked):
        entry_service.adjust_quantity(entry.id, 1, operator.id)
    with pytest.raises(AlreadyChecked):
        entry_service.delete_entry(entry.id, operator.id)

    db.session.expire_all()
    assert db.session.get(ProductionEntry, entry.id).quantity == 2


def test_mutators_on_unknown_entry(operator):
    with pytest.raises(EntryNotFound):
        entry_service.set_quantity("missing", 3, operator.id)
    with pytest.raises(EntryNotFound):
        entry_service.delete_entry("missing", operator.id)


def test_delete_removes_row(operator, product_a, product_b):
    keep = entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)
    gone = entry_service.add_entry(PAST_DAY, product_b, 1, operator.id)

    entry_service.delete_entry(gone.id, operator.id)

    assert [r.id for r in ledger_rows(PAST_DAY)] == [keep.id]


def test_list_by_date_is_scoped_to_the_day(operator, product_a, product_b):
    entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)
    entry_service.add_entry(PAST_DAY, product_b, 1, operator.id)
    entry_service.add_entry(PAST_DAY.replace(day=11), product_a, 9, operator.id)

    entries = entry_service.list_by_date(PAST_DAY)

    assert {e.product_code for e in entries} == {"WID-A", "WID-B"}
    assert entries[0].to_dict()["created_by_name"] == "Olivia Operator"


def test_summary_counts_rows_and_units(operator, product_a, product_b):
    entry_service.add_entry(PAST_DAY, product_a, 3, operator.id)
    entry_service.add_entry(PAST_DAY, product_b, 5, operator.id)

    assert entry_service.summary(PAST_DAY) == {
        "session_date": "2024-01-10",
        "total_items": 2,
        "total_quantity": 8,
    }


def test_summary_of_empty_day(db_session):
    assert entry_service.summary(PAST_DAY)["total_items"] == 0
    assert entry_service.summary(PAST_DAY)["total_quantity"] == 0


def test_storage_rejects_duplicate_slot(operator, product_a):
    entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)

    db.session.add(ProductionEntry(
        session_date=PAST_DAY,
        product_id=product_a.id,
        product_code=product_a.code,
        product_description=product_a.description,
        line_no=GROUPED_LINE_NO,
        quantity=1,
        inserted_at=utcnow(),
    ))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()
