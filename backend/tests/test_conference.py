"""Conference latch: check once, frozen afterwards."""

import pytest

from prodday.extensions import db
from prodday.models import ProductionEntry
from prodday.services import conference_service, day_service, entry_service
from prodday.services.errors import AlreadyChecked, EntryNotFound

from conftest import PAST_DAY


def test_check_marks_entry(operator, checker, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 4, operator.id)

    checked = conference_service.check_entry(entry.id, checker.id)

    assert checked.checked is True
    assert checked.checked_by == checker.id
    assert checked.checked_at is not None
    assert checked.to_dict()["checked_by_name"] == "Carlos Checker"


def test_second_check_is_rejected(operator, checker, admin, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 4, operator.id)
    conference_service.check_entry(entry.id, checker.id)

    with pytest.raises(AlreadyChecked):
        conference_service.check_entry(entry.id, admin.id)

    db.session.expire_all()
    assert db.session.get(ProductionEntry, entry.id).checked_by == checker.id


def test_check_unknown_entry(checker):
    with pytest.raises(EntryNotFound):
        conference_service.check_entry("does-not-exist", checker.id)


def test_checked_entries_survive_finalize_and_reopen(operator, checker, admin, product_a):
    entry = entry_service.add_entry(PAST_DAY, product_a, 4, operator.id)
    conference_service.check_entry(entry.id, checker.id)

    day_service.finalize_day(PAST_DAY, operator.id)
    day_service.reopen_day(PAST_DAY, admin.id)

    restored = db.session.query(ProductionEntry).filter_by(session_date=PAST_DAY).one()
    assert restored.checked is True
    assert restored.checked_by == checker.id

    with pytest.raises(AlreadyChecked):
        entry_service.adjust_quantity(restored.id, 1, operator.id)
