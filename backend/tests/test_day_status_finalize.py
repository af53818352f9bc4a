"""Day status and finalize transitions."""

import logging

import pytest

from prodday.extensions import db
from prodday.models import Product, ProductionDayLock
from prodday.models.catalog import HISTORY_TYPE_PRODUCTION
from prodday.services import conference_service, day_service, entry_service, history_service, snapshot_service
from prodday.services.day_service import DAY_STATE_FINALIZED, DAY_STATE_OPEN, DAY_STATE_OPEN_REOPENED
from prodday.services.errors import (
    AlreadyFinalized,
    CannotFinalizeFutureDate,
    DayClosed,
    UncheckedEntries,
)
from prodday.time_utils import local_today

from conftest import PAST_DAY, ledger_rows, make_snapshot


def test_day_without_snapshot_is_open(db_session):
    status = day_service.get_day_status(PAST_DAY)

    assert status.state == DAY_STATE_OPEN
    assert status.is_open is True
    assert status.can_finalize is True
    assert status.reason is None
    assert status.snapshot is None


def test_future_day_is_open_but_cannot_finalize(db_session, future_day):
    status = day_service.get_day_status(future_day)

    assert status.is_open is True
    assert status.can_finalize is False
    assert "future" in status.reason


def test_closed_snapshot_closes_day(db_session):
    make_snapshot(PAST_DAY, [])

    status = day_service.get_day_status(PAST_DAY)

    assert status.state == DAY_STATE_FINALIZED
    assert status.is_open is False
    assert status.can_finalize is True
    assert status.reason is None


def test_open_snapshot_keeps_day_open(db_session):
    make_snapshot(PAST_DAY, [], is_open=True)

    status = day_service.get_day_status(PAST_DAY)

    assert status.state == DAY_STATE_OPEN_REOPENED
    assert status.is_open is True
    assert status.can_finalize is True


def test_ensure_day_open_raises_for_closed_day(db_session):
    make_snapshot(PAST_DAY, [])

    with pytest.raises(DayClosed):
        day_service.ensure_day_open(PAST_DAY)


def test_finalize_freezes_ledger_and_clears_it(operator, product_a, product_b):
    entry_service.add_entry(PAST_DAY, product_a, 3, operator.id)
    entry_service.add_entry(PAST_DAY, product_b, 5, operator.id)

    snapshot = day_service.finalize_day(PAST_DAY, operator.id)

    assert snapshot.total_items == 2
    assert snapshot.total_quantity == 8
    assert snapshot.is_open is False
    assert snapshot.finalized_by == operator.id
    assert snapshot.finalized_at is not None
    assert ledger_rows(PAST_DAY) == []

    payload = snapshot_service.normalize_payload(snapshot.payload)
    assert {(e["product_code"], e["quantity"], e["checked"]) for e in payload} == {
        ("WID-A", 3, False),
        ("WID-B", 5, False),
    }
    assert day_service.get_day_status(PAST_DAY).is_open is False


def test_finalize_today_succeeds(operator, product_a):
    today = local_today()
    entry_service.add_entry(today, product_a, 1, operator.id)

    snapshot = day_service.finalize_day(today, operator.id)

    assert snapshot.session_date == today


def test_finalize_empty_day(operator):
    snapshot = day_service.finalize_day(PAST_DAY, operator.id)

    assert snapshot.total_items == 0
    assert snapshot.total_quantity == 0
    assert snapshot.payload == []


def test_finalize_future_day_rejected(operator, product_a, future_day):
    entry_service.add_entry(future_day, product_a, 1, operator.id)

    with pytest.raises(CannotFinalizeFutureDate):
        day_service.finalize_day(future_day, operator.id)

    assert len(ledger_rows(future_day)) == 1
    assert snapshot_service.get_snapshot(future_day) is None


def test_finalize_twice_rejected(operator, product_a):
    entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)
    first = day_service.finalize_day(PAST_DAY, operator.id)
    finalized_at = first.finalized_at

    with pytest.raises(AlreadyFinalized):
        day_service.finalize_day(PAST_DAY, operator.id)

    db.session.expire_all()
    assert snapshot_service.get_snapshot(PAST_DAY).finalized_at == finalized_at


def test_finalize_records_history_and_totals(operator, product_a):
    entry_service.add_entry(PAST_DAY, product_a, 3, operator.id)

    day_service.finalize_day(PAST_DAY, operator.id)

    history = history_service.get_product_history(product_a.id)
    assert [(h.type, h.quantity) for h in history] == [(HISTORY_TYPE_PRODUCTION, 3)]
    product = db.session.get(Product, product_a.id)
    assert product.total_produced == 3
    assert product.last_produced_at is not None


def test_finalize_uses_ledger_not_client_view(app, operator, product_a, product_b, caplog):
    entry_service.add_entry(PAST_DAY, product_a, 3, operator.id)
    entry_service.add_entry(PAST_DAY, product_b, 5, operator.id)
    stale_view = [{"product_code": "WID-A", "quantity": 3}]

    with caplog.at_level(logging.WARNING, logger=app.logger.name):
        snapshot = day_service.finalize_day(PAST_DAY, operator.id, client_entries=stale_view)

    assert snapshot.total_items == 2
    assert snapshot.total_quantity == 8
    assert "stale client view" in caplog.text


def test_finalize_requires_checks_when_configured(app, monkeypatch, operator, checker, product_a, product_b):
    monkeypatch.setitem(app.config, "FINALIZE_REQUIRE_ALL_CHECKED", True)
    first = entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)
    entry_service.add_entry(PAST_DAY, product_b, 1, operator.id)
    conference_service.check_entry(first.id, checker.id)

    with pytest.raises(UncheckedEntries):
        day_service.finalize_day(PAST_DAY, operator.id)

    assert len(ledger_rows(PAST_DAY)) == 2
    assert snapshot_service.get_snapshot(PAST_DAY) is None


def test_finalize_creates_day_lock_row(operator):
    day_service.finalize_day(PAST_DAY, operator.id)

    assert db.session.get(ProductionDayLock, PAST_DAY) is not None


def test_every_mutator_rejects_closed_day(operator, checker, product_a):
    from prodday.models import ProductionEntry
    from prodday.time_utils import utcnow

    make_snapshot(PAST_DAY, [])
    stray = ProductionEntry(
        session_date=PAST_DAY,
        product_id=product_a.id,
        product_code=product_a.code,
        product_description=product_a.description,
        quantity=2,
        inserted_at=utcnow(),
    )
    db.session.add(stray)
    db.session.commit()
    entry_id = stray.id

    with pytest.raises(DayClosed):
        entry_service.add_entry(PAST_DAY, product_a, 1, operator.id)
    with pytest.raises(DayClosed):
        entry_service.set_quantity(entry_id, 5, operator.id)
    with pytest.raises(DayClosed):
        entry_service.adjust_quantity(entry_id, 1, operator.id)
    with pytest.raises(DayClosed):
        entry_service.delete_entry(entry_id, operator.id)
    with pytest.raises(DayClosed):
        conference_service.check_entry(entry_id, checker.id)

    db.session.expire_all()
    rows = ledger_rows(PAST_DAY)
    assert [(r.quantity, r.checked) for r in rows] == [(2, False)]
