# Overview: Production-day state machine (status, finalize, reopen).

"""
Production day lifecycle.

STATES (derived from the snapshot row, never stored separately):
1. OPEN: no snapshot exists for the date
2. FINALIZED: snapshot exists with is_open=False; ledger rows are gone
3. OPEN_REOPENED: snapshot exists with is_open=True; behaves like OPEN but
   keeps the finalize/reopen trail

TRANSITIONS:
- OPEN / OPEN_REOPENED -> FINALIZED (finalize_day)
- FINALIZED -> OPEN_REOPENED (reopen_day, admin only at the HTTP boundary)

Both transitions take the exclusive day lock and run in one transaction, so
the snapshot write and the ledger clear (or rebuild) land together or not
at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app

from ..extensions import db
from ..models import ProductionDaySnapshot, ProductionEntry
from prodday.time_utils import local_today
from . import history_service, reopen_service, snapshot_service
from .audit_service import ENTITY_DAY, log_audit
from .concurrency import lock_day, lock_for_update, run_in_transaction
from .errors import (
    AlreadyFinalized,
    AlreadyOpen,
    CannotFinalizeFutureDate,
    DayClosed,
    SnapshotNotFound,
    UncheckedEntries,
)


DAY_STATE_OPEN = "OPEN"
DAY_STATE_FINALIZED = "FINALIZED"
DAY_STATE_OPEN_REOPENED = "OPEN_REOPENED"


@dataclass
class DayStatus:
    session_date: date
    state: str
    is_open: bool
    can_finalize: bool
    reason: str | None
    snapshot: ProductionDaySnapshot | None

    def to_dict(self) -> dict:
        return {
            "session_date": self.session_date.isoformat(),
            "state": self.state,
            "is_open": self.is_open,
            "can_finalize": self.can_finalize,
            "reason": self.reason,
            "snapshot": self.snapshot.to_dict(include_payload=False) if self.snapshot else None,
        }


def _state_of(snapshot: ProductionDaySnapshot | None) -> str:
    if snapshot is None:
        return DAY_STATE_OPEN
    return DAY_STATE_OPEN_REOPENED if snapshot.is_open else DAY_STATE_FINALIZED


def get_day_status(session_date: date) -> DayStatus:
    """
    Status of a production day.

    is_open is False only when a closed snapshot exists. can_finalize is
    False only for a date after today (production timezone); a closed day
    keeps can_finalize=True and finalize_day rejects it with AlreadyFinalized.
    """
    snapshot = snapshot_service.get_snapshot(session_date)
    state = _state_of(snapshot)
    is_open = state != DAY_STATE_FINALIZED

    reason = None
    if session_date > local_today():
        reason = f"Day {session_date.isoformat()} is in the future and cannot be finalized yet"

    return DayStatus(
        session_date=session_date,
        state=state,
        is_open=is_open,
        can_finalize=reason is None,
        reason=reason,
        snapshot=snapshot,
    )


def ensure_day_open(session_date: date) -> None:
    """
    Gate for every ledger mutation.

    Raises:
        DayClosed: if the day has a closed snapshot
    """
    snapshot = snapshot_service.get_snapshot(session_date)
    if snapshot is not None and not snapshot.is_open:
        raise DayClosed(f"Day {session_date.isoformat()} is finalized; entries cannot be changed")


def finalize_day(
    session_date: date,
    user_id: int | None,
    client_entries: list[dict] | None = None,
) -> ProductionDaySnapshot:
    """
    Freeze a day's ledger into its snapshot and clear the ledger.

    The payload is always built from the ledger as re-read under the day
    lock. client_entries (what the caller was looking at) is only compared
    against it; a mismatch is logged, never trusted.

    Raises:
        CannotFinalizeFutureDate: date is after today
        AlreadyFinalized: a closed snapshot already exists
        UncheckedEntries: FINALIZE_REQUIRE_ALL_CHECKED is on and some entry is unchecked
    """
    today = local_today()
    require_all_checked = bool(current_app.config.get("FINALIZE_REQUIRE_ALL_CHECKED"))

    def _op():
        if session_date > today:
            raise CannotFinalizeFutureDate(
                f"Cannot finalize {session_date.isoformat()}: date is in the future"
            )

        lock_day(session_date)

        snapshot = snapshot_service.get_snapshot(session_date, for_update=True)
        if snapshot is not None and not snapshot.is_open:
            raise AlreadyFinalized(f"Day {session_date.isoformat()} is already finalized")

        entries = lock_for_update(
            db.session.query(ProductionEntry).filter_by(session_date=session_date)
        ).order_by(ProductionEntry.inserted_at.desc()).all()

        if require_all_checked:
            unchecked = [e.product_code for e in entries if not e.checked]
            if unchecked:
                raise UncheckedEntries(
                    f"{len(unchecked)} entries are not checked yet: {', '.join(unchecked[:5])}"
                )

        payload = snapshot_service.build_payload(entries)
        snapshot = snapshot_service.write_snapshot(session_date, payload, user_id, existing=snapshot)
        history_service.record_finalized_entries(payload, session_date, user_id)

        db.session.query(ProductionEntry).filter_by(session_date=session_date).delete(
            synchronize_session=False
        )
        return snapshot

    snapshot = run_in_transaction(_op)

    if client_entries is not None:
        _warn_on_stale_view(session_date, snapshot, client_entries)

    current_app.logger.info(
        "Production day %s finalized by user %s (%s items, %s units)",
        session_date.isoformat(), user_id, snapshot.total_items, snapshot.total_quantity,
    )
    log_audit(
        user_id,
        "finalize",
        ENTITY_DAY,
        entity_id=snapshot.id,
        entity_code=session_date.isoformat(),
        details={
            "session_date": session_date.isoformat(),
            "total_items": snapshot.total_items,
            "total_quantity": snapshot.total_quantity,
        },
    )
    return snapshot


def _warn_on_stale_view(session_date: date, snapshot: ProductionDaySnapshot, client_entries: list[dict]) -> None:
    client_quantity = 0
    for item in client_entries:
        try:
            client_quantity += int(item.get("quantity") or 0)
        except (TypeError, ValueError, AttributeError):
            continue
    if len(client_entries) != snapshot.total_items or client_quantity != snapshot.total_quantity:
        current_app.logger.warning(
            "Finalize of %s used a stale client view: client saw %s items/%s units, ledger had %s/%s",
            session_date.isoformat(), len(client_entries), client_quantity,
            snapshot.total_items, snapshot.total_quantity,
        )


def reopen_day(session_date: date, user_id: int | None) -> ProductionDaySnapshot:
    """
    Reopen a finalized day: rebuild the ledger from the snapshot payload.

    The snapshot row is kept; is_open flips to True and reopened_at /
    reopened_by are stamped. finalized_at / finalized_by stay as they were.

    Raises:
        SnapshotNotFound: the day was never finalized
        AlreadyOpen: the snapshot is already open
        CorruptSnapshot: the payload cannot be rebuilt (nothing is written)
    """
    def _op():
        lock_day(session_date)

        snapshot = snapshot_service.get_snapshot(session_date, for_update=True)
        if snapshot is None:
            raise SnapshotNotFound(f"No finalized snapshot for {session_date.isoformat()}")
        if snapshot.is_open:
            raise AlreadyOpen(f"Day {session_date.isoformat()} is already open")

        restored = reopen_service.rebuild_ledger(snapshot)
        history_service.record_reopened_entries(
            [row for row in restored if not row["product_id_generated"]],
            session_date,
            user_id,
        )
        snapshot_service.mark_reopened(snapshot, user_id)
        return snapshot, len(restored)

    snapshot, restored_count = run_in_transaction(_op)

    current_app.logger.info(
        "Production day %s reopened by user %s (%s entries restored)",
        session_date.isoformat(), user_id, restored_count,
    )
    log_audit(
        user_id,
        "reopen",
        ENTITY_DAY,
        entity_id=snapshot.id,
        entity_code=session_date.isoformat(),
        details={"session_date": session_date.isoformat(), "restored_entries": restored_count},
    )
    return snapshot
