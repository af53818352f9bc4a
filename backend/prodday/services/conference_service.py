# Overview: Conference (second-person check) of ledger entries.

"""
Conference is a one-way latch per entry: once checked, the entry is frozen
against every ledger mutator (the guard itself lives in
entry_service.load_mutable_entry). There is no uncheck.
"""

from __future__ import annotations

from ..extensions import db
from ..models import ProductionEntry
from prodday.time_utils import utcnow
from .audit_service import ENTITY_ENTRY, log_audit
from .concurrency import run_in_transaction
from .entry_service import load_mutable_entry


def check_entry(entry_id: str, user_id: int | None) -> ProductionEntry:
    """
    Mark an entry as conferred by user_id.

    Raises:
        EntryNotFound, AlreadyChecked (second check included), DayClosed
    """
    def _op():
        entry = load_mutable_entry(entry_id)
        entry.checked = True
        entry.checked_by = user_id
        entry.checked_at = utcnow()
        db.session.flush()
        return entry

    entry = run_in_transaction(_op)
    log_audit(
        user_id,
        "update",
        ENTITY_ENTRY,
        entity_id=entry.id,
        entity_code=entry.product_code,
        details={
            "product_code": entry.product_code,
            "product_description": entry.product_description,
            "checked": True,
        },
    )
    return entry
