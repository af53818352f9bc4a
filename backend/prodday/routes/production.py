# Overview: Flask API routes for production days and ledger entries; parses input and returns JSON responses.

"""
Production Day API Routes

DESIGN:
- Day lifecycle: status -> finalize -> (admin) reopen
- Ledger entries are mutable only while the day is open and the entry is
  unchecked; the services enforce both, the routes only translate
- Domain errors are returned verbatim as {"error", "code"} with the status
  the error class declares

Dates in paths are calendar dates (YYYY-MM-DD).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_admin
from ..services import catalog_service, conference_service, day_service, entry_service, snapshot_service
from ..services.errors import ProductionDayError
from prodday.time_utils import parse_session_date


production_bp = Blueprint("production", __name__, url_prefix="/api/production")


def _parse_date(raw: str):
    try:
        return parse_session_date(raw), None
    except ValueError:
        return None, (jsonify({"error": f"Invalid date: {raw!r} (expected YYYY-MM-DD)"}), 400)


def _domain_error(e: ProductionDayError):
    return jsonify(e.to_dict()), e.status_code


# =============================================================================
# DAY STATUS & READS
# =============================================================================

@production_bp.get("/days/<session_date>/status")
@require_auth
def day_status_route(session_date: str):
    """Day status: is_open, can_finalize, reason, snapshot metadata."""
    day, error = _parse_date(session_date)
    if error:
        return error

    try:
        status = day_service.get_day_status(day)
        return jsonify(status.to_dict()), 200
    except Exception:
        current_app.logger.exception("Failed to load day status")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.get("/days/<session_date>/entries")
@require_auth
def list_entries_route(session_date: str):
    """
    Entries of a day.

    Open day: live ledger rows (source="ledger").
    Finalized day: the frozen snapshot payload (source="snapshot").
    """
    day, error = _parse_date(session_date)
    if error:
        return error

    try:
        status = day_service.get_day_status(day)
        if status.is_open:
            entries = [e.to_dict() for e in entry_service.list_by_date(day)]
            source = "ledger"
        else:
            entries = snapshot_service.snapshot_entries(day)
            source = "snapshot"
        return jsonify({
            "session_date": day.isoformat(),
            "is_open": status.is_open,
            "source": source,
            "entries": entries,
        }), 200
    except ProductionDayError as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to list entries")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.get("/days/<session_date>/summary")
@require_auth
def summary_route(session_date: str):
    """Totals for a day, from the ledger while open and the snapshot once finalized."""
    day, error = _parse_date(session_date)
    if error:
        return error

    try:
        status = day_service.get_day_status(day)
        if status.is_open:
            return jsonify({**entry_service.summary(day), "source": "ledger"}), 200
        return jsonify({
            "session_date": day.isoformat(),
            "total_items": status.snapshot.total_items,
            "total_quantity": status.snapshot.total_quantity,
            "source": "snapshot",
        }), 200
    except Exception:
        current_app.logger.exception("Failed to load summary")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.get("/days/<session_date>/snapshot")
@require_auth
def snapshot_route(session_date: str):
    day, error = _parse_date(session_date)
    if error:
        return error

    try:
        snapshot = snapshot_service.get_snapshot(day)
        if not snapshot:
            return jsonify({"error": "Snapshot not found", "code": "NotFound"}), 404
        data = snapshot.to_dict()
        data["payload"] = snapshot_service.normalize_payload(snapshot.payload)
        return jsonify({"snapshot": data}), 200
    except ProductionDayError as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to load snapshot")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LEDGER MUTATIONS
# =============================================================================

@production_bp.post("/days/<session_date>/entries")
@require_auth
def add_entry_route(session_date: str):
    """
    Add a product to the day's ledger.

    Request body:
    {
        "product_code": "ABC-1",     // or "product_id"
        "quantity": 1,               // optional, default 1
        "grouping": true             // optional, default ENTRY_GROUPING_DEFAULT
    }

    Returns 201 with the (new or incremented) entry.
    """
    day, error = _parse_date(session_date)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    product_code = data.get("product_code")
    if not product_id and not product_code:
        return jsonify({"error": "product_code or product_id required"}), 400

    grouping = data.get("grouping", current_app.config.get("ENTRY_GROUPING_DEFAULT", True))
    if not isinstance(grouping, bool):
        return jsonify({"error": "grouping must be a boolean"}), 400

    try:
        product = catalog_service.resolve_product(product_id=product_id, product_code=product_code)
        entry = entry_service.add_entry(
            session_date=day,
            product=product,
            quantity=data.get("quantity", 1),
            user_id=g.current_user.id,
            grouping=grouping,
        )
        return jsonify({"entry": entry.to_dict()}), 201
    except ProductionDayError as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to add production entry")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.patch("/entries/<entry_id>")
@require_auth
def update_entry_route(entry_id: str):
    """
    Update an entry. Exactly one of:

    { "quantity": 5 }     // replace quantity
    { "delta": -1 }       // adjust quantity
    { "checked": true }   // confer the entry (one-way)
    """
    data = request.get_json(silent=True) or {}
    fields = [k for k in ("quantity", "delta", "checked") if data.get(k) is not None]
    if len(fields) != 1:
        return jsonify({"error": "Provide exactly one of quantity, delta, checked"}), 400

    try:
        if "checked" in fields:
            if data["checked"] is not True:
                return jsonify({"error": "Checked entries cannot be unchecked", "code": "AlreadyChecked"}), 400
            entry = conference_service.check_entry(entry_id, g.current_user.id)
        elif "quantity" in fields:
            entry = entry_service.set_quantity(entry_id, data["quantity"], g.current_user.id)
        else:
            entry = entry_service.adjust_quantity(entry_id, data["delta"], g.current_user.id)
        return jsonify({"entry": entry.to_dict()}), 200
    except ProductionDayError as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to update production entry")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.post("/entries/<entry_id>/check")
@require_auth
def check_entry_route(entry_id: str):
    """Confer an entry; it becomes immutable."""
    try:
        entry = conference_service.check_entry(entry_id, g.current_user.id)
        return jsonify({"entry": entry.to_dict()}), 200
    except ProductionDayError as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to check production entry")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.delete("/entries/<entry_id>")
@require_auth
def delete_entry_route(entry_id: str):
    try:
        entry_service.delete_entry(entry_id, g.current_user.id)
        return jsonify({"message": "Entry deleted"}), 200
    except ProductionDayError as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete production entry")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# DAY LIFECYCLE
# =============================================================================

@production_bp.post("/days/<session_date>/finalize")
@require_auth
def finalize_day_route(session_date: str):
    """
    Finalize a day: freeze the ledger into a snapshot and clear it.

    Request body (optional):
    {
        "entries": [...]   // what the client displayed; compared, never trusted
    }

    Returns 201 with the snapshot.
    """
    day, error = _parse_date(session_date)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    client_entries = data.get("entries")
    if client_entries is not None and not isinstance(client_entries, list):
        return jsonify({"error": "entries must be a list"}), 400

    try:
        snapshot = day_service.finalize_day(day, g.current_user.id, client_entries=client_entries)
        return jsonify({"snapshot": snapshot.to_dict()}), 201
    except ProductionDayError as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to finalize production day")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.post("/days/<session_date>/reopen")
@require_auth
@require_admin
def reopen_day_route(session_date: str):
    """Reopen a finalized day (admin only). Rebuilds the ledger from the snapshot."""
    day, error = _parse_date(session_date)
    if error:
        return error

    try:
        snapshot = day_service.reopen_day(day, g.current_user.id)
        return jsonify({"snapshot": snapshot.to_dict(include_payload=False)}), 200
    except ProductionDayError as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to reopen production day")
        return jsonify({"error": "Internal server error"}), 500
