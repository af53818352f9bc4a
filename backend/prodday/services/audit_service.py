# Overview: Best-effort business audit trail for ledger and day lifecycle actions.

"""
Audit log writer.

INVARIANTS:
- Called only after the primary transaction has committed.
- Written in its own transaction; a failure is logged and dropped so it can
  never roll back the action it describes.
- details always carries a human "message" and a stable "action" key.
"""

from __future__ import annotations

from typing import Any

from flask import current_app, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLog


ENTITY_ENTRY = "production_entry"
ENTITY_DAY = "production_day"


def log_audit(
    user_id: int | None,
    action: str,
    entity: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog | None:
    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = request.headers.get("User-Agent")

    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        entity_code=entity_code,
        details=build_details(action, entity, entity_code, details),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    try:
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Audit write failed for %s:%s (%s)", entity, action, entity_id, exc_info=True
        )
        return None


def build_details(
    action: str,
    entity: str,
    entity_code: str | None,
    details: dict[str, Any] | None,
) -> dict[str, Any]:
    base = dict(details or {})
    if entity_code and "entity_code" not in base:
        base["entity_code"] = entity_code
    if not str(base.get("message") or "").strip():
        base["message"] = default_message(action, entity, entity_code, base)
    if not base.get("action"):
        base["action"] = default_action_key(action, entity, base)
    return base


def default_message(action: str, entity: str, entity_code: str | None, details: dict) -> str:
    key = f"{entity}:{action}"
    label = _product_label(details, entity_code)
    if key == "production_entry:create":
        return f"Entry created: {label}{_qty_suffix(details)}"
    if key == "production_entry:update":
        parts = []
        if details.get("quantity") is not None:
            parts.append(f"quantity: {details['quantity']}")
        if isinstance(details.get("checked"), bool):
            parts.append(f"checked: {'yes' if details['checked'] else 'no'}")
        suffix = f" ({', '.join(parts)})" if parts else ""
        return f"Entry updated: {label}{suffix}"
    if key == "production_entry:delete":
        return f"Entry removed: {label}{_qty_suffix(details)}"
    if key == "production_day:finalize":
        return f"Day {details.get('session_date') or entity_code or '(no date)'} finalized"
    if key == "production_day:reopen":
        return f"Day {details.get('session_date') or entity_code or '(no date)'} reopened"
    return f"{entity.replace('_', ' ')} {action}".strip()


def default_action_key(action: str, entity: str, details: dict) -> str:
    key = f"{entity}:{action}"
    if key == "production_entry:create":
        return "entry_created"
    if key == "production_entry:update":
        if details.get("checked") is True:
            return "entry_checked"
        if details.get("quantity") is not None:
            return "entry_quantity_updated"
        return "entry_updated"
    if key == "production_entry:delete":
        return "entry_deleted"
    if key == "production_day:finalize":
        return "day_finalized"
    if key == "production_day:reopen":
        return "day_reopened"
    return f"{entity}_{action}"


def _product_label(details: dict, entity_code: str | None) -> str:
    code = details.get("product_code") or entity_code
    description = details.get("product_description")
    if code and description:
        return f"{code} - {description}"
    return code or description or "entry"


def _qty_suffix(details: dict) -> str:
    if details.get("quantity") is None:
        return ""
    return f" (qty: {details['quantity']})"


def list_audit_logs(entity: str | None = None, entity_id: str | None = None, limit: int = 100) -> list[AuditLog]:
    query = db.session.query(AuditLog)
    if entity:
        query = query.filter_by(entity=entity)
    if entity_id:
        query = query.filter_by(entity_id=entity_id)
    return query.order_by(AuditLog.id.desc()).limit(limit).all()
