from __future__ import annotations

from ..extensions import db
from prodday.time_utils import to_utc_z


class AuditLog(db.Model):
    """
    Business audit trail (entry created/updated/deleted, day finalized/reopened).

    IMMUTABLE: Never update or delete. Append-only.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(32), nullable=False, index=True)   # create, update, delete, finalize, reopen
    entity = db.Column(db.String(64), nullable=False)               # production_entry, production_day
    entity_id = db.Column(db.String(64), nullable=True)
    entity_code = db.Column(db.String(100), nullable=True)

    details = db.Column(db.JSON, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "entity_code": self.entity_code,
            "details": self.details,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }
