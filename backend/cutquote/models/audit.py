from __future__ import annotations

from ..extensions import db
from cutquote.time_utils import to_utc_z


class AuditLogEntry(db.Model):
    """
    Append-only record of notable engine actions (revision created,
    e-mails queued, payment processed).

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("ix_audit_log_table_record", "table_name", "record_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    table_name = db.Column(db.String(64), nullable=False)
    record_id = db.Column(db.String(64), nullable=False)
    action = db.Column(db.String(64), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    new_data = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "action": self.action,
            "user_id": self.user_id,
            "new_data": self.new_data,
            "created_at": to_utc_z(self.created_at),
        }
