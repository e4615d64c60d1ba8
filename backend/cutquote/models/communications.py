from __future__ import annotations

from ..extensions import db
from cutquote.time_utils import to_utc_z


class Comment(db.Model):
    """
    Append-only communication and audit trail on a quote.

    VISIBILITY:
    - public:   visible to the customer and staff
    - internal: staff only (system notes, revision markers, payment events)

    author_id is NULL for system-generated comments.
    """
    __tablename__ = "comments"
    __table_args__ = (
        db.Index("ix_comments_quote_created", "quote_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    content = db.Column(db.Text, nullable=False)
    visibility = db.Column(db.String(16), nullable=False, default="public")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    author = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "author_id": self.author_id,
            "author_name": self.author.name if self.author else None,
            "author_role": self.author.role if self.author else "system",
            "content": self.content,
            "visibility": self.visibility,
            "created_at": to_utc_z(self.created_at),
        }


class EmailQueueEntry(db.Model):
    """
    Outbound e-mail waiting for the delivery worker.

    The engine only inserts rows; delivery is an external collaborator.
    """
    __tablename__ = "email_queue"
    __table_args__ = (
        db.Index("ix_email_queue_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True, index=True)
    to_email = db.Column(db.String(255), nullable=False)
    template_id = db.Column(db.String(64), nullable=False)
    template_data = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(db.String(16), nullable=False, default="pending")  # pending, sent, failed

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "to_email": self.to_email,
            "template_id": self.template_id,
            "template_data": self.template_data,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
