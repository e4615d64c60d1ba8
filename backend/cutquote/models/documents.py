from __future__ import annotations

from ..extensions import db
from cutquote.time_utils import to_utc_z
from .quotes import money_str


class DocumentSequence(db.Model):
    """
    Monotonic counter per document type ("quote", "order").

    Incremented with a single UPDATE ... SET next_number = next_number + 1
    so concurrent allocations never hand out the same number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sequence_name = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)


class Order(db.Model):
    """
    Production order created from an accepted quote.

    One order per quote. Fulfilment timestamps are stamped the first time
    the order enters the matching status.
    """
    __tablename__ = "orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, unique=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(db.String(32), nullable=False, default="pending", index=True)  # pending, in_production, completed, shipped
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    shipping_tracking_number = db.Column(db.String(128), nullable=True)
    invoice_url = db.Column(db.String(1024), nullable=True)

    production_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    production_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    quote = db.relationship("Quote", backref=db.backref("order", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "quote_id": self.quote_id,
            "quote_number": self.quote.quote_number if self.quote else None,
            "customer_id": self.customer_id,
            "operator_id": self.operator_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount": money_str(self.total_amount),
            "shipping_tracking_number": self.shipping_tracking_number,
            "invoice_url": self.invoice_url,
            "production_started_at": to_utc_z(self.production_started_at),
            "production_completed_at": to_utc_z(self.production_completed_at),
            "shipped_at": to_utc_z(self.shipped_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
