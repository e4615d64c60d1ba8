from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from cutquote.time_utils import to_utc_z, to_iso_date


def money_str(value: Decimal | None) -> str | None:
    """Serialize a Numeric column without float rounding ("25.00")."""
    if value is None:
        return None
    return format(Decimal(value), "f")


class Quote(db.Model):
    """
    Price quotation for one customer's cutting job.

    WHY: The quote is the unit the lifecycle state machine moves through
    intake, triage, pricing and customer decision. Totals are owned by the
    pricing aggregator and are never written from client input.

    REVISIONS:
    - revision_number 0 is an original quote with no parent
    - revision_number N > 0 is numbered "<root number>-R<N>" and points at
      the lineage ROOT through parent_quote_id (star, not chain)
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.Index("ix_quotes_status_created", "status", "created_at"),
        db.Index("ix_quotes_operator_status", "operator_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "Q000123", "Q000123-R2")
    quote_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    revision_number = db.Column(db.Integer, nullable=False, default=0)
    parent_quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True, index=True)

    status = db.Column(db.String(32), nullable=False, default="pending", index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # Nullable until an operator claims the quote or an admin assigns one
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    notes = db.Column(db.Text, nullable=True)
    deadline = db.Column(db.Date, nullable=True)
    shipping_address = db.Column(db.JSON, nullable=False)

    # Aggregates (NULL = not yet priced)
    total_cutting_price = db.Column(db.Numeric(12, 2), nullable=True)
    total_customer_price = db.Column(db.Numeric(12, 2), nullable=True)
    production_time_hours = db.Column(db.Numeric(10, 2), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    declined_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Payment tracking
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)  # unpaid, paid, failed, canceled
    payment_reference = db.Column(db.String(128), nullable=True, unique=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    parent = db.relationship("Quote", remote_side=[id], backref=db.backref("revisions", lazy=True))
    customer = db.relationship("User", foreign_keys=[customer_id])
    operator = db.relationship("User", foreign_keys=[operator_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_revision(self) -> bool:
        return self.revision_number > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_number": self.quote_number,
            "revision_number": self.revision_number,
            "parent_quote_id": self.parent_quote_id,
            "status": self.status,
            "customer_id": self.customer_id,
            "operator_id": self.operator_id,
            "notes": self.notes,
            "deadline": to_iso_date(self.deadline),
            "shipping_address": self.shipping_address,
            "total_cutting_price": money_str(self.total_cutting_price),
            "total_customer_price": money_str(self.total_customer_price),
            "production_time_hours": money_str(self.production_time_hours),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "sent_at": to_utc_z(self.sent_at),
            "accepted_at": to_utc_z(self.accepted_at),
            "declined_at": to_utc_z(self.declined_at),
            "payment_status": self.payment_status,
            "version_id": self.version_id,
        }


class LineItem(db.Model):
    """One cuttable part (one uploaded drawing) within a quote."""
    __tablename__ = "line_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_line_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, index=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)

    # Operator cost estimate / admin sale price (per unit)
    cutting_price = db.Column(db.Numeric(12, 2), nullable=True)
    customer_price = db.Column(db.Numeric(12, 2), nullable=True)
    production_time_hours = db.Column(db.Numeric(10, 2), nullable=True)

    # File references (storage is external; these are opaque URLs/names)
    dxf_file_url = db.Column(db.String(1024), nullable=True)
    dxf_file_name = db.Column(db.String(255), nullable=True)
    pdf_file_url = db.Column(db.String(1024), nullable=True)
    pdf_file_name = db.Column(db.String(255), nullable=True)
    part_dimensions = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    quote = db.relationship("Quote", backref=db.backref("line_items", lazy=True, order_by="LineItem.id"))
    material = db.relationship("Material")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "material_id": self.material_id,
            "material": self.material.to_dict() if self.material else None,
            "quantity": self.quantity,
            "cutting_price": money_str(self.cutting_price),
            "customer_price": money_str(self.customer_price),
            "production_time_hours": money_str(self.production_time_hours),
            "dxf_file_url": self.dxf_file_url,
            "dxf_file_name": self.dxf_file_name,
            "pdf_file_url": self.pdf_file_url,
            "pdf_file_name": self.pdf_file_name,
            "part_dimensions": self.part_dimensions,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
