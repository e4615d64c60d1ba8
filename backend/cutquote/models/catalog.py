from __future__ import annotations

from ..extensions import db
from cutquote.time_utils import to_utc_z
from .quotes import money_str


class Material(db.Model):
    """
    Sheet material available for cutting.

    SOFT DELETE: Deactivated materials stay referenced by existing line
    items but cannot be assigned to new ones.
    """
    __tablename__ = "materials"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    thickness_mm = db.Column(db.Numeric(8, 2), nullable=False)
    price_per_sqm = db.Column(db.Numeric(12, 2), nullable=False)
    cutting_speed_factor = db.Column(db.Numeric(6, 2), nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "thickness_mm": money_str(self.thickness_mm),
            "price_per_sqm": money_str(self.price_per_sqm),
            "cutting_speed_factor": money_str(self.cutting_speed_factor),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
