from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
SALE_STATUSES = (STATUS_PENDING, STATUS_COMPLETED)

UNIT_PIECE = "piece"
UNIT_SHEET = "sheet"
UNIT_BOX = "box"
UNIT_TYPES = (UNIT_PIECE, UNIT_SHEET, UNIT_BOX)


class Sale(db.Model):
    """
    Sale document.

    status only tracks workflow position (pending -> completed). A completed
    sale whose stock effect was reversed keeps status=completed; the reversal
    is recorded through is_edited/edited_at/edit_reason and the matching
    sale_undo movements.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'completed')", name="ck_sales_status"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Compensation audit trail
    is_edited = db.Column(db.Boolean, nullable=False, default=False)
    edited_at = db.Column(db.DateTime(timezone=True), nullable=True)
    edit_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    items = db.relationship(
        "SaleLineItem",
        backref="sale",
        lazy=True,
        order_by="SaleLineItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "is_edited": self.is_edited,
            "edited_at": to_utc_z(self.edited_at) if self.edited_at else None,
            "edit_reason": self.edit_reason,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleLineItem(db.Model):
    """Already-priced line on a sale; replaced as a whole set on edit."""
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_line_items_quantity_positive"),
        db.CheckConstraint("unit_type IN ('piece', 'sheet', 'box')", name="ck_sale_line_items_unit_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_type = db.Column(db.String(16), nullable=False, default=UNIT_PIECE)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_type": self.unit_type,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "created_at": to_utc_z(self.created_at),
        }
