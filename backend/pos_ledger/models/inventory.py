from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)

REFERENCE_SALE = "sale"
REFERENCE_SALE_UNDO = "sale_undo"
REFERENCE_ADJUSTMENT = "adjustment"
REFERENCE_TYPES = (REFERENCE_SALE, REFERENCE_SALE_UNDO, REFERENCE_ADJUSTMENT)


class Product(db.Model):
    """
    Product master data, owned by the catalog.

    The ledger reads packaging ratios and reorder_level but only ever writes
    stock_in_pieces, and only from stock_ledger_service.apply_movement().

    PACKAGING:
    - 1 sheet = pieces_per_sheet pieces
    - 1 box   = sheets_per_box sheets
    NULL ratios are treated as 1.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_in_pieces >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint(
            "pieces_per_sheet IS NULL OR pieces_per_sheet >= 1",
            name="ck_products_pieces_per_sheet",
        ),
        db.CheckConstraint(
            "sheets_per_box IS NULL OR sheets_per_box >= 1",
            name="ck_products_sheets_per_box",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    # Canonical stock count, mutated exclusively by the ledger
    stock_in_pieces = db.Column(db.Integer, nullable=False, default=0)

    pieces_per_sheet = db.Column(db.Integer, nullable=True, default=1)
    sheets_per_box = db.Column(db.Integer, nullable=True, default=1)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_in_pieces}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "stock_in_pieces": self.stock_in_pieces,
            "pieces_per_sheet": self.pieces_per_sheet,
            "sheets_per_box": self.sheets_per_box,
            "reorder_level": self.reorder_level,
            "is_low_stock": self.stock_in_pieces <= (self.reorder_level or 0),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    IMMUTABLE: rows are never updated or deleted (enforced by the ORM
    listeners below and by the CHECK constraints on the table).

    quantity is always a positive piece count; direction lives in
    movement_type. A sale_undo movement points at the out movement it
    reverses through reversal_of_id, which is unique so a movement can only
    ever be reversed once.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("movement_type IN ('in', 'out')", name="ck_stock_movements_type"),
        db.CheckConstraint(
            "(movement_type = 'out' AND stock_after = stock_before - quantity)"
            " OR (movement_type = 'in' AND stock_after = stock_before + quantity)",
            name="ck_stock_movements_balance",
        ),
        db.CheckConstraint("stock_after >= 0", name="ck_stock_movements_after_non_negative"),
        db.UniqueConstraint("reversal_of_id", name="uq_stock_movements_reversal_of"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        db.Index("ix_stock_movements_product_id_id", "product_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    # Loosely typed reference: a sale id for sale/sale_undo, NULL for adjustments
    reference_id = db.Column(db.Integer, nullable=True)
    reference_type = db.Column(db.String(32), nullable=False)

    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    reversal_of_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy="dynamic"))
    reversal_of = db.relationship("StockMovement", remote_side=[id])

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.id}: {self.movement_type} {self.quantity} "
            f"product={self.product_id} {self.stock_before}->{self.stock_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "reversal_of_id": self.reversal_of_id,
            "created_at": to_utc_z(self.created_at),
        }


class ImmutableMovementError(RuntimeError):
    """Raised when code attempts to rewrite ledger history."""


@event.listens_for(StockMovement, "before_update")
def _block_movement_update(mapper, connection, target):
    raise ImmutableMovementError(f"Stock movement {target.id} is append-only and cannot be modified")


@event.listens_for(StockMovement, "before_delete")
def _block_movement_delete(mapper, connection, target):
    raise ImmutableMovementError(f"Stock movement {target.id} is append-only and cannot be deleted")


class LowStockAlert(db.Model):
    """Low-stock signal recorded for the notification collaborator."""
    __tablename__ = "low_stock_alerts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    stock_after = db.Column(db.Integer, nullable=False)
    reorder_level = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "stock_after": self.stock_after,
            "reorder_level": self.reorder_level,
            "created_at": to_utc_z(self.created_at),
        }
