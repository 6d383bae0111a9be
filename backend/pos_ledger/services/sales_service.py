"""
Sales Service - transaction lifecycle state machine

pending   -- complete --> completed     (stock deducted exactly once)
completed -- undo     --> completed     (stock restored, is_edited=True)
any       -- edit     --> pending       (stock restored if still held,
                                         items replaced, is_edited=True)

WHY: Creating a sale never touches stock. Stock moves only when the
status gate flips pending -> completed, and that flip happens in the same
unit of work as every per-item deduction, so a sale can never be
deducted twice and a failed item never leaves earlier items deducted.
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, StateConflictError, ValidationError
from ..extensions import db
from ..models import Sale, StockMovement
from ..models.inventory import MOVEMENT_OUT, REFERENCE_SALE
from ..models.sales import STATUS_COMPLETED, STATUS_PENDING
from ..time_utils import utcnow
from .compensation_service import edit_transaction, undo_transaction  # noqa: F401
from .concurrency import run_atomic
from .conversion_service import to_pieces
from .notification_service import dispatch_low_stock_signals
from .sale_store_service import create_sale_record, get_sale, validate_items
from .stock_ledger_service import (
    apply_movement,
    lock_products,
    low_stock_signals,
    outstanding_sale_pieces,
    sale_movements,
)


def create_transaction(items) -> Sale:
    """Validate and persist a pending sale. No stock effect."""
    def _op():
        validated = validate_items(items)
        return create_sale_record(validated)

    sale = run_atomic(_op)
    current_app.logger.info("Created pending sale %s", sale.id)
    return sale


def _flip_gate(sale_id: int) -> None:
    """Atomic check-and-set: pending -> completed, or raise."""
    flipped = (
        db.session.query(Sale)
        .filter(Sale.id == sale_id, Sale.status == STATUS_PENDING)
        .update(
            {Sale.status: STATUS_COMPLETED, Sale.completed_at: utcnow()},
            synchronize_session=False,
        )
    )
    if flipped == 1:
        return

    sale = db.session.query(Sale).filter_by(id=sale_id).populate_existing().first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    raise StateConflictError(
        f"Sale {sale_id} is already {sale.status}; only pending sales can be completed",
        details={"sale_id": sale_id, "status": sale.status, "is_edited": sale.is_edited},
    )


def _complete_locked(sale_id: int) -> tuple[Sale, list[StockMovement]]:
    _flip_gate(sale_id)

    sale = get_sale(sale_id, lock=True)
    items = list(sale.items)
    if not items:
        raise ValidationError("Cannot complete a sale with no items", details={"sale_id": sale_id})

    products = lock_products(item.product_id for item in items)

    movements = []
    for item in items:
        pieces = to_pieces(item.quantity, item.unit_type, products[item.product_id])
        movements.append(apply_movement(
            item.product_id,
            MOVEMENT_OUT,
            pieces,
            f"Sale {sale.id}",
            sale.id,
            REFERENCE_SALE,
        ))
    return sale, movements


def complete_transaction(sale_id: int) -> Sale:
    """
    Complete a pending sale and deduct stock for every line item.

    All-or-nothing: if any item is short on stock the status flip and every
    earlier deduction roll back together and InsufficientStockError is
    raised. Completing a sale that is not pending raises StateConflictError
    without touching stock.
    """
    def _op():
        sale, movements = _complete_locked(sale_id)
        return sale, low_stock_signals(movements)

    sale, signals = run_atomic(_op)
    current_app.logger.info("Completed sale %s", sale_id)
    dispatch_low_stock_signals(signals)
    return sale


def process_complete_payment(items) -> Sale:
    """
    Create and immediately complete a sale.

    Two separate units of work: if completion fails the pending sale is
    kept so the caller can fix stock or edit it, and the error propagates.
    """
    sale = create_transaction(items)
    return complete_transaction(sale.id)


def describe_transaction(sale_id: int) -> dict:
    """Sale with items, its movement trail and the stock it currently holds."""
    sale = get_sale(sale_id)
    movements = sale_movements(sale_id)
    held = outstanding_sale_pieces(sale_id)
    return {
        "sale": sale.to_dict(include_items=True),
        "movements": [m.to_dict() for m in movements],
        "stock_held_pieces": held,
        "is_undone": sale.status == STATUS_COMPLETED and sale.is_edited and held == 0,
    }
