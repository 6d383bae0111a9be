# Overview: Undo and edit of completed sales as compensating movements in the stock ledger.

from __future__ import annotations

from flask import current_app

from ..errors import StateConflictError
from ..models import Sale, StockMovement
from ..models.inventory import MOVEMENT_IN, REFERENCE_SALE_UNDO
from ..models.sales import STATUS_COMPLETED, STATUS_PENDING
from .concurrency import run_atomic
from .notification_service import dispatch_low_stock_signals
from .sale_store_service import get_sale, mark_edited, replace_line_items, validate_items
from .stock_ledger_service import (
    apply_movement,
    lock_products,
    low_stock_signals,
    outstanding_sale_movements,
)

DEFAULT_UNDO_REASON = "Transaction undone"
DEFAULT_EDIT_REASON = "Transaction edited"


def _clean_reason(reason, default: str) -> str:
    if reason is None:
        return default
    reason = str(reason).strip()
    return reason[:255] if reason else default


def reverse_sale_movements(sale: Sale, reason: str) -> list[StockMovement]:
    """
    Append an equal-and-opposite 'in' movement for every unreversed 'out'
    movement of the sale. History is never rewritten.
    """
    outstanding = outstanding_sale_movements(sale.id)
    lock_products(m.product_id for m in outstanding)

    reversals = []
    for original in outstanding:
        reversals.append(apply_movement(
            original.product_id,
            MOVEMENT_IN,
            original.quantity,
            reason,
            sale.id,
            REFERENCE_SALE_UNDO,
            reversal_of_id=original.id,
        ))
    return reversals


def _undo_locked(sale: Sale, reason: str) -> list[StockMovement]:
    if sale.status != STATUS_COMPLETED:
        raise StateConflictError(
            f"Sale {sale.id} is {sale.status}; only completed sales can be undone",
            details={"sale_id": sale.id, "status": sale.status},
        )

    reversals = reverse_sale_movements(sale, reason)
    if not reversals:
        raise StateConflictError(
            f"Sale {sale.id} has already been undone",
            details={"sale_id": sale.id, "status": sale.status, "is_edited": sale.is_edited},
        )

    mark_edited(sale, reason)
    return reversals


def undo_transaction(sale_id: int, reason: str | None = None) -> Sale:
    """
    Reverse the stock effect of a completed sale.

    status stays 'completed'; is_edited/edited_at/edit_reason record the
    reversal. A second undo without an intervening edit + complete raises
    StateConflictError.
    """
    reason = _clean_reason(reason, DEFAULT_UNDO_REASON)

    def _op():
        sale = get_sale(sale_id, lock=True)
        reversals = _undo_locked(sale, reason)
        return sale, low_stock_signals(reversals)

    sale, signals = run_atomic(_op)
    current_app.logger.info("Sale %s undone: %s", sale_id, reason)
    dispatch_low_stock_signals(signals)
    return sale


def edit_transaction(sale_id: int, new_items, reason: str | None = None) -> Sale:
    """
    Replace a sale's line items and send it back to pending.

    If the sale is completed and still holds stock, its movements are
    reversed first in the same unit of work; any failure leaves the sale,
    its items and stock untouched. Stock is not deducted again until the
    caller completes the sale.
    """
    reason = _clean_reason(reason, DEFAULT_EDIT_REASON)

    def _op():
        sale = get_sale(sale_id, lock=True)
        items = validate_items(new_items)

        reversals = []
        if sale.status == STATUS_COMPLETED:
            reversals = reverse_sale_movements(sale, reason)

        replace_line_items(sale, items)
        sale.status = STATUS_PENDING
        sale.completed_at = None
        mark_edited(sale, reason)
        return sale, low_stock_signals(reversals)

    sale, signals = run_atomic(_op)
    current_app.logger.info("Sale %s edited and returned to pending: %s", sale_id, reason)
    dispatch_low_stock_signals(signals)
    return sale
