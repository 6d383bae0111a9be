# Overview: Service-layer operations for the stock ledger; the only writer of Product.stock_in_pieces.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import aliased

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import (
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TYPES,
    REFERENCE_ADJUSTMENT,
    REFERENCE_SALE,
    REFERENCE_SALE_UNDO,
    REFERENCE_TYPES,
)
from .concurrency import lock_for_update, run_atomic
from .notification_service import LowStockSignal, dispatch_low_stock_signals
"""
Stock Ledger Invariants (authoritative)

- Product.stock_in_pieces is written here and nowhere else.
- Every stock change appends exactly one StockMovement in the same DB
  transaction: stock_after = stock_before - quantity (out) or + quantity (in).
- An out movement that would leave stock below zero raises
  InsufficientStockError before anything is written.
- Movements are append-only. Reversals are new 'in' rows pointing at the
  reversed row through reversal_of_id.
- apply_movement() never commits; callers wrap it in run_atomic().
"""


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def lock_products(product_ids) -> dict[int, Product]:
    """
    Lock the given product rows in ascending id order.

    Fixed ordering keeps two sales that share products from deadlocking.
    Sales on disjoint products never wait on each other only on backends
    with row locks; on SQLite FOR UPDATE is a no-op and run_atomic()
    serializes every writer behind BEGIN IMMEDIATE instead.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = (
        lock_for_update(db.session.query(Product).filter(Product.id.in_(ids)))
        .order_by(Product.id)
        .populate_existing()
        .all()
    )
    products = {p.id: p for p in rows}
    missing = [pid for pid in ids if pid not in products]
    if missing:
        raise NotFoundError(
            f"Product {missing[0]} not found",
            details={"product_ids": missing},
        )
    return products


def apply_movement(
    product_id: int,
    direction: str,
    pieces: int,
    reason: str | None,
    reference_id: int | None,
    reference_type: str,
    *,
    reversal_of_id: int | None = None,
) -> StockMovement:
    """
    Move stock for one product and append the matching ledger row.

    Must run inside run_atomic(); the stock update and the movement insert
    are flushed together and commit or roll back together.
    """
    if direction not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement direction {direction!r}", details={"direction": direction})
    if reference_type not in REFERENCE_TYPES:
        raise ValidationError(
            f"Unknown reference type {reference_type!r}",
            details={"reference_type": reference_type},
        )
    if isinstance(pieces, bool) or not isinstance(pieces, int) or pieces <= 0:
        raise ValidationError("pieces must be a positive integer", details={"pieces": pieces})

    product = _get_product(product_id, lock=True)

    stock_before = product.stock_in_pieces or 0
    if direction == MOVEMENT_OUT:
        stock_after = stock_before - pieces
        if stock_after < 0:
            raise InsufficientStockError(product_id, requested=pieces, available=stock_before)
    else:
        stock_after = stock_before + pieces

    product.stock_in_pieces = stock_after

    movement = StockMovement(
        product_id=product_id,
        movement_type=direction,
        quantity=pieces,
        reason=reason,
        reference_id=reference_id,
        reference_type=reference_type,
        stock_before=stock_before,
        stock_after=stock_after,
        reversal_of_id=reversal_of_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def low_stock_signals(movements: list[StockMovement]) -> list[LowStockSignal]:
    """One signal per product whose final stock_after is at or below its reorder level."""
    latest: dict[int, StockMovement] = {}
    for movement in movements:
        latest[movement.product_id] = movement

    signals = []
    for product_id, movement in latest.items():
        reorder_level = movement.product.reorder_level or 0
        if movement.stock_after <= reorder_level:
            signals.append(LowStockSignal(
                product_id=product_id,
                stock_after=movement.stock_after,
                reorder_level=reorder_level,
            ))
    return signals


def adjust_stock(product_id: int, direction: str, pieces: int, reason: str) -> StockMovement:
    """Manual stock correction, recorded as an 'adjustment' movement."""
    if not reason or not str(reason).strip():
        raise ValidationError("reason required for stock adjustments")

    def _op():
        movement = apply_movement(
            product_id,
            direction,
            pieces,
            str(reason).strip(),
            None,
            REFERENCE_ADJUSTMENT,
        )
        return movement, low_stock_signals([movement])

    movement, signals = run_atomic(_op)
    dispatch_low_stock_signals(signals)
    return movement


def get_stock(product_id: int) -> dict:
    product = _get_product(product_id)
    return {
        "product_id": product.id,
        "sku": product.sku,
        "stock_in_pieces": product.stock_in_pieces,
        "pieces_per_sheet": product.pieces_per_sheet or 1,
        "sheets_per_box": product.sheets_per_box or 1,
        "reorder_level": product.reorder_level or 0,
        "is_low_stock": product.stock_in_pieces <= (product.reorder_level or 0),
    }


def list_movements(
    *,
    product_id: int | None = None,
    reference_id: int | None = None,
    reference_type: str | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    """Movement history, newest first."""
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if reference_id is not None:
        q = q.filter(StockMovement.reference_id == reference_id)
    if reference_type is not None:
        q = q.filter(StockMovement.reference_type == reference_type)
    return q.order_by(StockMovement.id.desc()).limit(max(1, min(limit, 1000))).all()


def sale_movements(sale_id: int) -> list[StockMovement]:
    """Every movement (deductions and reversals) attributable to a sale, oldest first."""
    return (
        db.session.query(StockMovement)
        .filter(
            StockMovement.reference_id == sale_id,
            StockMovement.reference_type.in_([REFERENCE_SALE, REFERENCE_SALE_UNDO]),
        )
        .order_by(StockMovement.id)
        .all()
    )


def outstanding_sale_movements(sale_id: int) -> list[StockMovement]:
    """Out movements of a sale that have not been reversed yet."""
    reversal = aliased(StockMovement)
    return (
        db.session.query(StockMovement)
        .outerjoin(reversal, reversal.reversal_of_id == StockMovement.id)
        .filter(
            StockMovement.reference_id == sale_id,
            StockMovement.reference_type == REFERENCE_SALE,
            StockMovement.movement_type == MOVEMENT_OUT,
            reversal.id.is_(None),
        )
        .order_by(StockMovement.id)
        .all()
    )


def outstanding_sale_pieces(sale_id: int) -> int:
    return sum(m.quantity for m in outstanding_sale_movements(sale_id))


def reconcile_product(product_id: int) -> dict:
    """
    Check that the movement log explains current stock.

    The chain must be continuous (each stock_before equals the previous
    stock_after) and the last stock_after must equal stock_in_pieces.
    Stock set by the catalog before the first movement is the opening
    balance.
    """
    product = _get_product(product_id)
    movements = (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.id)
        .all()
    )

    breaks = []
    previous = None
    for movement in movements:
        if previous is not None and movement.stock_before != previous.stock_after:
            breaks.append({
                "movement_id": movement.id,
                "expected_stock_before": previous.stock_after,
                "actual_stock_before": movement.stock_before,
            })
        previous = movement

    opening = movements[0].stock_before if movements else product.stock_in_pieces
    ledger_stock = movements[-1].stock_after if movements else product.stock_in_pieces
    net_in = sum(m.quantity for m in movements if m.movement_type == MOVEMENT_IN)
    net_out = sum(m.quantity for m in movements if m.movement_type == MOVEMENT_OUT)

    return {
        "product_id": product.id,
        "opening_stock": opening,
        "total_in": net_in,
        "total_out": net_out,
        "ledger_stock": ledger_stock,
        "current_stock": product.stock_in_pieces,
        "movement_count": len(movements),
        "chain_breaks": breaks,
        "is_consistent": not breaks
        and ledger_stock == product.stock_in_pieces
        and opening + net_in - net_out == product.stock_in_pieces,
    }


def reconcile_all() -> list[dict]:
    product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.id).all()]
    return [reconcile_product(pid) for pid in product_ids]


def list_low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.stock_in_pieces <= func.coalesce(Product.reorder_level, 0))
        .order_by(Product.stock_in_pieces.asc(), Product.id.asc())
        .all()
    )
