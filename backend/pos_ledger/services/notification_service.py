# Overview: Best-effort low-stock signalling to the notification collaborator.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import LowStockAlert


@dataclass(frozen=True)
class LowStockSignal:
    product_id: int
    stock_after: int
    reorder_level: int


def notify_low_stock(product_id: int, stock_after: int, reorder_level: int) -> LowStockAlert:
    """Record a low-stock alert for the notification channels to pick up. Does not commit."""
    alert = LowStockAlert(
        product_id=product_id,
        stock_after=stock_after,
        reorder_level=reorder_level,
    )
    db.session.add(alert)
    db.session.flush()
    current_app.logger.info(
        "Low stock: product %s at %s pieces (reorder level %s)",
        product_id, stock_after, reorder_level,
    )
    return alert


def dispatch_low_stock_signals(signals: list[LowStockSignal]) -> int:
    """
    Fire-and-forget delivery of low-stock signals.

    Runs after the ledger transaction has committed. A failing notification
    is logged and dropped; it never propagates to the caller, so the stock
    mutation that produced the signal always stands.

    Returns the number of signals delivered.
    """
    if not signals or not current_app.config.get("LOW_STOCK_ALERTS_ENABLED", True):
        return 0

    delivered = 0
    for signal in signals:
        try:
            notify_low_stock(signal.product_id, signal.stock_after, signal.reorder_level)
            db.session.commit()
            delivered += 1
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "Failed to deliver low-stock notification for product %s", signal.product_id
            )
    return delivered
