# backend/pos_ledger/routes/system.py
"""
System health endpoint.

Checks database connectivity, pending sales that were never completed and
whether the movement log still explains current stock.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Product, Sale, StockMovement
from ..services import sale_store_service, stock_ledger_service
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        sale_count = db.session.query(Sale).count()
        movement_count = db.session.query(StockMovement).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "sales": sale_count,
                "stock_movements": movement_count,
            }
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_pending_sales_health() -> dict:
    """
    Pending sales older than STALE_PENDING_MINUTES are reported as degraded;
    they hold no stock but usually mean an abandoned checkout.
    """
    start_time = time.time()
    minutes = current_app.config.get("STALE_PENDING_MINUTES", 60)
    try:
        stale = sale_store_service.find_stale_pending_sales(minutes)
        counts = sale_store_service.count_by_status()
        elapsed_ms = (time.time() - start_time) * 1000

        result = {
            "status": "degraded" if stale else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "by_status": counts,
                "stale_pending": len(stale),
                "stale_after_minutes": minutes,
                "oldest_stale_sale_ids": [s.id for s in stale[:10]],
            }
        }
        if stale:
            result["warning"] = f"{len(stale)} pending sale(s) older than {minutes} minutes"
        return result
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Pending sales health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Pending sales check error"
        }


def check_ledger_health() -> dict:
    """Every product's movement chain must reconcile with its current stock."""
    start_time = time.time()
    try:
        reports = stock_ledger_service.reconcile_all()
        broken = [r["product_id"] for r in reports if not r["is_consistent"]]
        elapsed_ms = (time.time() - start_time) * 1000

        if broken:
            current_app.logger.error("Stock ledger out of balance for products %s", broken)
            return {
                "status": "unhealthy",
                "latency_ms": round(elapsed_ms, 2),
                "error": "Stock ledger does not reconcile",
                "details": {"inconsistent_product_ids": broken},
            }
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"products_checked": len(reports)},
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Ledger health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Ledger check error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (stale pending sales)
    - 503: database unreachable or ledger out of balance
    """
    start_time = time.time()

    database_health = check_database_health()
    pending_health = check_pending_sales_health()
    ledger_health = check_ledger_health()

    all_checks = [database_health, pending_health, ledger_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "pending_sales": pending_health,
            "ledger": ledger_health,
        }
    }

    return response, http_status
