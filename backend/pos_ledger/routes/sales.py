# Overview: Flask API routes for the sale lifecycle; parses input and returns JSON responses.

# backend/pos_ledger/routes/sales.py
"""Sales API routes: create, complete, undo, edit and read-side queries"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, ValidationError
from ..models.sales import SALE_STATUSES
from ..services import sales_service
from ..services import sale_store_service
from ..time_utils import parse_iso_datetime

"""
Time semantics:
- date_from / date_to accept ISO-8601 datetimes with Z/offsets; both bounds are inclusive.
- Backend stores and compares UTC-naive datetimes.
"""

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _error(exc: LedgerError):
    return jsonify(exc.to_dict()), exc.status_code


def _internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "kind": "internal_error", "details": {}}), 500


def _parse_bool(raw: str | None, field: str) -> bool | None:
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes"}:
        return True
    if value in {"0", "false", "no"}:
        return False
    raise ValidationError(f"{field} must be true or false", details={field: raw})


def _parse_dates():
    try:
        return (
            parse_iso_datetime(request.args.get("date_from")),
            parse_iso_datetime(request.args.get("date_to")),
        )
    except ValueError:
        raise ValidationError("date_from and date_to must be ISO-8601 datetimes")


def _items_payload(data: dict):
    items = data.get("items")
    if items is None:
        raise ValidationError("items required")
    return items


@sales_bp.post("")
def create_sale_route():
    """
    Create a pending sale from already-priced line items.

    Body: {"items": [{"product_id", "quantity", "unit_type", "unit_price_cents"}]}
    No stock is deducted until the sale is completed.
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.create_transaction(_items_payload(data))
        return jsonify({"sale": sale.to_dict(include_items=True)}), 201
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to create sale")


@sales_bp.post("/checkout")
def checkout_route():
    """Create and complete a sale in one call."""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.process_complete_payment(_items_payload(data))
        return jsonify({"sale": sale.to_dict(include_items=True)}), 201
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to check out sale")


@sales_bp.get("")
def list_sales_route():
    try:
        status = request.args.get("status") or None
        if status is not None and status not in SALE_STATUSES:
            raise ValidationError(
                f"status must be one of {', '.join(SALE_STATUSES)}",
                details={"status": status},
            )
        date_from, date_to = _parse_dates()
        is_edited = _parse_bool(request.args.get("is_edited"), "is_edited")
        limit = request.args.get("limit", default=50, type=int)
        offset = request.args.get("offset", default=0, type=int)

        sales = sale_store_service.list_sales(
            status=status,
            date_from=date_from,
            date_to=date_to,
            is_edited=is_edited,
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "items": [s.to_dict() for s in sales],
            "limit": max(1, min(limit, 500)),
            "offset": max(0, offset),
        }), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to list sales")


@sales_bp.get("/today")
def todays_sales_route():
    try:
        sales = sale_store_service.list_todays_sales()
        return jsonify({"items": [s.to_dict() for s in sales]}), 200
    except Exception:
        return _internal_error("Failed to list today's sales")


@sales_bp.get("/stats")
def sales_stats_route():
    try:
        date_from, date_to = _parse_dates()
        stats = sale_store_service.revenue_stats(date_from=date_from, date_to=date_to)
        return jsonify({"stats": stats}), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to compute sale stats")


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.describe_transaction(sale_id)), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to load sale")


@sales_bp.post("/<int:sale_id>/complete")
def complete_sale_route(sale_id: int):
    """
    Complete a pending sale and deduct stock.

    409 insufficient_stock: nothing deducted, sale stays pending.
    409 state_conflict: sale was already completed.
    """
    try:
        sale = sales_service.complete_transaction(sale_id)
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to complete sale")


@sales_bp.post("/<int:sale_id>/undo")
def undo_sale_route(sale_id: int):
    """Reverse the stock effect of a completed sale. Body: {"reason": "..."} (optional)."""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.undo_transaction(sale_id, data.get("reason"))
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to undo sale")


@sales_bp.post("/<int:sale_id>/edit")
def edit_sale_route(sale_id: int):
    """
    Replace a sale's items and return it to pending.

    Body: {"items": [...], "reason": "..."}. Complete the sale again to
    deduct stock for the new items.
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.edit_transaction(sale_id, _items_payload(data), data.get("reason"))
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to edit sale")
