# Overview: Flask API routes for stock levels, movement history and manual adjustments.

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, ValidationError
from ..models.inventory import MOVEMENT_TYPES, REFERENCE_TYPES
from ..services import stock_ledger_service

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _error(exc: LedgerError):
    return jsonify(exc.to_dict()), exc.status_code


def _internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "kind": "internal_error", "details": {}}), 500


@inventory_bp.get("/<int:product_id>")
def get_stock_route(product_id: int):
    try:
        return jsonify({"stock": stock_ledger_service.get_stock(product_id)}), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to load stock")


@inventory_bp.get("/<int:product_id>/movements")
def product_movements_route(product_id: int):
    try:
        stock_ledger_service.get_stock(product_id)
        limit = request.args.get("limit", default=100, type=int)
        rows = stock_ledger_service.list_movements(product_id=product_id, limit=limit)
        return jsonify({"items": [m.to_dict() for m in rows]}), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to list stock movements")


@inventory_bp.get("/<int:product_id>/reconcile")
def reconcile_route(product_id: int):
    try:
        return jsonify({"reconciliation": stock_ledger_service.reconcile_product(product_id)}), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to reconcile stock")


@inventory_bp.post("/<int:product_id>/adjust")
def adjust_route(product_id: int):
    """
    Manual stock correction.

    Body: {"direction": "in"|"out", "pieces": int, "reason": str}
    """
    try:
        data = request.get_json(silent=True) or {}
        direction = data.get("direction")
        if direction not in MOVEMENT_TYPES:
            raise ValidationError("direction must be 'in' or 'out'", details={"direction": direction})

        movement = stock_ledger_service.adjust_stock(
            product_id,
            direction,
            data.get("pieces"),
            data.get("reason"),
        )
        return jsonify({
            "movement": movement.to_dict(),
            "stock": stock_ledger_service.get_stock(product_id),
        }), 201
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to adjust stock")


@inventory_bp.get("/movements")
def list_movements_route():
    try:
        reference_type = request.args.get("reference_type") or None
        if reference_type is not None and reference_type not in REFERENCE_TYPES:
            raise ValidationError(
                f"reference_type must be one of {', '.join(REFERENCE_TYPES)}",
                details={"reference_type": reference_type},
            )
        rows = stock_ledger_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            reference_id=request.args.get("sale_id", type=int),
            reference_type=reference_type,
            limit=request.args.get("limit", default=100, type=int),
        )
        return jsonify({"items": [m.to_dict() for m in rows]}), 200
    except LedgerError as e:
        return _error(e)
    except Exception:
        return _internal_error("Failed to list stock movements")


@inventory_bp.get("/low-stock")
def low_stock_route():
    try:
        products = stock_ledger_service.list_low_stock_products()
        return jsonify({"items": [p.to_dict() for p in products]}), 200
    except Exception:
        return _internal_error("Failed to list low-stock products")
