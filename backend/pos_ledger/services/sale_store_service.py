# Overview: Persistence and read queries for Sale / SaleLineItem aggregates.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Sale, SaleLineItem
from ..models.sales import STATUS_COMPLETED, STATUS_PENDING
from ..time_utils import utc_day_window, utcnow
from .concurrency import lock_for_update
from .conversion_service import normalize_unit_type
from .stock_ledger_service import outstanding_sale_pieces


@dataclass(frozen=True)
class LineItemInput:
    """A validated, already-priced line item ready to be persisted."""
    product_id: int
    quantity: int
    unit_type: str
    unit_price_cents: int
    total_price_cents: int


def _require_int(value, field: str, index: int, *, minimum: int) -> int:
    # bool is an int subclass; floats and numeric strings are rejected outright
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"items[{index}].{field} must be an integer",
            details={"index": index, "field": field, "value": value},
        )
    if value < minimum:
        raise ValidationError(
            f"items[{index}].{field} must be >= {minimum}",
            details={"index": index, "field": field, "value": value},
        )
    return value


def validate_items(items) -> list[LineItemInput]:
    """
    Validate raw line item dicts.

    Accepts snake_case keys (product_id, quantity, unit_type,
    unit_price_cents, total_price_cents) and the camelCase spellings
    productId / unitType / unitPrice. total_price_cents defaults to
    quantity * unit_price_cents.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    policy = current_app.config.get("UNKNOWN_UNIT_POLICY", "piece")
    validated = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object", details={"index": index})

        product_id = _require_int(
            raw.get("product_id", raw.get("productId")), "product_id", index, minimum=1
        )
        quantity = _require_int(raw.get("quantity"), "quantity", index, minimum=1)

        raw_unit = raw.get("unit_type", raw.get("unitType"))
        unit_type, coerced = normalize_unit_type(raw_unit, policy)
        if coerced:
            current_app.logger.warning(
                "Unrecognized unit type %r on items[%d]; treating as piece", raw_unit, index
            )

        unit_price = raw.get("unit_price_cents", raw.get("unitPrice"))
        unit_price_cents = _require_int(unit_price, "unit_price_cents", index, minimum=0)

        total_price = raw.get("total_price_cents")
        if total_price is None:
            total_price_cents = quantity * unit_price_cents
        else:
            total_price_cents = _require_int(total_price, "total_price_cents", index, minimum=0)

        validated.append(LineItemInput(
            product_id=product_id,
            quantity=quantity,
            unit_type=unit_type,
            unit_price_cents=unit_price_cents,
            total_price_cents=total_price_cents,
        ))

    product_ids = {item.product_id for item in validated}
    found = {
        pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(product_ids)).all()
    }
    missing = sorted(product_ids - found)
    if missing:
        raise NotFoundError(f"Product {missing[0]} not found", details={"product_ids": missing})

    return validated


def _build_line(item: LineItemInput) -> SaleLineItem:
    return SaleLineItem(
        product_id=item.product_id,
        quantity=item.quantity,
        unit_type=item.unit_type,
        unit_price_cents=item.unit_price_cents,
        total_price_cents=item.total_price_cents,
    )


def create_sale_record(items: list[LineItemInput]) -> Sale:
    """Persist a pending sale with its line items. Does not commit."""
    sale = Sale(
        status=STATUS_PENDING,
        total_amount_cents=sum(item.total_price_cents for item in items),
        is_edited=False,
    )
    for item in items:
        sale.items.append(_build_line(item))
    db.session.add(sale)
    db.session.flush()
    return sale


def get_sale(sale_id: int, *, lock: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    sale = query.first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def replace_line_items(sale: Sale, items: list[LineItemInput]) -> Sale:
    """Swap the whole line item set; old rows are deleted, never patched."""
    sale.items.clear()
    db.session.flush()
    for item in items:
        sale.items.append(_build_line(item))
    sale.total_amount_cents = sum(item.total_price_cents for item in items)
    db.session.flush()
    return sale


def mark_edited(sale: Sale, reason: str | None) -> None:
    sale.is_edited = True
    sale.edited_at = utcnow()
    sale.edit_reason = reason


def list_sales(
    *,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    is_edited: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Sale]:
    """Sales newest first; date bounds are inclusive on created_at."""
    q = db.session.query(Sale)
    if status is not None:
        q = q.filter(Sale.status == status)
    if date_from is not None:
        q = q.filter(Sale.created_at >= date_from)
    if date_to is not None:
        q = q.filter(Sale.created_at <= date_to)
    if is_edited is not None:
        q = q.filter(Sale.is_edited == is_edited)
    limit = max(1, min(limit, 500))
    return (
        q.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset(max(0, offset))
        .limit(limit)
        .all()
    )


def list_todays_sales() -> list[Sale]:
    start, end = utc_day_window()
    return list_sales(date_from=start, date_to=end, limit=500)


def revenue_stats(*, date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    """
    Sale counts and revenue.

    A completed sale whose stock effect has been reversed counts as undone,
    not as revenue. Edited sales that were completed again count normally.
    """
    q = db.session.query(Sale)
    if date_from is not None:
        q = q.filter(Sale.created_at >= date_from)
    if date_to is not None:
        q = q.filter(Sale.created_at <= date_to)
    sales = q.all()

    stats = {
        "total_transactions": len(sales),
        "pending_transactions": 0,
        "completed_transactions": 0,
        "undone_transactions": 0,
        "edited_transactions": 0,
        "total_revenue_cents": 0,
        "undone_revenue_cents": 0,
    }
    for sale in sales:
        if sale.is_edited:
            stats["edited_transactions"] += 1
        if sale.status == STATUS_PENDING:
            stats["pending_transactions"] += 1
            continue
        if sale.is_edited and outstanding_sale_pieces(sale.id) == 0:
            stats["undone_transactions"] += 1
            stats["undone_revenue_cents"] += sale.total_amount_cents or 0
            continue
        stats["completed_transactions"] += 1
        stats["total_revenue_cents"] += sale.total_amount_cents or 0
    return stats


def find_stale_pending_sales(older_than_minutes: int) -> list[Sale]:
    """Pending sales that were never completed within the threshold."""
    cutoff = utcnow() - timedelta(minutes=older_than_minutes)
    return (
        db.session.query(Sale)
        .filter(Sale.status == STATUS_PENDING, Sale.created_at < cutoff)
        .order_by(Sale.created_at)
        .all()
    )


def count_by_status() -> dict[str, int]:
    rows = db.session.query(Sale.status, func.count(Sale.id)).group_by(Sale.status).all()
    counts = {STATUS_PENDING: 0, STATUS_COMPLETED: 0}
    counts.update({status: int(n) for status, n in rows})
    return counts
