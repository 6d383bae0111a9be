# Overview: Pure unit arithmetic; converts (quantity, unit type) into canonical pieces.

from __future__ import annotations

from ..errors import ValidationError
from ..models.sales import UNIT_BOX, UNIT_PIECE, UNIT_SHEET, UNIT_TYPES

UNKNOWN_UNIT_AS_PIECE = "piece"
UNKNOWN_UNIT_REJECT = "reject"
UNKNOWN_UNIT_POLICIES = (UNKNOWN_UNIT_AS_PIECE, UNKNOWN_UNIT_REJECT)


def _ratio(value) -> int:
    # Unset or nonsensical ratios count as 1
    if value is None:
        return 1
    value = int(value)
    return value if value >= 1 else 1


def pieces_per_unit(unit_type: str | None, product) -> int:
    """
    Pieces contained in one unit of unit_type for this product.

    Unknown or missing unit types fall back to piece. Callers that want a
    hard failure must validate with normalize_unit_type() first.
    """
    if unit_type == UNIT_SHEET:
        return _ratio(getattr(product, "pieces_per_sheet", None))
    if unit_type == UNIT_BOX:
        return _ratio(getattr(product, "pieces_per_sheet", None)) * _ratio(
            getattr(product, "sheets_per_box", None)
        )
    return 1


def to_pieces(quantity: int, unit_type: str | None, product) -> int:
    """Convert quantity of unit_type into canonical pieces."""
    if quantity < 0:
        raise ValidationError("quantity must not be negative", details={"quantity": quantity})
    return quantity * pieces_per_unit(unit_type, product)


def normalize_unit_type(value, policy: str = UNKNOWN_UNIT_AS_PIECE) -> tuple[str, bool]:
    """
    Resolve a caller-supplied unit type at the API boundary.

    Returns (unit_type, coerced). Missing values are always piece. For
    unrecognized values the policy decides: "piece" coerces (coerced=True),
    "reject" raises ValidationError.
    """
    if policy not in UNKNOWN_UNIT_POLICIES:
        raise ValueError(f"unknown unit policy {policy!r}")

    if value is None or (isinstance(value, str) and not value.strip()):
        return UNIT_PIECE, False

    normalized = str(value).strip().lower()
    if normalized in UNIT_TYPES:
        return normalized, False

    if policy == UNKNOWN_UNIT_REJECT:
        raise ValidationError(
            f"Unrecognized unit type {value!r}",
            details={"unit_type": value, "allowed": list(UNIT_TYPES)},
        )
    return UNIT_PIECE, True
