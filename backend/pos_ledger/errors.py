# Overview: Typed error taxonomy shared by ledger services, routes and the CLI.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every error the ledger reports to its callers."""

    kind = "ledger_error"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class ValidationError(LedgerError):
    """400-level input problem."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(LedgerError):
    """Unknown product or sale id."""

    kind = "not_found"
    status_code = 404


class InsufficientStockError(LedgerError):
    """An out movement would drive stock below zero."""

    kind = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested} pieces, {available} available",
            details={
                "product_id": product_id,
                "requested_pieces": requested,
                "available_pieces": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class StateConflictError(LedgerError):
    """Transition attempted from a state that does not allow it."""

    kind = "state_conflict"
    status_code = 409


class StorageError(LedgerError):
    """Backing-store failure unrelated to business rules."""

    kind = "storage_error"
    status_code = 500
