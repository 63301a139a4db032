"""
Typed failures raised by the checkout, ledger, adjustment and shift services.

Every error carries a machine-readable ``code``, the HTTP status the API
layer answers with, and a ``details`` dict that names the offending
product / quantity / shift so a POS client can render something actionable.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for every business failure surfaced to callers."""
    code = "POS_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


# =============================================================================
# NOT FOUND / TENANCY
# =============================================================================

class NotFoundError(PosError):
    """Entity absent, or owned by another tenant; callers cannot tell which."""
    code = "NOT_FOUND"
    status_code = 404


class ProductNotFound(NotFoundError):
    def __init__(self, *product_ids: int):
        ids = sorted(set(product_ids))
        if len(ids) == 1:
            message = f"Product with ID {ids[0]} not found"
        else:
            message = "One or more products not found or inactive"
        super().__init__(message, details={"product_ids": ids})
        self.product_ids = ids


class UnauthorizedError(PosError):
    """A request references a resource of a different tenant."""
    code = "UNAUTHORIZED"
    status_code = 403


class OutletMismatch(UnauthorizedError):
    def __init__(self, outlet_id: int):
        super().__init__(
            f"Outlet with ID {outlet_id} does not belong to your merchant",
            details={"outlet_id": outlet_id},
        )
        self.outlet_id = outlet_id


# =============================================================================
# INPUT
# =============================================================================

class InvalidInputError(PosError):
    code = "INVALID_INPUT"
    status_code = 400


class EmptyCart(InvalidInputError):
    def __init__(self):
        super().__init__("Transaction must have at least one item")


class InvalidQuantity(InvalidInputError):
    def __init__(self, product_id: int, qty):
        super().__init__(
            f"Quantity for product {product_id} must be greater than 0",
            details={"product_id": product_id, "qty": qty},
        )
        self.product_id = product_id
        self.qty = qty


class InvalidDelta(InvalidInputError):
    def __init__(self, product_id: int | None = None):
        super().__init__("change_qty must not be 0", details={"product_id": product_id})
        self.product_id = product_id


class QuantityOutOfRange(InvalidInputError):
    def __init__(self, product_id: int | None, qty, limit: int):
        super().__init__(
            f"Quantity for product {product_id} is outside the supported range (max {limit})",
            details={"product_id": product_id, "qty": qty, "max": limit},
        )
        self.product_id = product_id
        self.qty = qty


class InvalidReason(InvalidInputError):
    def __init__(self, reason, allowed):
        allowed = list(allowed)
        super().__init__(
            f"reason must be one of: {', '.join(allowed)}",
            details={"reason": reason, "allowed": allowed},
        )
        self.reason = reason


# =============================================================================
# BUSINESS INVARIANTS
# =============================================================================

class InsufficientStock(PosError):
    """Applying the change would drive a product's stock below zero."""
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: int, available: int, requested: int, product_name: str | None = None):
        label = f'"{product_name}"' if product_name else f"ID {product_id}"
        super().__init__(
            f"Insufficient stock for product {label}. Available: {available}, Requested: {requested}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class AlreadyOpen(PosError):
    code = "SHIFT_ALREADY_OPEN"
    status_code = 409

    def __init__(self, existing_shift_id: int):
        super().__init__(
            f"You already have an open shift (ID: {existing_shift_id}) in this outlet. Please close it first.",
            details={"existing_shift_id": existing_shift_id},
        )
        self.existing_shift_id = existing_shift_id


class AlreadyClosed(PosError):
    code = "SHIFT_ALREADY_CLOSED"
    status_code = 409

    def __init__(self, shift_id: int):
        super().__init__(f"Shift with ID {shift_id} is already closed", details={"shift_id": shift_id})
        self.shift_id = shift_id


# =============================================================================
# STORAGE
# =============================================================================

class StorageConflict(PosError):
    """
    The database aborted the unit of work (lock timeout, deadlock,
    serialization failure, stale version). Nothing was written; the whole
    operation may be retried from the top.
    """
    code = "STORAGE_CONFLICT"
    status_code = 503

    def __init__(self, message: str = "Storage conflict, retry the operation"):
        super().__init__(message, details={"retryable": True})
