"""
Manual stock adjustments (restock, damage, correction, manual).

Goes through the same conditional ledger update as sales, so adjustments
obey the non-negative rule and always leave a log entry with ref_id NULL.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Product, StockLog
from .concurrency import run_atomic
from .errors import InvalidInputError
from .inventory_service import _validate_delta, _validate_reason, apply_change

ADJUSTMENT_REASONS = ("restock", "damage", "correction", "manual")
MAX_NOTE_LENGTH = 255


@dataclass
class AdjustmentResult:
    product: Product
    log_entry: StockLog


def adjust(
    *,
    product_id: int,
    merchant_id: int,
    actor_id: int,
    delta_qty: int,
    reason: str,
    note: str | None = None,
) -> AdjustmentResult:
    """
    Apply a manual stock change.

    Raises InvalidReason, InvalidDelta, ProductNotFound or InsufficientStock
    (negative delta larger than what is on hand).
    """
    _validate_reason(reason, ADJUSTMENT_REASONS)
    _validate_delta(product_id, delta_qty)
    if note is not None and len(note) > MAX_NOTE_LENGTH:
        raise InvalidInputError(
            f"note must be at most {MAX_NOTE_LENGTH} characters",
            details={"product_id": product_id},
        )

    def _op():
        result = apply_change(
            product_id=product_id,
            merchant_id=merchant_id,
            delta_qty=delta_qty,
            reason=reason,
            actor_id=actor_id,
            ref_id=None,
            note=note,
            commit=False,
        )
        return result.log_entry.id

    log_id = run_atomic(_op)
    current_app.logger.info(
        "Stock adjusted: product=%s delta=%+d reason=%s actor=%s",
        product_id,
        delta_qty,
        reason,
        actor_id,
    )

    log_entry = db.session.get(StockLog, log_id)
    product = db.session.get(Product, product_id)
    return AdjustmentResult(product=product, log_entry=log_entry)
