# Overview: Inventory ledger; the only code path that changes products.stock_qty.

# backend/posledger/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Merchant, Product, StockLog, STOCK_REASONS
from ..time_utils import utcnow
from .concurrency import run_atomic
from .errors import (
    InsufficientStock,
    InvalidDelta,
    InvalidInputError,
    InvalidReason,
    NotFoundError,
    ProductNotFound,
    QuantityOutOfRange,
)
from .pagination import paginate
from .tenant_service import require_product_in_merchant
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- products.stock_qty is the current quantity; stock_logs is its history.
- For every product, SUM(stock_logs.change_qty) == products.stock_qty at all
  times (a product is created at 0 and its opening stock is a ledger entry).
- stock_qty never goes below zero.
- stock_qty never exceeds MAX_STOCK_QTY (32-bit INTEGER column).

Mutation:
- Every change is ONE conditional statement:
    UPDATE products SET stock_qty = stock_qty + :delta
    WHERE id = :id AND merchant_id = :merchant
      AND stock_qty >= -:delta AND stock_qty <= MAX_STOCK_QTY - :delta
  and succeeds only when exactly one row was affected. There is no
  read-compare-write sequence anywhere.
- Zero rows affected -> re-read: missing row is ProductNotFound, otherwise
  InsufficientStock with the quantity actually available.
- Each applied change appends exactly one StockLog in the same database
  transaction. Both commit or neither does.

Batches:
- Deltas for the same product are merged, then applied in ascending product
  id order so two batches over overlapping products lock rows in the same
  order and cannot deadlock each other.
- The first failing product aborts the batch; the unit of work rolls back
  and no stock or log row from the batch survives.
"""


MAX_STOCK_QTY = 2_147_483_647


@dataclass(frozen=True)
class StockChange:
    product_id: int
    delta_qty: int


@dataclass
class StockChangeResult:
    product_id: int
    new_quantity: int
    log_entry: StockLog


def _validate_reason(reason: str, allowed=STOCK_REASONS) -> None:
    if reason not in allowed:
        raise InvalidReason(reason, allowed)


def _validate_delta(product_id: int | None, delta_qty) -> None:
    if isinstance(delta_qty, bool) or not isinstance(delta_qty, int):
        raise InvalidInputError(
            "change_qty must be an integer",
            details={"product_id": product_id, "change_qty": delta_qty},
        )
    if delta_qty == 0:
        raise InvalidDelta(product_id)
    if abs(delta_qty) > MAX_STOCK_QTY:
        raise QuantityOutOfRange(product_id, delta_qty, MAX_STOCK_QTY)


def _apply_change_inner(
    *,
    product_id: int,
    merchant_id: int,
    delta_qty: int,
    reason: str,
    actor_id: int | None,
    ref_id: int | None = None,
    note: str | None = None,
) -> StockChangeResult:
    """Conditional update plus log append. No input validation, no commit."""
    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.merchant_id == merchant_id,
            # no column arithmetic here: stock_qty + delta may overflow INTEGER
            Product.stock_qty >= -delta_qty,
            Product.stock_qty <= MAX_STOCK_QTY - delta_qty,
        )
        .values(
            stock_qty=Product.stock_qty + delta_qty,
            version_id=Product.version_id + 1,
            updated_by=actor_id,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    # Same transaction: sees our own update, and refreshes any loaded copy.
    product = (
        db.session.query(Product)
        .filter_by(id=product_id, merchant_id=merchant_id)
        .populate_existing()
        .first()
    )

    if result.rowcount != 1:
        if product is None:
            raise ProductNotFound(product_id)
        if delta_qty > 0:
            raise QuantityOutOfRange(product_id, product.stock_qty + delta_qty, MAX_STOCK_QTY)
        raise InsufficientStock(
            product_id=product_id,
            available=product.stock_qty,
            requested=-delta_qty,
            product_name=product.name,
        )

    log = StockLog(
        product_id=product_id,
        change_qty=delta_qty,
        reason=reason,
        ref_id=ref_id,
        note=note,
        created_by=actor_id,
        created_at=utcnow(),
    )
    db.session.add(log)
    db.session.flush()

    return StockChangeResult(product_id=product_id, new_quantity=product.stock_qty, log_entry=log)


def apply_change(
    *,
    product_id: int,
    merchant_id: int,
    delta_qty: int,
    reason: str,
    actor_id: int | None,
    ref_id: int | None = None,
    note: str | None = None,
    commit: bool = True,
) -> StockChangeResult:
    """
    Apply one signed stock change and record why.

    With commit=False the change joins the caller's open unit of work
    (checkout, adjustment) and is only flushed.

    Raises:
        InvalidDelta: delta_qty is 0
        InvalidReason: reason is not a known stock reason
        ProductNotFound: product missing or owned by another merchant
        InsufficientStock: the change would make stock negative
    """
    _validate_reason(reason)
    _validate_delta(product_id, delta_qty)

    def _op():
        return _apply_change_inner(
            product_id=product_id,
            merchant_id=merchant_id,
            delta_qty=delta_qty,
            reason=reason,
            actor_id=actor_id,
            ref_id=ref_id,
            note=note,
        )

    if not commit:
        return _op()
    return run_atomic(_op)


def _merge_changes(changes: list[StockChange]) -> dict[int, int]:
    merged: dict[int, int] = {}
    for change in changes:
        _validate_delta(change.product_id, change.delta_qty)
        merged[change.product_id] = merged.get(change.product_id, 0) + change.delta_qty
    for product_id, delta_qty in merged.items():
        if abs(delta_qty) > MAX_STOCK_QTY:
            raise QuantityOutOfRange(product_id, delta_qty, MAX_STOCK_QTY)
    return merged


def _apply_batch_inner(
    merged: dict[int, int],
    *,
    merchant_id: int,
    reason: str,
    actor_id: int | None,
    ref_id: int | None = None,
    note: str | None = None,
) -> list[StockChangeResult]:
    results = []
    for product_id in sorted(merged):
        delta_qty = merged[product_id]
        if delta_qty == 0:
            # lines cancelled out; nothing to record
            continue
        results.append(
            _apply_change_inner(
                product_id=product_id,
                merchant_id=merchant_id,
                delta_qty=delta_qty,
                reason=reason,
                actor_id=actor_id,
                ref_id=ref_id,
                note=note,
            )
        )
    return results


def apply_batch(
    changes: list[StockChange],
    *,
    merchant_id: int,
    reason: str,
    actor_id: int | None,
    ref_id: int | None = None,
    note: str | None = None,
    commit: bool = True,
) -> list[StockChangeResult]:
    """
    Apply several stock changes all-or-nothing, in ascending product id order.

    Returns one result per product actually changed.
    """
    if not changes:
        raise InvalidInputError("At least one stock change is required")
    _validate_reason(reason)
    merged = _merge_changes(changes)

    def _op():
        return _apply_batch_inner(
            merged,
            merchant_id=merchant_id,
            reason=reason,
            actor_id=actor_id,
            ref_id=ref_id,
            note=note,
        )

    if not commit:
        return _op()
    return run_atomic(_op)


def register_product(
    *,
    merchant_id: int,
    slug: str,
    name: str,
    price_cents: int,
    actor_id: int | None = None,
    opening_qty: int = 0,
    is_active: bool = True,
) -> Product:
    """
    Create a product at stock 0 and book its opening stock through the ledger.

    The opening quantity is a 'restock' entry so that replaying the ledger
    from creation reproduces stock_qty.
    """
    if price_cents is None or price_cents < 0 or price_cents > MAX_STOCK_QTY:
        raise InvalidInputError(f"price_cents must be between 0 and {MAX_STOCK_QTY}", details={"price_cents": price_cents})
    if opening_qty < 0 or opening_qty > MAX_STOCK_QTY:
        raise InvalidInputError(f"opening_qty must be between 0 and {MAX_STOCK_QTY}", details={"opening_qty": opening_qty})

    def _op():
        if db.session.get(Merchant, merchant_id) is None:
            raise NotFoundError(f"Merchant with ID {merchant_id} not found")

        existing = db.session.query(Product).filter_by(merchant_id=merchant_id, slug=slug).first()
        if existing is not None:
            raise InvalidInputError(
                "Product slug already exists for this merchant",
                details={"slug": slug, "product_id": existing.id},
            )

        product = Product(
            merchant_id=merchant_id,
            slug=slug,
            name=name,
            price_cents=price_cents,
            stock_qty=0,
            is_active=is_active,
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.session.add(product)
        db.session.flush()

        if opening_qty:
            _apply_change_inner(
                product_id=product.id,
                merchant_id=merchant_id,
                delta_qty=opening_qty,
                reason="restock",
                actor_id=actor_id,
                note="Opening stock",
            )
        return product

    return run_atomic(_op)


# =============================================================================
# READ SIDE
# =============================================================================

def get_stock_quantity(product_id: int, merchant_id: int) -> int:
    return require_product_in_merchant(product_id, merchant_id).stock_qty


def replay_stock_quantity(product_id: int) -> int:
    """Sum of every logged change for a product."""
    total = db.session.query(
        func.coalesce(func.sum(StockLog.change_qty), 0)
    ).filter(StockLog.product_id == product_id).scalar()
    return int(total or 0)


def reconcile_product(product_id: int, merchant_id: int) -> dict:
    product = require_product_in_merchant(product_id, merchant_id)
    ledger_qty = replay_stock_quantity(product_id)
    return {
        "product_id": product.id,
        "slug": product.slug,
        "stock_qty": product.stock_qty,
        "ledger_qty": ledger_qty,
        "difference": product.stock_qty - ledger_qty,
        "balanced": product.stock_qty == ledger_qty,
    }


def find_ledger_mismatches(merchant_id: int | None = None) -> list[dict]:
    """Products whose stock_qty disagrees with the sum of their ledger."""
    ledger = (
        db.session.query(
            StockLog.product_id.label("product_id"),
            func.sum(StockLog.change_qty).label("ledger_qty"),
        )
        .group_by(StockLog.product_id)
        .subquery()
    )
    ledger_qty = func.coalesce(ledger.c.ledger_qty, 0)

    q = db.session.query(
        Product.id,
        Product.merchant_id,
        Product.slug,
        Product.stock_qty,
        ledger_qty.label("ledger_qty"),
    ).outerjoin(ledger, ledger.c.product_id == Product.id)
    if merchant_id is not None:
        q = q.filter(Product.merchant_id == merchant_id)
    q = q.filter(Product.stock_qty != ledger_qty).order_by(Product.id)

    mismatches = [
        {
            "product_id": row.id,
            "merchant_id": row.merchant_id,
            "slug": row.slug,
            "stock_qty": row.stock_qty,
            "ledger_qty": int(row.ledger_qty),
            "difference": row.stock_qty - int(row.ledger_qty),
        }
        for row in q.all()
    ]
    if mismatches:
        current_app.logger.warning("Ledger reconciliation found %d mismatched products", len(mismatches))
    return mismatches


def list_stock_logs(
    *,
    merchant_id: int,
    product_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = 1,
    limit: int | None = None,
) -> tuple[list[StockLog], dict]:
    """
    Stock log entries for a merchant, newest first.

    Time bounds are inclusive. Filtering on a product of another merchant
    raises ProductNotFound rather than returning an empty page.
    """
    if product_id is not None:
        require_product_in_merchant(product_id, merchant_id)

    q = (
        db.session.query(StockLog)
        .join(Product, Product.id == StockLog.product_id)
        .options(joinedload(StockLog.product))
        .filter(Product.merchant_id == merchant_id)
    )
    if product_id is not None:
        q = q.filter(StockLog.product_id == product_id)
    if start is not None:
        q = q.filter(StockLog.created_at >= start)
    if end is not None:
        q = q.filter(StockLog.created_at <= end)

    q = q.order_by(StockLog.created_at.desc(), StockLog.id.desc())
    return paginate(q, page, limit)
