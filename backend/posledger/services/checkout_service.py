"""
Checkout: turns a cart into a committed sale.

One unit of work covers validation, the price/name snapshot, the
transaction header and items, and the stock decrement of every line. If any
line cannot be fulfilled the whole cart fails; there is no partial
fulfilment and nothing from the attempt is left in the database.

DESIGN PRINCIPLES:
- Prices are snapshotted from product rows locked in the same transaction
  that decrements their stock, so a sale is never priced against a row that
  changes before it commits.
- Rows are locked in ascending product id order (the ledger applies the
  decrements in the same order).
- shift_id is recorded as given. An unknown, closed or missing shift never
  blocks a sale.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Product, Transaction, TransactionItem
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from .errors import (
    EmptyCart,
    InsufficientStock,
    InvalidInputError,
    InvalidQuantity,
    NotFoundError,
    ProductNotFound,
)
from .inventory_service import StockChange, _apply_batch_inner, _merge_changes
from .pagination import paginate
from .tenant_service import merchant_outlet_ids, require_outlet_in_merchant


# transactions.total_amount_cents is BIGINT
MAX_AMOUNT_CENTS = 2**63 - 1


@dataclass(frozen=True)
class CartLine:
    product_id: int
    qty: int


def _load_products_locked(product_ids: list[int], merchant_id: int) -> dict[int, Product]:
    query = (
        db.session.query(Product)
        .filter(
            Product.id.in_(product_ids),
            Product.merchant_id == merchant_id,
            Product.is_active.is_(True),
        )
        .order_by(Product.id)
        .populate_existing()
    )
    products = lock_for_update(query).all()
    return {product.id: product for product in products}


def checkout(
    *,
    outlet_id: int,
    merchant_id: int,
    actor_id: int,
    payment_method: str,
    items: list[CartLine],
    shift_id: int | None = None,
    device_id: str | None = None,
    is_offline: bool = False,
) -> Transaction:
    """
    Record a sale and decrement stock for every line, atomically.

    Validation order: outlet ownership, non-empty cart, payment method,
    products (exist, same merchant, active), quantities,
    then stock for each line in cart order.

    Raises:
        OutletMismatch: outlet not owned by merchant (an UnauthorizedError)
        EmptyCart / InvalidQuantity / InvalidInputError: bad cart
        ProductNotFound: any product missing, foreign or inactive
        InsufficientStock: first cart line whose product cannot cover the
            merged quantity of that product
        StorageConflict: the database aborted the unit of work
    """
    def _op():
        require_outlet_in_merchant(outlet_id, merchant_id)

        if not items:
            raise EmptyCart()

        if not payment_method or not str(payment_method).strip():
            raise InvalidInputError("payment_method is required")

        product_ids = sorted({line.product_id for line in items})
        products = _load_products_locked(product_ids, merchant_id)
        missing = [pid for pid in product_ids if pid not in products]
        if missing:
            raise ProductNotFound(*missing)

        for line in items:
            if isinstance(line.qty, bool) or not isinstance(line.qty, int) or line.qty <= 0:
                raise InvalidQuantity(line.product_id, line.qty)

        demand: dict[int, int] = {}
        for line in items:
            demand[line.product_id] = demand.get(line.product_id, 0) + line.qty

        # Report the first short line in cart order; the ledger update re-checks.
        for line in items:
            product = products[line.product_id]
            if demand[line.product_id] > product.stock_qty:
                raise InsufficientStock(
                    product_id=product.id,
                    available=product.stock_qty,
                    requested=demand[line.product_id],
                    product_name=product.name,
                )

        now = utcnow()
        txn = Transaction(
            outlet_id=outlet_id,
            user_id=actor_id,
            shift_id=shift_id,
            payment_method=str(payment_method).strip(),
            total_amount_cents=0,
            is_offline=bool(is_offline),
            device_id=device_id,
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        db.session.add(txn)

        total = 0
        for line in items:
            product = products[line.product_id]
            subtotal = product.price_cents * line.qty
            total += subtotal
            txn.items.append(
                TransactionItem(
                    product_id=product.id,
                    product_name_snapshot=product.name,
                    price_snapshot_cents=product.price_cents,
                    qty=line.qty,
                    subtotal_cents=subtotal,
                    created_at=now,
                )
            )
        if total > MAX_AMOUNT_CENTS:
            raise InvalidInputError(
                "Transaction total exceeds the supported amount",
                details={"total_amount_cents": total},
            )
        txn.total_amount_cents = total
        db.session.flush()

        merged = _merge_changes([StockChange(line.product_id, -line.qty) for line in items])
        _apply_batch_inner(
            merged,
            merchant_id=merchant_id,
            reason="sale",
            actor_id=actor_id,
            ref_id=txn.id,
        )
        return txn.id

    transaction_id = run_atomic(_op)
    current_app.logger.info(
        "Checkout committed: transaction=%s outlet=%s actor=%s lines=%d",
        transaction_id,
        outlet_id,
        actor_id,
        len(items),
    )
    return get_transaction(transaction_id, merchant_id)


# =============================================================================
# READ SIDE
# =============================================================================

def get_transaction(transaction_id: int, merchant_id: int) -> Transaction:
    """Transaction with its items, scoped to the merchant's outlets."""
    outlet_ids = merchant_outlet_ids(merchant_id)
    txn = (
        db.session.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.outlet_id.in_(outlet_ids))
        .first()
    )
    if txn is None:
        raise NotFoundError(
            f"Transaction with ID {transaction_id} not found",
            details={"transaction_id": transaction_id},
        )
    return txn


def list_transactions(
    *,
    merchant_id: int,
    outlet_id: int | None = None,
    shift_id: int | None = None,
    page: int | None = 1,
    limit: int | None = None,
) -> tuple[list[Transaction], dict]:
    """Newest-first sales of a merchant, optionally for one outlet or shift."""
    if outlet_id is not None:
        require_outlet_in_merchant(outlet_id, merchant_id, error_cls=_outlet_not_found)
        outlet_ids = [outlet_id]
    else:
        outlet_ids = merchant_outlet_ids(merchant_id)

    q = db.session.query(Transaction).filter(Transaction.outlet_id.in_(outlet_ids))
    if shift_id is not None:
        q = q.filter(Transaction.shift_id == shift_id)
    q = q.order_by(Transaction.created_at.desc(), Transaction.id.desc())
    return paginate(q, page, limit)


def _outlet_not_found(outlet_id: int) -> NotFoundError:
    return NotFoundError(f"Outlet with ID {outlet_id} not found", details={"outlet_id": outlet_id})
