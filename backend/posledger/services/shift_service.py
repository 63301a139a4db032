"""
Cashier shift lifecycle.

WHY: Sales are attributed to the cashier session they happened in. A shift
is opened by a cashier at an outlet and closed once; closed is terminal.

DESIGN PRINCIPLES:
- At most one open shift per (outlet, user). The query check gives the
  friendly error; the partial unique index catches two racing opens.
- Any user of the merchant may close a shift reachable through one of the
  merchant's outlets.
- Checkout does not depend on shift state (see checkout_service).
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Shift, Transaction, SHIFT_OPEN, SHIFT_CLOSED
from ..time_utils import utcnow, to_utc_z
from .concurrency import lock_for_update, run_atomic
from .errors import AlreadyClosed, AlreadyOpen, InvalidInputError, NotFoundError
from .tenant_service import merchant_outlet_ids, require_outlet_in_merchant

SHIFT_STATUSES = (SHIFT_OPEN, SHIFT_CLOSED)


def _find_open_shift(outlet_id: int, user_id: int) -> Shift | None:
    return db.session.query(Shift).filter_by(
        outlet_id=outlet_id,
        user_id=user_id,
        status=SHIFT_OPEN,
    ).first()


def open_shift(*, outlet_id: int, merchant_id: int, actor_id: int) -> Shift:
    """
    Open a shift for the actor at an outlet.

    Raises:
        OutletMismatch: outlet not owned by the merchant
        AlreadyOpen: the actor already has an open shift at this outlet
    """
    def _op():
        require_outlet_in_merchant(outlet_id, merchant_id)

        existing = _find_open_shift(outlet_id, actor_id)
        if existing is not None:
            raise AlreadyOpen(existing.id)

        now = utcnow()
        shift = Shift(
            outlet_id=outlet_id,
            user_id=actor_id,
            start_time=now,
            status=SHIFT_OPEN,
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        db.session.add(shift)
        db.session.flush()
        return shift.id

    try:
        shift_id = run_atomic(_op)
    except IntegrityError:
        # Lost the race against a concurrent open for the same pair
        existing = _find_open_shift(outlet_id, actor_id)
        if existing is None:
            raise
        raise AlreadyOpen(existing.id)

    current_app.logger.info("Shift opened: shift=%s outlet=%s user=%s", shift_id, outlet_id, actor_id)
    return db.session.get(Shift, shift_id)


def _shift_in_merchant_query(shift_id: int, merchant_id: int):
    outlet_ids = merchant_outlet_ids(merchant_id)
    return db.session.query(Shift).filter(Shift.id == shift_id, Shift.outlet_id.in_(outlet_ids))


def close_shift(*, shift_id: int, merchant_id: int, actor_id: int) -> Shift:
    """
    Close an open shift.

    Raises:
        NotFoundError: no such shift under any of the merchant's outlets
        AlreadyClosed: the shift was closed before
    """
    def _op():
        shift = lock_for_update(_shift_in_merchant_query(shift_id, merchant_id)).first()
        if shift is None:
            raise NotFoundError(f"Shift with ID {shift_id} not found", details={"shift_id": shift_id})

        if shift.status == SHIFT_CLOSED:
            raise AlreadyClosed(shift_id)

        now = utcnow()
        shift.end_time = now
        shift.status = SHIFT_CLOSED
        shift.updated_by = actor_id
        shift.updated_at = now
        return shift.id

    run_atomic(_op)
    current_app.logger.info("Shift closed: shift=%s actor=%s", shift_id, actor_id)
    return db.session.get(Shift, shift_id)


# =============================================================================
# READ SIDE
# =============================================================================

def get_shift(shift_id: int, merchant_id: int) -> Shift:
    shift = _shift_in_merchant_query(shift_id, merchant_id).first()
    if shift is None:
        raise NotFoundError(f"Shift with ID {shift_id} not found", details={"shift_id": shift_id})
    return shift


def get_open_shift(*, outlet_id: int, user_id: int, merchant_id: int) -> Shift | None:
    """The user's current open shift at the outlet, or None."""
    require_outlet_in_merchant(outlet_id, merchant_id)
    return _find_open_shift(outlet_id, user_id)


def list_shifts(
    *,
    merchant_id: int,
    outlet_id: int | None = None,
    user_id: int | None = None,
    status: str | None = None,
) -> list[Shift]:
    """Shifts of the merchant, newest start first."""
    if status is not None and status not in SHIFT_STATUSES:
        raise InvalidInputError(
            f"status must be one of: {', '.join(SHIFT_STATUSES)}",
            details={"status": status},
        )

    if outlet_id is not None:
        outlet_ids = [outlet_id] if outlet_id in merchant_outlet_ids(merchant_id) else []
        if not outlet_ids:
            raise NotFoundError(f"Outlet with ID {outlet_id} not found", details={"outlet_id": outlet_id})
    else:
        outlet_ids = merchant_outlet_ids(merchant_id)

    q = db.session.query(Shift).filter(Shift.outlet_id.in_(outlet_ids))
    if user_id is not None:
        q = q.filter(Shift.user_id == user_id)
    if status is not None:
        q = q.filter(Shift.status == status)
    return q.order_by(Shift.start_time.desc(), Shift.id.desc()).all()


def _shift_sales_query(shift: Shift):
    # only sales at the shift's own outlet count
    return db.session.query(Transaction).filter(
        Transaction.shift_id == shift.id,
        Transaction.outlet_id == shift.outlet_id,
    )


def _summarize(shift: Shift) -> dict:
    row = _shift_sales_query(shift).with_entities(
        func.count(Transaction.id).label("transaction_count"),
        func.coalesce(func.sum(Transaction.total_amount_cents), 0).label("total_amount_cents"),
    ).one()
    return {
        "shift_id": shift.id,
        "transaction_count": int(row.transaction_count or 0),
        "total_amount_cents": int(row.total_amount_cents or 0),
    }


def shift_summary(shift_id: int, merchant_id: int) -> dict:
    """Count and total of the sales that named this shift at checkout."""
    return _summarize(get_shift(shift_id, merchant_id))


def get_shift_detail(shift_id: int, merchant_id: int) -> dict:
    """
    Shift, its sales summary and the sales themselves (newest first), from
    a single tenant-scoped lookup of the shift.
    """
    shift = get_shift(shift_id, merchant_id)
    sales = (
        _shift_sales_query(shift)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )
    return {
        "shift": shift.to_dict(),
        "summary": _summarize(shift),
        "transactions": [
            {
                "id": txn.id,
                "total_amount_cents": txn.total_amount_cents,
                "payment_method": txn.payment_method,
                "created_at": to_utc_z(txn.created_at),
            }
            for txn in sales
        ],
    }
