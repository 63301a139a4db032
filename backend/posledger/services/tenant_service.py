"""
Tenant scoping helpers.

Every outlet and product id that arrives from a request must be checked
against the caller's merchant before it is used. Lookups for another
merchant's rows behave exactly like lookups for missing rows, so ids
cannot be probed across tenants.

USAGE:
    from posledger.services.tenant_service import require_outlet_in_merchant

    outlet = require_outlet_in_merchant(outlet_id, merchant_id)
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Outlet, Product
from .errors import OutletMismatch, ProductNotFound


def require_outlet_in_merchant(outlet_id: int, merchant_id: int, *, error_cls=OutletMismatch) -> Outlet:
    """
    Return the outlet when it belongs to ``merchant_id``.

    Raises ``error_cls(outlet_id)`` (OutletMismatch by default) when the
    outlet is missing or owned by another merchant.
    """
    outlet = db.session.query(Outlet).filter_by(id=outlet_id).first()

    if outlet is None or outlet.merchant_id != merchant_id:
        current_app.logger.warning(
            "Cross-tenant outlet reference: outlet=%s merchant=%s owner=%s",
            outlet_id,
            merchant_id,
            outlet.merchant_id if outlet else None,
        )
        raise error_cls(outlet_id)

    return outlet


def merchant_outlet_ids(merchant_id: int) -> list[int]:
    """All outlet ids owned by a merchant (used to scope shifts and sales)."""
    rows = db.session.query(Outlet.id).filter(Outlet.merchant_id == merchant_id).all()
    return [row.id for row in rows]


def require_product_in_merchant(product_id: int, merchant_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, merchant_id=merchant_id).first()
    if product is None:
        raise ProductNotFound(product_id)
    return product
