from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

STOCK_REASONS = ("sale", "restock", "damage", "correction", "manual")


class Product(db.Model):
    """
    Tenant-scoped catalog row carrying the current stock quantity.

    stock_qty is owned by the inventory ledger: it is only ever changed by
    the conditional update in inventory_service, which also bumps
    version_id, so a stale in-memory copy cannot be flushed over it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("merchant_id", "slug", name="uq_products_merchant_slug"),
        db.CheckConstraint("stock_qty >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_merchant_active", "merchant_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)

    slug = db.Column(db.String(120), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    # Minor currency units
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock_qty = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by = db.Column(db.Integer, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    merchant = db.relationship("Merchant", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} slug={self.slug!r} stock_qty={self.stock_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "slug": self.slug,
            "name": self.name,
            "price_cents": self.price_cents,
            "stock_qty": self.stock_qty,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockLog(db.Model):
    """
    Append-only record of one applied stock change.

    Rows are inserted in the same database transaction as the quantity
    update they describe and are never updated or deleted. For every
    product, SUM(change_qty) equals products.stock_qty.
    """
    __tablename__ = "stock_logs"
    __table_args__ = (
        db.CheckConstraint("change_qty <> 0", name="ck_stock_logs_change_nonzero"),
        db.CheckConstraint(
            "reason IN ('sale', 'restock', 'damage', 'correction', 'manual')",
            name="ck_stock_logs_reason",
        ),
        db.Index("ix_stock_logs_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    change_qty = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(16), nullable=False, index=True)

    # Transaction id for reason='sale'
    ref_id = db.Column(db.Integer, nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_logs", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<StockLog id={self.id} product_id={self.product_id} change_qty={self.change_qty} reason={self.reason!r}>"

    def to_dict(self, include_product: bool = True) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "change_qty": self.change_qty,
            "reason": self.reason,
            "ref_id": self.ref_id,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_product:
            data["product"] = {
                "id": self.product.id,
                "name": self.product.name,
                "slug": self.product.slug,
                "stock_qty": self.product.stock_qty,
            }
        return data
