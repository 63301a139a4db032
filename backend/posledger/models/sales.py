from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Transaction(db.Model):
    """
    A completed sale at an outlet.

    Written once, together with all of its items and the matching stock
    decrements, in a single database transaction. shift_id is a plain
    integer with no foreign key: it records which shift the cashier named
    at checkout time and implies nothing about that shift's state.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_outlet_created", "outlet_id", "created_at"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_transactions_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    shift_id = db.Column(db.Integer, nullable=True, index=True)

    payment_method = db.Column(db.String(50), nullable=False)
    total_amount_cents = db.Column(db.BigInteger, nullable=False, default=0)

    is_offline = db.Column(db.Boolean, nullable=False, default=False)
    device_id = db.Column(db.String(120), nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    outlet = db.relationship("Outlet", backref=db.backref("transactions", lazy=True))

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "user_id": self.user_id,
            "shift_id": self.shift_id,
            "payment_method": self.payment_method,
            "total_amount_cents": self.total_amount_cents,
            "is_offline": self.is_offline,
            "device_id": self.device_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    One line of a sale. Name and unit price are copied from the product
    when stock is reserved and never follow later catalog edits.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_transaction_items_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name_snapshot = db.Column(db.String(255), nullable=False)
    price_snapshot_cents = db.Column(db.Integer, nullable=False)
    qty = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.BigInteger, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship(
        "Transaction",
        backref=db.backref(
            "items",
            lazy=True,
            cascade="all, delete-orphan",
            order_by="TransactionItem.id",
        ),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name_snapshot": self.product_name_snapshot,
            "price_snapshot_cents": self.price_snapshot_cents,
            "qty": self.qty,
            "subtotal_cents": self.subtotal_cents,
        }
