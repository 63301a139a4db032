"""
Stock Adjustment Tests

Manual adjustments share the ledger's conditional update, so they follow
the same non-negative rule and always leave a log with ref_id NULL.
"""

import pytest

from posledger.extensions import db
from posledger.models import Product, StockLog
from posledger.services import inventory_service, stock_service
from posledger.services.errors import (
    InsufficientStock,
    InvalidDelta,
    InvalidInputError,
    InvalidReason,
    ProductNotFound,
    QuantityOutOfRange,
)


def _adjust(merchant, cashier, product, delta_qty, reason="restock", note=None):
    return stock_service.adjust(
        product_id=product.id,
        merchant_id=merchant.id,
        actor_id=cashier.id,
        delta_qty=delta_qty,
        reason=reason,
        note=note,
    )


class TestAdjust:

    def test_restock(self, db_session, merchant_a, cashier_a, product_a2):
        """Kopi Susu at 50, restocked by 50, ends at 100."""
        result = _adjust(merchant_a, cashier_a, product_a2, 50, note="Weekly delivery")

        assert result.product.id == product_a2.id
        assert result.product.stock_qty == 100
        assert result.log_entry.change_qty == 50
        assert result.log_entry.reason == "restock"
        assert result.log_entry.ref_id is None
        assert result.log_entry.note == "Weekly delivery"
        assert result.log_entry.created_by == cashier_a.id

    @pytest.mark.parametrize("reason", ["damage", "correction", "manual"])
    def test_negative_reasons(self, db_session, merchant_a, cashier_a, product_a, reason):
        result = _adjust(merchant_a, cashier_a, product_a, -5, reason=reason)
        assert result.product.stock_qty == 95
        assert result.log_entry.reason == reason

    def test_removal_beyond_stock(self, db_session, merchant_a, cashier_a, product_a2):
        logs_before = db.session.query(StockLog).count()

        with pytest.raises(InsufficientStock) as exc_info:
            _adjust(merchant_a, cashier_a, product_a2, -51, reason="damage")

        assert exc_info.value.available == 50
        assert exc_info.value.requested == 51
        assert db.session.get(Product, product_a2.id).stock_qty == 50
        assert db.session.query(StockLog).count() == logs_before

    def test_sale_is_not_an_adjustment_reason(self, db_session, merchant_a, cashier_a, product_a):
        with pytest.raises(InvalidReason):
            _adjust(merchant_a, cashier_a, product_a, -1, reason="sale")

    def test_zero_change(self, db_session, merchant_a, cashier_a, product_a):
        with pytest.raises(InvalidDelta):
            _adjust(merchant_a, cashier_a, product_a, 0)

    def test_removal_beyond_column_range(self, db_session, merchant_a, cashier_a, product_a):
        logs_before = db.session.query(StockLog).count()

        with pytest.raises(QuantityOutOfRange) as exc_info:
            _adjust(merchant_a, cashier_a, product_a, -(10**19), reason="damage")

        assert isinstance(exc_info.value, InvalidInputError)
        assert db.session.get(Product, product_a.id).stock_qty == 100
        assert db.session.query(StockLog).count() == logs_before

    def test_note_too_long(self, db_session, merchant_a, cashier_a, product_a):
        with pytest.raises(InvalidInputError):
            _adjust(merchant_a, cashier_a, product_a, 1, note="x" * (stock_service.MAX_NOTE_LENGTH + 1))
        assert db.session.get(Product, product_a.id).stock_qty == 100

    def test_foreign_product(self, db_session, merchant_a, cashier_a, product_b):
        with pytest.raises(ProductNotFound):
            _adjust(merchant_a, cashier_a, product_b, 5)
        assert db.session.get(Product, product_b.id).stock_qty == 30

    def test_adjustments_keep_ledger_balanced(self, db_session, merchant_a, cashier_a, product_a):
        _adjust(merchant_a, cashier_a, product_a, 20)
        _adjust(merchant_a, cashier_a, product_a, -7, reason="damage")
        _adjust(merchant_a, cashier_a, product_a, 3, reason="correction")

        report = inventory_service.reconcile_product(product_a.id, merchant_a.id)
        assert report["stock_qty"] == 116
        assert report["balanced"] is True
