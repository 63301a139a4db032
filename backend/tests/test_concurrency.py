"""
Concurrency Tests

Real threads against a file-backed SQLite database (an in-memory database
is a single shared connection and cannot show lock behaviour). Each worker
pushes its own app context and therefore gets its own session.

Verified:
1. Two checkouts racing for the last units: exactly one wins
2. Many small decrements never oversell
3. Carts over the same products in opposite order do not deadlock
4. Racing shift opens leave exactly one open shift
5. A write lock held past the busy timeout gives StorageConflict and no writes
"""

import sqlite3
import threading

import pytest

from posledger import create_app
from posledger.extensions import db
from posledger.models import Merchant, Outlet, Product, Shift, StockLog, User
from posledger.services import checkout_service, inventory_service, shift_service, stock_service
from posledger.services.checkout_service import CartLine
from posledger.services.errors import AlreadyOpen, InsufficientStock, StorageConflict


def _make_file_app(db_path, **extra_config):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        **extra_config,
    })
    with app.app_context():
        db.create_all()
    return app


def _drop(app):
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def file_app(tmp_path):
    app = _make_file_app(tmp_path / "concurrency.sqlite3")
    yield app
    _drop(app)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "locked.sqlite3"


@pytest.fixture
def impatient_app(db_path):
    """Busy timeout of 0.2s, so a held write lock surfaces quickly."""
    app = _make_file_app(db_path, SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"timeout": 0.2}})
    yield app
    _drop(app)


def _seed(app):
    """Merchant with one outlet, one cashier and two products; returns plain ids."""
    with app.app_context():
        merchant = Merchant(name="Race Merchant", slug="race")
        db.session.add(merchant)
        db.session.commit()

        outlet = Outlet(merchant_id=merchant.id, name="Race Outlet", slug="race-outlet")
        cashier = User(merchant_id=merchant.id, name="Racer", username="racer")
        db.session.add_all([outlet, cashier])
        db.session.commit()

        p1 = inventory_service.register_product(
            merchant_id=merchant.id, slug="p1", name="P1", price_cents=1000, opening_qty=5,
        )
        p2 = inventory_service.register_product(
            merchant_id=merchant.id, slug="p2", name="P2", price_cents=2000, opening_qty=20,
        )
        ids = {
            "merchant_id": merchant.id,
            "outlet_id": outlet.id,
            "cashier_id": cashier.id,
            "p1": p1.id,
            "p2": p2.id,
        }
        db.session.remove()
    return ids


@pytest.fixture
def seeded(file_app):
    return _seed(file_app)


def _run_concurrently(app, workers):
    """Start every worker at the same moment; collect ("ok", value) or ("error", exc)."""
    barrier = threading.Barrier(len(workers))
    results = []
    lock = threading.Lock()

    def runner(work):
        with app.app_context():
            try:
                barrier.wait()
                outcome = ("ok", work())
            except Exception as exc:
                outcome = ("error", exc)
            finally:
                db.session.remove()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=runner, args=(work,)) for work in workers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def _stock(app, product_id):
    with app.app_context():
        qty = db.session.get(Product, product_id).stock_qty
        db.session.remove()
    return qty


def _mismatches(app, merchant_id):
    with app.app_context():
        rows = inventory_service.find_ledger_mismatches(merchant_id)
        db.session.remove()
    return rows


class TestConcurrentCheckout:

    def test_last_units_sold_once(self, file_app, seeded):
        """Stock 5, two carts of 3 each: one sale, one InsufficientStock, stock 2."""
        def buy_three():
            txn = checkout_service.checkout(
                outlet_id=seeded["outlet_id"],
                merchant_id=seeded["merchant_id"],
                actor_id=seeded["cashier_id"],
                payment_method="cash",
                items=[CartLine(seeded["p1"], 3)],
            )
            return txn.id

        results = _run_concurrently(file_app, [buy_three, buy_three])

        ok = [value for kind, value in results if kind == "ok"]
        errors = [value for kind, value in results if kind == "error"]
        assert len(ok) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStock)
        assert errors[0].requested == 3
        assert errors[0].available == 2

        assert _stock(file_app, seeded["p1"]) == 2
        assert _mismatches(file_app, seeded["merchant_id"]) == []

    def test_opposite_order_carts_do_not_deadlock(self, file_app, seeded):
        def cart(first, second):
            def work():
                return checkout_service.checkout(
                    outlet_id=seeded["outlet_id"],
                    merchant_id=seeded["merchant_id"],
                    actor_id=seeded["cashier_id"],
                    payment_method="cash",
                    items=[CartLine(first, 1), CartLine(second, 1)],
                ).id
            return work

        p1, p2 = seeded["p1"], seeded["p2"]
        workers = [cart(p1, p2) if i % 2 == 0 else cart(p2, p1) for i in range(4)]
        results = _run_concurrently(file_app, workers)

        assert [kind for kind, _ in results] == ["ok"] * 4
        assert _stock(file_app, p1) == 1
        assert _stock(file_app, p2) == 16
        assert _mismatches(file_app, seeded["merchant_id"]) == []


class TestConcurrentAdjustments:

    def test_decrements_never_oversell(self, file_app, seeded):
        """Ten one-unit removals against stock 5: five succeed, five are refused."""
        def remove_one():
            return stock_service.adjust(
                product_id=seeded["p1"],
                merchant_id=seeded["merchant_id"],
                actor_id=seeded["cashier_id"],
                delta_qty=-1,
                reason="damage",
            ).log_entry.id

        results = _run_concurrently(file_app, [remove_one] * 10)

        ok = [value for kind, value in results if kind == "ok"]
        errors = [value for kind, value in results if kind == "error"]
        assert len(ok) == 5
        assert len(errors) == 5
        assert all(isinstance(e, InsufficientStock) for e in errors)
        assert _stock(file_app, seeded["p1"]) == 0
        assert _mismatches(file_app, seeded["merchant_id"]) == []


class TestConcurrentShiftOpen:

    def test_one_open_shift_per_outlet_user(self, file_app, seeded):
        def open_one():
            return shift_service.open_shift(
                outlet_id=seeded["outlet_id"],
                merchant_id=seeded["merchant_id"],
                actor_id=seeded["cashier_id"],
            ).id

        results = _run_concurrently(file_app, [open_one] * 5)

        ok = [value for kind, value in results if kind == "ok"]
        errors = [value for kind, value in results if kind == "error"]
        assert len(ok) == 1
        assert len(errors) == 4
        assert all(isinstance(e, AlreadyOpen) and e.existing_shift_id == ok[0] for e in errors)

        with file_app.app_context():
            assert db.session.query(Shift).count() == 1
            db.session.remove()


class TestStorageConflict:
    """A write lock held past the busy timeout aborts the unit of work cleanly."""

    def test_locked_database_is_retryable_and_writes_nothing(self, impatient_app, db_path):
        ids = _seed(impatient_app)

        holder = sqlite3.connect(str(db_path), isolation_level=None)
        holder.execute("BEGIN IMMEDIATE")
        try:
            with impatient_app.app_context():
                with pytest.raises(StorageConflict) as exc_info:
                    stock_service.adjust(
                        product_id=ids["p1"],
                        merchant_id=ids["merchant_id"],
                        actor_id=ids["cashier_id"],
                        delta_qty=-1,
                        reason="damage",
                    )
                with pytest.raises(StorageConflict):
                    checkout_service.checkout(
                        outlet_id=ids["outlet_id"],
                        merchant_id=ids["merchant_id"],
                        actor_id=ids["cashier_id"],
                        payment_method="cash",
                        items=[CartLine(ids["p1"], 1)],
                    )
                db.session.remove()
        finally:
            holder.execute("ROLLBACK")
            holder.close()

        assert exc_info.value.status_code == 503
        assert exc_info.value.details == {"retryable": True}
        assert _stock(impatient_app, ids["p1"]) == 5

        with impatient_app.app_context():
            assert db.session.query(StockLog).count() == 2  # opening stock of p1 and p2
            # the same call succeeds once the lock is gone
            result = stock_service.adjust(
                product_id=ids["p1"],
                merchant_id=ids["merchant_id"],
                actor_id=ids["cashier_id"],
                delta_qty=-1,
                reason="damage",
            )
            assert result.product.stock_qty == 4
            db.session.remove()
