"""
Pytest fixtures for posledger backend tests.

Provides an in-memory application, a wiped database per test, and two
tenants (merchant A and merchant B) with outlets, cashiers and products.
"""

import pytest
from posledger import create_app
from posledger.extensions import db
from posledger.models import Merchant, Outlet, User
from posledger.services import inventory_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def merchant_a(db_session):
    merchant = Merchant(name="Merchant A - Kopi Kita", slug="kopi-kita")
    db_session.add(merchant)
    db_session.commit()
    return merchant


@pytest.fixture(scope='function')
def merchant_b(db_session):
    merchant = Merchant(name="Merchant B - Teh Sore", slug="teh-sore")
    db_session.add(merchant)
    db_session.commit()
    return merchant


@pytest.fixture(scope='function')
def outlet_a(db_session, merchant_a):
    outlet = Outlet(merchant_id=merchant_a.id, name="Main Branch", slug="main-branch")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def outlet_a2(db_session, merchant_a):
    """Second outlet of merchant A."""
    outlet = Outlet(merchant_id=merchant_a.id, name="Second Branch", slug="second-branch")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def outlet_b(db_session, merchant_b):
    outlet = Outlet(merchant_id=merchant_b.id, name="B Branch", slug="b-branch")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def cashier_a(db_session, merchant_a):
    user = User(merchant_id=merchant_a.id, name="Cashier A", username="cashier_a")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier_a2(db_session, merchant_a):
    user = User(merchant_id=merchant_a.id, name="Cashier A2", username="cashier_a2")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier_b(db_session, merchant_b):
    user = User(merchant_id=merchant_b.id, name="Cashier B", username="cashier_b")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def product_a(db_session, merchant_a, cashier_a):
    """Kopi Hitam: price 15000, opening stock 100."""
    return inventory_service.register_product(
        merchant_id=merchant_a.id,
        slug="kopi-hitam",
        name="Kopi Hitam",
        price_cents=15000,
        actor_id=cashier_a.id,
        opening_qty=100,
    )


@pytest.fixture(scope='function')
def product_a2(db_session, merchant_a, cashier_a):
    """Kopi Susu: price 18000, opening stock 50."""
    return inventory_service.register_product(
        merchant_id=merchant_a.id,
        slug="kopi-susu",
        name="Kopi Susu",
        price_cents=18000,
        actor_id=cashier_a.id,
        opening_qty=50,
    )


@pytest.fixture(scope='function')
def product_b(db_session, merchant_b, cashier_b):
    """Product of merchant B."""
    return inventory_service.register_product(
        merchant_id=merchant_b.id,
        slug="teh-manis",
        name="Teh Manis",
        price_cents=8000,
        actor_id=cashier_b.id,
        opening_qty=30,
    )


def _identity_headers(user) -> dict:
    """Identity headers as forwarded by the auth gateway."""
    return {
        "X-Actor-Id": str(user.id),
        "X-Merchant-Id": str(user.merchant_id),
    }


@pytest.fixture(scope="function")
def headers_a(cashier_a):
    return _identity_headers(cashier_a)


@pytest.fixture(scope="function")
def headers_b(cashier_b):
    return _identity_headers(cashier_b)
