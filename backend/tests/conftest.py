"""
Pytest fixtures for stockledger backend tests.

Provides an in-memory application, per-test table wipes, and small factories
for customers and inventory items owned by two separate users.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.services import customer_service, inventory_service


USER_A = "user-a"
USER_B = "user-b"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF_SECONDS': 0,
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
def make_customer(db_session):
    """Factory: create a customer through the customer service."""
    def _make(user_id=USER_A, name="Alice Traders", phone="555-0100", **extra):
        data = {"name": name, "phone": phone}
        data.update(extra)
        return customer_service.create_customer(user_id, data)
    return _make


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: create an inventory item through the inventory service."""
    def _make(user_id=USER_A, name="Widget", category="Hardware", quantity=10,
              price_cents=500, low_stock_threshold=2, **extra):
        data = {
            "name": name,
            "category": category,
            "quantity": quantity,
            "price_cents": price_cents,
            "low_stock_threshold": low_stock_threshold,
        }
        data.update(extra)
        return inventory_service.create_item(user_id, data)
    return _make


@pytest.fixture(scope='function')
def customer(make_customer):
    return make_customer()


@pytest.fixture(scope='function')
def item_a(make_item):
    """Item A from the reference scenario: 10 units at 5.00."""
    return make_item(name="Item A", quantity=10, price_cents=500)


def auth_headers(user_id: str = USER_A) -> dict:
    """Helper to create identity headers."""
    return {'X-User-Id': user_id}
