"""
Pytest fixtures for the stock ledger tests.

Provides an in-memory database, a test client and product/sale factories.
"""

import pytest

from pos_ledger import create_app
from pos_ledger.extensions import db
from pos_ledger.models import Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_ALERTS_ENABLED': True,
        'LEDGER_RETRY_BACKOFF': 0,
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
        # Clear all data but keep schema; table deletes bypass the ORM listeners
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for catalog products."""
    counter = {"n": 0}

    def _make(stock=0, pieces_per_sheet=1, sheets_per_box=1, reorder_level=0, sku=None, name=None):
        counter["n"] += 1
        product = Product(
            sku=sku or f"SKU-{counter['n']:04d}",
            name=name or f"Product {counter['n']}",
            stock_in_pieces=stock,
            pieces_per_sheet=pieces_per_sheet,
            sheets_per_box=sheets_per_box,
            reorder_level=reorder_level,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """1000 pieces; 10 pieces per sheet, 5 sheets per box."""
    return make_product(stock=1000, pieces_per_sheet=10, sheets_per_box=5, sku="STICKER-A")


def line(product_id, quantity, unit_type="piece", unit_price_cents=100):
    """Helper to build a raw line item payload."""
    return {
        "product_id": product_id,
        "quantity": quantity,
        "unit_type": unit_type,
        "unit_price_cents": unit_price_cents,
    }


def stock_of(product_id) -> int:
    """Read current stock straight from the database."""
    db.session.expire_all()
    return db.session.get(Product, product_id).stock_in_pieces
