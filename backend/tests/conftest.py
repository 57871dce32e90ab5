"""
Pytest fixtures for imeipos backend tests.

Provides test database setup, master data, stock and an open cash register.
"""

import pytest
from imeipos import create_app
from imeipos.extensions import db
from imeipos.models import Product, Customer, Supplier, InventoryItem
from imeipos.services.permission_service import Actor
from imeipos.services.purchase_service import create_purchase, get_purchase_items
from imeipos.services.register_service import open_session


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_ATTEMPTS': 1,
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

        # Restore config a test may have flipped
        app.config['REQUIRE_OPEN_SESSION_FOR_SALES'] = True
        app.config['REQUIRE_OPEN_SESSION_FOR_PURCHASES'] = True

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def register(db_session):
    """Open cash register session with a 100.00 float."""
    return open_session(opening_balance=10000, opened_by="Test Cashier")


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(name="Phone X", brand="Acme", category="Smartphones")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Jane Buyer", phone="555-0100")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def other_customer(db_session):
    customer = Customer(name="John Buyer", phone="555-0101")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Wholesale Phones Ltd", phone="555-0200")
    db_session.add(supplier)
    db_session.commit()
    return supplier


def receive_stock(product, imeis, unit_price=20000, supplier=None, paid_amount=None):
    """Buy one item per IMEI on a single invoice and return (invoice, items)."""
    total = unit_price * len(imeis)
    invoice = create_purchase(
        items=[{"product_id": product.id, "imei": imei, "unit_price": unit_price} for imei in imeis],
        supplier_id=supplier.id if supplier else None,
        paid_amount=total if paid_amount is None else paid_amount,
    )
    lines = get_purchase_items(invoice.id)
    items = [db.session.get(InventoryItem, line.item_id) for line in lines]
    return invoice, items


@pytest.fixture(scope='function')
def stock(db_session, register, product, supplier):
    """Four available phones (cost 200.00 each) on one fully-paid invoice."""
    _, items = receive_stock(
        product,
        ["350000000000001", "350000000000002", "350000000000003", "350000000000004"],
        supplier=supplier,
    )
    return items


def actor(role: str, user_id: int = 1) -> Actor:
    return Actor(user_id=user_id, role=role)


def role_headers(role: str, user_id: int = 1) -> dict:
    """Helper to create gateway identity headers."""
    return {'X-User-Role': role, 'X-User-Id': str(user_id)}
