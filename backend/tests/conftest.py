"""
Pytest fixtures for delivery ledger backend tests.

Provides test database setup, master data fixtures, and test client.
"""

from datetime import date

import pytest
from delivery_ledger import create_app
from delivery_ledger.extensions import db
from delivery_ledger.models import Course, Customer, CustomerSetting, DeliveryPattern, Invoice, Product


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
def course(db_session):
    """Create a delivery course."""
    course = Course(name="Course A")
    db_session.add(course)
    db_session.commit()
    return course


@pytest.fixture(scope='function')
def milk(db_session):
    """Create a product priced at 180 yen."""
    product = Product(name="Milk 900ml", unit="bottle", unit_price=180)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def yogurt(db_session):
    """Create a product priced at 120 yen."""
    product = Product(name="Yogurt", unit="cup", unit_price=120)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer_a(db_session, course):
    """First customer on the course."""
    customer = Customer(name="Customer A", course_id=course.id, delivery_order=1)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, course):
    """Second customer on the course."""
    customer = Customer(name="Customer B", course_id=course.id, delivery_order=2)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_pattern(db_session):
    """Factory inserting a delivery pattern directly (no month-lock checks)."""
    def _make(customer, product, *, days=(1, 3), quantity=2, unit_price=None,
              start=date(2025, 6, 1), end=None, daily=None, is_active=True):
        pattern = DeliveryPattern(
            customer_id=customer.id,
            product_id=product.id,
            delivery_days=list(days),
            daily_quantities=daily,
            quantity=quantity,
            unit_price=product.unit_price if unit_price is None else unit_price,
            start_date=start,
            end_date=end,
            is_active=is_active,
        )
        db_session.add(pattern)
        db_session.commit()
        return pattern
    return _make


@pytest.fixture(scope='function')
def confirm_month(db_session):
    """Factory inserting a confirmed invoice directly."""
    def _confirm(customer, year: int, month: int, amount: int = 0, rounding_enabled: bool = True):
        invoice = Invoice(
            customer_id=customer.id,
            year=year,
            month=month,
            amount=amount,
            rounding_enabled=rounding_enabled,
        )
        db_session.add(invoice)
        db_session.commit()
        return invoice
    return _confirm


@pytest.fixture(scope='function')
def set_rounding(db_session):
    """Factory storing a customer's rounding setting."""
    def _set(customer, enabled: bool):
        db_session.add(CustomerSetting(customer_id=customer.id, rounding_enabled=enabled))
        db_session.commit()
    return _set
