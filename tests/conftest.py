"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real database. Tables are created before each test and dropped
after it, so no test data persists between tests.
"""

import itertools
import os
from datetime import datetime
from decimal import Decimal

# Point the application at the test database before it is imported
TEST_DATABASE_URL = "sqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from lab_billing.main import app
from lab_billing.models import (
    Base,
    Order,
    OrderStatus,
    PricingRule,
    PricingRuleType,
    UserRole,
)
from lab_billing.models.base import get_db
from lab_billing.schemas.actor import Actor
from lab_billing.services.invoice_generator import InvoiceGenerator


engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def other_session():
    """A second, independent session for concurrency tests."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    The get_db dependency is overridden so the FastAPI app
    uses the test session instead of the real database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- Actors ---

@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=UserRole.ADMIN)


@pytest.fixture
def lab_staff():
    return Actor(user_id="staff-1", role=UserRole.LAB_STAFF, lab_id=1)


@pytest.fixture
def doctor():
    return Actor(user_id="doctor-1", role=UserRole.DOCTOR)


@pytest.fixture
def other_doctor():
    return Actor(user_id="doctor-2", role=UserRole.DOCTOR)


# --- Reference data ---

@pytest.fixture
def platform_pricing(db_session):
    """Crowns at 100.00 per unit and a 10% urgency surcharge."""
    rules = [
        PricingRule(
            rule_name="crown-standard",
            rule_type=PricingRuleType.BASE_PRICE,
            restoration_type="crown",
            amount=Decimal("100.00"),
            priority=100,
        ),
        PricingRule(
            rule_name="urgency-10pct",
            rule_type=PricingRuleType.URGENCY_SURCHARGE,
            restoration_type=None,
            amount=Decimal("10.00"),
            is_percentage=True,
            priority=100,
        ),
    ]
    db_session.add_all(rules)
    db_session.commit()
    return rules


@pytest.fixture
def make_order(db_session):
    """Factory for orders that are delivered and confirmed unless overridden."""
    numbers = itertools.count(1)

    def _make(**overrides):
        now = datetime.utcnow()
        values = {
            "order_number": f"ORD-{next(numbers):04d}",
            "doctor_id": "doctor-1",
            "lab_id": 1,
            "restoration_type": "crown",
            "is_urgent": False,
            "unit_count": 1,
            "status": OrderStatus.DELIVERED,
            "delivered_at": now,
            "delivery_confirmed_at": now,
        }
        values.update(overrides)
        order = Order(**values)
        db_session.add(order)
        db_session.commit()
        return order

    return _make


@pytest.fixture
def make_invoice(db_session, make_order, platform_pricing, admin):
    """Factory for generated invoices on fresh orders."""
    def _make(**order_overrides):
        order = make_order(**order_overrides)
        invoice = InvoiceGenerator(db_session).generate(order.id, admin)
        db_session.commit()
        return invoice

    return _make
