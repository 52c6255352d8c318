import os
import sys
import uuid
from datetime import UTC, datetime
from types import ModuleType

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import DateTime, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

# Keep a developer's .env out of the test run.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""

# Create a test engine BEFORE any saaskit imports
_test_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


class TestBase(DeclarativeBase):
    pass


_TestSessionLocal = sessionmaker(bind=_test_engine, autoflush=False, autocommit=False)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


# Stand-in for saaskit.db bound to the in-memory engine
mock_db_module = ModuleType("saaskit.db")
mock_db_module.Base = TestBase
mock_db_module.TimestampMixin = TimestampMixin
mock_db_module.SessionLocal = _TestSessionLocal
mock_db_module.get_engine = lambda: _test_engine

sys.modules["saaskit.db"] = mock_db_module

# Now import the models - they'll use our mocked db module
from saaskit.models.billing import (  # noqa: E402
    Customer,
    Price,
    PriceType,
    Product,
    RecurringInterval,
    Subscription,
    SubscriptionStatus,
)
from saaskit.models.user import User, UserRole  # noqa: E402
from tests.mocks import FakeStripeGateway, stripe_id  # noqa: E402

TestBase.metadata.create_all(_test_engine)

Base = TestBase


@pytest.fixture(scope="session")
def engine():
    return _test_engine


@pytest.fixture(autouse=True)
def _clean_tables(engine):
    yield
    with engine.begin() as conn:
        for table in reversed(TestBase.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db_session(engine):
    """Session on the shared StaticPool connection."""
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


@pytest.fixture()
def user(db_session):
    user = User(email=_unique_email(), name="Test User", role=UserRole.user)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def admin_user(db_session):
    user = User(email=_unique_email(), name="Admin User", role=UserRole.admin)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def stripe_gateway():
    return FakeStripeGateway()


# ============ FastAPI Test Client Fixtures ============


@pytest.fixture()
def client(db_session, stripe_gateway):
    """Test client with the database and Stripe gateway swapped out."""
    from saaskit.api.deps import get_db, get_stripe_gateway
    from saaskit.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stripe_gateway] = lambda: stripe_gateway

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============ Billing Fixtures ============


@pytest.fixture()
def billing_product(db_session):
    product = Product(id=stripe_id("prod"), name="Pro", is_active=True, metadata_={})
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture()
def billing_price(db_session, billing_product):
    price = Price(
        id=stripe_id("price"),
        product_id=billing_product.id,
        currency="usd",
        unit_amount=1500,
        type=PriceType.recurring,
        recurring_interval=RecurringInterval.month,
        recurring_interval_count=1,
        is_active=True,
    )
    db_session.add(price)
    db_session.commit()
    db_session.refresh(price)
    return price


@pytest.fixture()
def billing_customer(db_session, user):
    customer = Customer(id=stripe_id("cus"), user_id=user.id)
    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)
    return customer


@pytest.fixture()
def billing_subscription(db_session, billing_customer):
    sub = Subscription(
        id=stripe_id("sub"),
        customer_id=billing_customer.id,
        status=SubscriptionStatus.active,
    )
    db_session.add(sub)
    db_session.commit()
    db_session.refresh(sub)
    return sub
