"""Pytest configuration: in-memory database and billing fixtures."""

import os

# Set test database URL BEFORE any imports from waterbill
# This keeps the module-level engine off the developer database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("NOTIFICATION_GATEWAY_URL", "")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from waterbill.config import Settings, reset_settings  # noqa: E402
from waterbill.models import Base, Customer  # noqa: E402
from waterbill.services.settings_service import BillingSettingService  # noqa: E402

TARIFF = {
    "unit_rate": 5000,
    "base_fee": 10000,
    "admin_fee": 2500,
    "due_day": 15,
    "late_fee_tier1": 5000,
    "late_fee_tier2": 10000,
    "company_name": "Tirta Sejahtera",
    "phone": "0215550100",
    "email": "cs@tirta.example",
}


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Create test database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def app_settings():
    """Settings with a public origin and no gateway configured."""
    reset_settings()
    settings = Settings(
        database_url="sqlite://",
        app_origin="https://air.example.com/",
        notification_gateway_url="",
    )
    yield settings
    reset_settings()


@pytest.fixture
def gateway_settings():
    reset_settings()
    settings = Settings(
        database_url="sqlite://",
        app_origin="https://air.example.com",
        notification_gateway_url="https://gateway.example.com/",
        notification_gateway_api_key="secret-key",
        notification_timeout_seconds=3.0,
    )
    yield settings
    reset_settings()


@pytest.fixture
def billing_setting(db_session):
    """Published version 1 of the billing setting."""
    return BillingSettingService(db_session).publish(**TARIFF)


@pytest.fixture
def customer_factory(db_session):
    """Create and commit a customer."""

    def _create(code, name, initial_reading=0, phone="081234567890", is_active=True):
        customer = Customer(
            code=code,
            name=name,
            phone=phone,
            initial_reading=initial_reading,
            is_active=is_active,
        )
        db_session.add(customer)
        db_session.commit()
        return customer

    return _create


@pytest.fixture
def customers(customer_factory):
    """Three active customers with distinct starting meters."""
    return [
        customer_factory("C001", "Budi Santoso", initial_reading=100),
        customer_factory("C002", "Siti Aminah", initial_reading=250),
        customer_factory("C003", "Agus Salim", initial_reading=40, phone=None),
    ]
