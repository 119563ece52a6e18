"""Pytest configuration and fixtures for bizflow tests."""

import os

# Must be set before bizflow.config is first imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import datetime, timedelta  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import bizflow.models  # noqa: E402,F401
from bizflow.client.storage import MemoryBackend, SecureStorage, TenantStore, TokenStore  # noqa: E402
from bizflow.core.security import get_password_hash  # noqa: E402
from bizflow.database import Base, SessionLocal, engine  # noqa: E402
from bizflow.main import app  # noqa: E402
from bizflow.models import Tenant, TenantMembership, User  # noqa: E402

from tests.factories import PASSWORD, RecordingTracker  # noqa: E402


# ----------------------------------------------------------------------
# Client-side fixtures
# ----------------------------------------------------------------------

@pytest.fixture
def tracker():
    return RecordingTracker()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def storage(backend):
    return SecureStorage(backend, "test-passphrase")


@pytest.fixture
def token_store(storage):
    return TokenStore(storage)


@pytest.fixture
def tenant_store(storage):
    return TenantStore(storage)


@pytest.fixture
def api():
    """Mock API client. Every method is an AsyncMock."""
    return AsyncMock()


# ----------------------------------------------------------------------
# Server fixtures
# ----------------------------------------------------------------------

@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seed(db):
    """
    Two tenants the owner belongs to, one the owner does not.

    salon:  starter tier, owner (admin) + staff are members
    clinic: pro tier with the advanced-analytics add-on, owner only
    other:  enterprise tier, nobody from the above
    """
    hashed = get_password_hash(PASSWORD)

    salon = Tenant(name="Acme Salon", slug="acme-salon", business_type="salon",
                   subscription_tier="starter", addons=[],
                   current_period_end=datetime.utcnow() + timedelta(days=10, hours=1))
    clinic = Tenant(name="Bright Clinic", slug="bright-clinic", business_type="clinic",
                    subscription_tier="pro", subscription_status="trialing",
                    addons=["advanced-analytics"])
    other = Tenant(name="Other Co", slug="other-co", business_type="coworking",
                   subscription_tier="enterprise", addons=[])
    db.add_all([salon, clinic, other])
    db.flush()

    owner = User(email="owner@example.com", hashed_password=hashed, full_name="Olive Owner", role="admin")
    staff = User(email="staff@example.com", hashed_password=hashed, full_name="Sam Staff", role="staff")
    super_admin = User(email="root@example.com", hashed_password=hashed, full_name="Root", role="super_admin")
    inactive = User(email="gone@example.com", hashed_password=hashed, role="staff", is_active=False)
    db.add_all([owner, staff, super_admin, inactive])
    db.flush()

    db.add_all([
        TenantMembership(user_id=owner.id, tenant_id=salon.id),
        TenantMembership(user_id=owner.id, tenant_id=clinic.id),
        TenantMembership(user_id=staff.id, tenant_id=salon.id),
        TenantMembership(user_id=inactive.id, tenant_id=salon.id),
    ])
    db.commit()

    return SimpleNamespace(
        salon=salon, clinic=clinic, other=other,
        owner=owner, staff=staff, super_admin=super_admin, inactive=inactive,
        password=PASSWORD,
    )


@pytest.fixture
def client(db):
    # No context manager: the lifespan (dev-mode table creation) is skipped
    return TestClient(app)

