"""
Test configuration and fixtures
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from datetime import time
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.access import SALON_ADMIN, SALON_STAFF, SUPER_ADMIN, USER
from app.core.database import Base, enable_sqlite_foreign_keys, get_db
from app.models.models import (
    Salon, SalonMembership, SalonStatus, Service
)
from app.utils.slot_manager import DEFAULT_OPERATING_HOURS
from factories import actor_for, headers_for, make_slot, make_user


# Create an in-memory SQLite database for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with overridden database dependency"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app=app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def test_user(db):
    """A plain customer"""
    return make_user(db, "+61400000001", "Test Customer")


@pytest.fixture
def other_user(db):
    return make_user(db, "+61400000002", "Other Customer")


@pytest.fixture
def test_superadmin(db):
    return make_user(db, "+61400000009", "Test Superadmin", roles=(USER, SUPER_ADMIN))


@pytest.fixture
def test_salon_admin(db):
    return make_user(db, "+61400000003", "Salon Owner", roles=(USER, SALON_ADMIN))


@pytest.fixture
def test_staff(db):
    return make_user(db, "+61400000004", "Salon Stylist", roles=(USER, SALON_STAFF))


@pytest.fixture
def test_salon(db, test_salon_admin, test_staff):
    """An approved salon with one admin and one staff member"""
    salon = Salon(
        name="Test Salon",
        slug="test-salon",
        address="123 Test Street",
        city="Sydney",
        phone="+61290000000",
        email="test@salon.com",
        operating_hours=dict(DEFAULT_OPERATING_HOURS),
        default_slot_capacity=2,
        status=SalonStatus.APPROVED,
        created_by=test_salon_admin.id,
    )
    db.add(salon)
    db.flush()
    db.add(SalonMembership(user_id=test_salon_admin.id, salon_id=salon.id, role=SALON_ADMIN))
    db.add(SalonMembership(user_id=test_staff.id, salon_id=salon.id, role=SALON_STAFF))
    db.commit()
    db.refresh(salon)
    return salon


@pytest.fixture
def pending_salon(db, test_salon_admin):
    salon = Salon(
        name="Pending Salon",
        slug="pending-salon",
        address="456 Waiting Road",
        city="Melbourne",
        operating_hours=dict(DEFAULT_OPERATING_HOURS),
        status=SalonStatus.PENDING,
        created_by=test_salon_admin.id,
    )
    db.add(salon)
    db.flush()
    db.add(SalonMembership(user_id=test_salon_admin.id, salon_id=salon.id, role=SALON_ADMIN))
    db.commit()
    db.refresh(salon)
    return salon


@pytest.fixture
def test_service(db, test_salon):
    service = Service(
        salon_id=test_salon.id,
        name="Haircut",
        description="Professional haircut",
        price=30.00,
        duration_minutes=45,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def test_slot(db, test_salon):
    """Tomorrow 10:00-10:30, capacity 2"""
    return make_slot(db, test_salon)


@pytest.fixture
def other_slot(db, test_salon):
    """Tomorrow 11:00-11:30, capacity 1"""
    return make_slot(db, test_salon, start=time(11, 0), end=time(11, 30), capacity=1)


@pytest.fixture
def user_actor(db, test_user):
    return actor_for(db, test_user)


@pytest.fixture
def other_actor(db, other_user):
    return actor_for(db, other_user)


@pytest.fixture
def staff_actor(db, test_staff, test_salon):
    return actor_for(db, test_staff)


@pytest.fixture
def admin_actor(db, test_salon_admin, test_salon):
    return actor_for(db, test_salon_admin)


@pytest.fixture
def superadmin_actor(db, test_superadmin):
    return actor_for(db, test_superadmin)


@pytest.fixture
def user_headers(db, test_user):
    """Get authorization headers for a customer"""
    return headers_for(db, test_user)


@pytest.fixture
def staff_headers(db, test_staff, test_salon):
    return headers_for(db, test_staff)


@pytest.fixture
def admin_headers(db, test_salon_admin, test_salon):
    """Get authorization headers for the salon admin"""
    return headers_for(db, test_salon_admin)


@pytest.fixture
def superadmin_headers(db, test_superadmin):
    """Get authorization headers for superadmin"""
    return headers_for(db, test_superadmin)
