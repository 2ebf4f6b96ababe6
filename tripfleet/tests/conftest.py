"""
Centralized Test Configuration.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from tripfleet.app.main import app
from tripfleet.app.db.session import get_db, Base
from tripfleet.app.core.jwt import create_access_token
from tripfleet.app.core.reliability import driver_source_breaker, vehicle_source_breaker
from tripfleet.app.models.driver import Driver
from tripfleet.app.models.enums import (
    DriverStatus, OrganizationType, UserRole, VehicleStatus, VehicleType, VerificationStatus
)
from tripfleet.app.models.fleet_vehicle import FleetVehicle
from tripfleet.app.models.organization import Organization
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.trip import TripCreate
from tripfleet.app.services.trip_service import TripLifecycleService

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Route every request through the in-memory database."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    vehicle_source_breaker.reset_state()
    driver_source_breaker.reset_state()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# ---------------------------------------------------------------- identities

def auth_headers(role: UserRole, organization_id=None, user_id: int = 1, email: str = "user@test.com") -> dict:
    token = create_access_token({
        "user_id": user_id,
        "email": email,
        "role": role.value,
        "organization_id": organization_id,
    })
    return {"Authorization": f"Bearer {token}"}


async def seed_organization(db_session, legal_name: str) -> Organization:
    org = Organization(
        legal_name=legal_name,
        organization_type=OrganizationType.FREIGHT_FORWARDER,
        verification_status=VerificationStatus.VERIFIED,
    )
    db_session.add(org)
    await db_session.commit()
    await db_session.refresh(org)
    return org


@pytest.fixture
async def organization(db_session):
    return await seed_organization(db_session, "Acme Freight")


@pytest.fixture
async def other_organization(db_session):
    return await seed_organization(db_session, "Rival Logistics")


@pytest.fixture
def org_admin(organization):
    return Identity(
        user_id=10, email="admin@acme.test", role=UserRole.ORGANIZATION_ADMIN, organization_id=organization.id
    )


@pytest.fixture
def org_driver_user(organization):
    return Identity(
        user_id=11, email="driver@acme.test", role=UserRole.ORGANIZATION_DRIVER, organization_id=organization.id
    )


@pytest.fixture
def customer():
    return Identity(user_id=50, email="customer@test.com", role=UserRole.CUSTOMER)


@pytest.fixture
def admin_headers(organization):
    return auth_headers(UserRole.ORGANIZATION_ADMIN, organization.id, user_id=10, email="admin@acme.test")


@pytest.fixture
def driver_headers(organization):
    return auth_headers(UserRole.ORGANIZATION_DRIVER, organization.id, user_id=11, email="driver@acme.test")


@pytest.fixture
def customer_headers():
    return auth_headers(UserRole.CUSTOMER, user_id=50, email="customer@test.com")


# -------------------------------------------------------------- fleet seeds

async def seed_vehicle(db_session, organization_id: int, license_plate: str = "B-TF-1001", **fields) -> FleetVehicle:
    values = dict(
        organization_id=organization_id,
        vehicle_type=VehicleType.TRUCK,
        brand="Volvo",
        model="FH16",
        license_plate=license_plate,
        year=2021,
        capacity_weight_min=500,
        capacity_weight_max=10000,
        capacity_volume_min=10,
        capacity_volume_max=80,
        max_packages=80,
        status=VehicleStatus.ACTIVE,
    )
    values.update(fields)
    vehicle = FleetVehicle(**values)
    db_session.add(vehicle)
    await db_session.commit()
    await db_session.refresh(vehicle)
    return vehicle


async def seed_driver(db_session, organization_id: int, name: str = "Jana Novak", **fields) -> Driver:
    values = dict(organization_id=organization_id, name=name, status=DriverStatus.ACTIVE)
    values.update(fields)
    driver = Driver(**values)
    db_session.add(driver)
    await db_session.commit()
    await db_session.refresh(driver)
    return driver


@pytest.fixture
async def vehicle(db_session, organization):
    return await seed_vehicle(db_session, organization.id)


@pytest.fixture
async def driver(db_session, organization):
    return await seed_driver(db_session, organization.id)


def trip_payload(**overrides) -> dict:
    """A valid trip body in the API's camelCase vocabulary."""
    departure = datetime.now(timezone.utc) + timedelta(days=2)
    payload = {
        "departureCountry": "Germany",
        "departureCity": "Berlin",
        "departureAddress": "Alexanderplatz 1",
        "destinationCountry": "Poland",
        "destinationCity": "Warsaw",
        "destinationAddress": "Marszalkowska 10",
        "departureTime": departure.isoformat(),
        "arrivalTime": (departure + timedelta(hours=9)).isoformat(),
        "basePrice": 50.0,
        "pricePerKg": 2.0,
        "minimumPrice": 20.0,
        "weightThreshold": 5.0,
        "currency": "EUR",
        "totalCapacity": 100.0,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_trip(db_session, org_admin):
    """Create trips through the lifecycle service."""
    async def _make(actor=None, **overrides):
        data = TripCreate.model_validate(trip_payload(**overrides))
        return await TripLifecycleService.create_trip(db_session, actor or org_admin, data)
    return _make
