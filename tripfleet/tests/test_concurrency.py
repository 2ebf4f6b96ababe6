"""
Concurrency Tests.

Validates that the capacity ledger and driver assignment hold up when
several sessions race for the same row.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tripfleet.app.core.exceptions import AppException
from tripfleet.app.db.session import Base
from tripfleet.app.models.driver import Driver
from tripfleet.app.models.enums import DriverStatus, OrganizationType
from tripfleet.app.models.organization import Organization
from tripfleet.app.models.trip import Trip
from tripfleet.app.models.trip_enums import TripStatus
from tripfleet.app.repositories.fleet_repository import DriverRepository
from tripfleet.app.services.trip_service import TripLifecycleService


@pytest.fixture
async def file_sessions(tmp_path):
    """Separate connections per session; an in-memory database cannot be shared that way."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


async def _seed_trip(sessions, total: float = 100.0) -> int:
    async with sessions() as session:
        org = Organization(legal_name="Race Freight", organization_type=OrganizationType.LOGISTICS_PROVIDER)
        session.add(org)
        await session.flush()

        departure = datetime.now(timezone.utc) + timedelta(days=1)
        trip = Trip(
            organization_id=org.id,
            departure_address="Dock Street 1",
            departure_city="Rotterdam",
            departure_country="Netherlands",
            destination_address="Harbour Road 9",
            destination_city="Antwerp",
            destination_country="Belgium",
            departure_time=departure,
            arrival_time=departure + timedelta(hours=3),
            total_capacity=total,
            remaining_capacity=total,
            status=TripStatus.SCHEDULED,
        )
        session.add(trip)
        await session.commit()
        return trip.id


async def _book(sessions, trip_id: int, weight: float) -> float:
    async with sessions() as session:
        trip = await TripLifecycleService.book_capacity(session, trip_id, weight)
        return trip.remaining_capacity


async def _remaining(sessions, trip_id: int) -> float:
    async with sessions() as session:
        trip = await session.get(Trip, trip_id)
        return trip.remaining_capacity


async def test_two_bookings_cannot_oversell(file_sessions):
    """Two 60 kg bookings on a 100 kg trip: exactly one wins."""
    trip_id = await _seed_trip(file_sessions)

    results = await asyncio.gather(
        _book(file_sessions, trip_id, 60),
        _book(file_sessions, trip_id, 60),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert successes == [40]
    assert len(failures) == 1
    assert isinstance(failures[0], AppException)
    assert failures[0].error_code == "CAPACITY_EXCEEDED"
    assert await _remaining(file_sessions, trip_id) == 40


async def test_many_small_bookings_stop_at_zero(file_sessions):
    trip_id = await _seed_trip(file_sessions)

    results = await asyncio.gather(
        *[_book(file_sessions, trip_id, 30) for _ in range(5)],
        return_exceptions=True,
    )

    won = [r for r in results if not isinstance(r, Exception)]
    lost = [r for r in results if isinstance(r, Exception)]
    assert len(won) == 3
    assert {exc.error_code for exc in lost} == {"CAPACITY_EXCEEDED"}
    assert await _remaining(file_sessions, trip_id) == 10


async def test_stale_driver_swap_is_rejected(file_sessions):
    """The compare-and-swap refuses a write based on an outdated read."""
    first_trip = await _seed_trip(file_sessions)
    second_trip = await _seed_trip(file_sessions)

    async with file_sessions() as session:
        trip = await session.get(Trip, first_trip)
        driver = Driver(organization_id=trip.organization_id, name="Race Driver", status=DriverStatus.ACTIVE)
        session.add(driver)
        await session.commit()
        driver_id = driver.id

    async with file_sessions() as session:
        assert await DriverRepository.swap_current_trip(session, driver_id, None, first_trip)
        await session.commit()

    async with file_sessions() as session:
        # Both callers observed a free driver; only the first write landed
        assert not await DriverRepository.swap_current_trip(session, driver_id, None, second_trip)
        await session.commit()
        refreshed = await DriverRepository.get(session, driver_id, refresh=True)
        assert refreshed.current_trip_id == first_trip
