"""
Trip data access, including the capacity ledger statements.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.domain.lifecycle import BOOKABLE_STATUSES, TERMINAL_STATUSES
from tripfleet.app.models.booking import Booking
from tripfleet.app.models.enums import BookingStatus
from tripfleet.app.models.trip import Trip
from tripfleet.app.models.trip_enums import TripStatus
from tripfleet.app.models.trip_stop import TripStop
from tripfleet.app.repositories.base import BaseRepository


class TripRepository(BaseRepository[Trip]):
    model = Trip

    @staticmethod
    async def list_for_organization(
        db: AsyncSession,
        organization_id: int,
        statuses: Optional[Iterable[TripStatus]] = None,
        driver_id: Optional[int] = None,
        vehicle_id: Optional[int] = None,
        departure_city: Optional[str] = None,
        destination_city: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[Trip]:
        """Organization trips, filtered; city filters are case-insensitive substrings."""
        query = select(Trip).where(Trip.organization_id == organization_id)

        if statuses:
            query = query.where(Trip.status.in_(list(statuses)))
        if driver_id is not None:
            query = query.where(Trip.driver_id == driver_id)
        if vehicle_id is not None:
            query = query.where(Trip.vehicle_id == vehicle_id)
        if departure_city:
            query = query.where(Trip.departure_city.ilike(f"%{departure_city}%"))
        if destination_city:
            query = query.where(Trip.destination_city.ilike(f"%{destination_city}%"))
        if start_date is not None:
            query = query.where(Trip.departure_time >= start_date)
        if end_date is not None:
            query = query.where(Trip.departure_time <= end_date)

        result = await db.execute(query.order_by(Trip.id))
        return list(result.scalars().all())

    @staticmethod
    async def stops(db: AsyncSession, trip_id: int) -> List[TripStop]:
        result = await db.execute(
            select(TripStop).where(TripStop.trip_id == trip_id).order_by(TripStop.sequence)
        )
        return list(result.scalars().all())

    @staticmethod
    async def stops_by_trip(db: AsyncSession, trip_ids: List[int]) -> Dict[int, List[TripStop]]:
        grouped: Dict[int, List[TripStop]] = {trip_id: [] for trip_id in trip_ids}
        if not trip_ids:
            return grouped
        result = await db.execute(
            select(TripStop).where(TripStop.trip_id.in_(trip_ids)).order_by(TripStop.trip_id, TripStop.sequence)
        )
        for stop in result.scalars().all():
            grouped[stop.trip_id].append(stop)
        return grouped

    @staticmethod
    async def last_stop_sequence(db: AsyncSession, trip_id: int) -> int:
        result = await db.execute(
            select(func.max(TripStop.sequence)).where(TripStop.trip_id == trip_id)
        )
        return result.scalar() or 0

    @staticmethod
    async def booked_revenue(db: AsyncSession, trip_ids: List[int]) -> Dict[int, float]:
        """Sum of confirmed booking prices per trip."""
        if not trip_ids:
            return {}
        result = await db.execute(
            select(Booking.trip_id, func.coalesce(func.sum(Booking.price), 0.0))
            .where(Booking.trip_id.in_(trip_ids), Booking.status == BookingStatus.CONFIRMED)
            .group_by(Booking.trip_id)
        )
        return {trip_id: round(float(total), 2) for trip_id, total in result.all()}

    @staticmethod
    async def decrement_capacity(db: AsyncSession, trip_id: int, weight: float) -> bool:
        """
        Conditionally take ``weight`` kg from the trip.

        A single UPDATE guarded by ``remaining_capacity >= weight`` and a
        bookable status; concurrent callers cannot both pass the guard.

        Returns:
            True if the row was updated
        """
        result = await db.execute(
            update(Trip)
            .where(
                Trip.id == trip_id,
                Trip.remaining_capacity >= weight,
                Trip.status.in_(list(BOOKABLE_STATUSES)),
            )
            .values(remaining_capacity=Trip.remaining_capacity - weight)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def increment_capacity(db: AsyncSession, trip_id: int, weight: float) -> bool:
        """Give ``weight`` kg back unless that would exceed the total."""
        result = await db.execute(
            update(Trip)
            .where(Trip.id == trip_id, Trip.remaining_capacity + weight <= Trip.total_capacity)
            .values(remaining_capacity=Trip.remaining_capacity + weight)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def reset_capacity_to_total(db: AsyncSession, trip_id: int) -> None:
        await db.execute(
            update(Trip)
            .where(Trip.id == trip_id)
            .values(remaining_capacity=Trip.total_capacity)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def resize_capacity(db: AsyncSession, trip_id: int, delta: float) -> bool:
        """Shift total and remaining by ``delta`` unless remaining would go negative."""
        result = await db.execute(
            update(Trip)
            .where(Trip.id == trip_id, Trip.remaining_capacity + delta >= 0)
            .values(
                total_capacity=Trip.total_capacity + delta,
                remaining_capacity=Trip.remaining_capacity + delta,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def vehicle_busy_elsewhere(db: AsyncSession, vehicle_id: int, trip_id: int) -> bool:
        """True if the vehicle runs another in-progress trip."""
        result = await db.execute(
            select(func.count(Trip.id)).where(
                Trip.vehicle_id == vehicle_id,
                Trip.id != trip_id,
                Trip.status == TripStatus.IN_PROGRESS,
            )
        )
        return (result.scalar() or 0) > 0

    @staticmethod
    async def open_trips_for_vehicle(db: AsyncSession, vehicle_id: int) -> int:
        result = await db.execute(
            select(func.count(Trip.id)).where(
                Trip.vehicle_id == vehicle_id,
                Trip.status.not_in(list(TERMINAL_STATUSES)),
            )
        )
        return result.scalar() or 0


class TripStopRepository(BaseRepository[TripStop]):
    model = TripStop
