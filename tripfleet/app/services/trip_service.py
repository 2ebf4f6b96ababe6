"""
Trip Lifecycle Service.

Owns trip creation, the status state machine, driver and vehicle
assignment, stops and the capacity ledger. Every public operation runs in
its own transaction: changes are committed on success and rolled back
before an AppException leaves the service.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.exceptions import (
    AppException,
    CapacityExceededError,
    ConflictError,
    InsufficientPermissionsError,
    InvalidActionError,
    InvalidCapacityError,
    InvalidDatesError,
    InvalidStopSequenceError,
    ResourceNotFoundError,
    ValidationFailedError,
    field_errors,
)
from tripfleet.app.core.guards import ensure_role, ownership_guard
from tripfleet.app.core.pagination import paginate, sort_records
from tripfleet.app.domain import pricing
from tripfleet.app.domain.lifecycle import BOOKABLE_STATUSES, ensure_transition, is_terminal
from tripfleet.app.domain.mapping import TRIP_STATUSES, keys_to_snake, trip_from_wire, trip_to_wire
from tripfleet.app.models.enums import DriverStatus, UserRole, VehicleStatus
from tripfleet.app.models.trip import Trip
from tripfleet.app.models.trip_enums import TripAction, TripStatus, TripStopStatus, TripStopType
from tripfleet.app.repositories.fleet_repository import DriverRepository, VehicleRepository
from tripfleet.app.repositories.trip_repository import TripRepository, TripStopRepository
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.common import PaginationMeta
from tripfleet.app.schemas.query import TripListQuery
from tripfleet.app.schemas.trip import (
    BulkItemError,
    BulkItemResult,
    TripCreate,
    TripListResponse,
    TripResponse,
    TripStats,
    TripStopCreate,
    TripStopResponse,
    TripUpdate,
)
from tripfleet.app.services.audit import AuditAction, log_event

logger = logging.getLogger("tripfleet.trips")

TRIP_MANAGERS = [UserRole.ORGANIZATION_ADMIN]

# Assignments are made through the assign operations after import
IMPORTED_TRIP_FIELDS = set(TripCreate.model_fields) - {"vehicle_id", "driver_id"}

# Client status filter -> stored statuses. "scheduled" covers every
# pre-departure state.
STATUS_FILTERS = {
    "scheduled": [TripStatus.PLANNED, TripStatus.SCHEDULED],
}

TRIP_FILTER_OPTIONS = {
    "status": ["scheduled", "active", "completed", "cancelled", "delayed"],
    "sortBy": ["departureTime", "revenue", "status", "createdAt"],
    "sortOrder": ["asc", "desc"],
}

# Columns update_trip may clear by sending null
NULLABLE_UPDATE_FIELDS = {"notes"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _check_dates(departure: datetime, arrival: datetime) -> None:
    if _aware(arrival) <= _aware(departure):
        raise InvalidDatesError()


def _check_total_capacity(total: float) -> None:
    # NaN and infinity slip past a plain comparison
    if not math.isfinite(total) or total < 1:
        raise InvalidCapacityError("Total capacity must be at least 1 kg")


def _client_status(status: TripStatus) -> str:
    return TRIP_STATUSES.to_internal(status.value)


def statuses_for_filter(value: str) -> List[TripStatus]:
    if value in STATUS_FILTERS:
        return STATUS_FILTERS[value]
    return [TripStatus(TRIP_STATUSES.to_external(value))]


def _ensure_open(trip: Trip) -> None:
    if is_terminal(trip.status):
        raise ConflictError(
            f"Trip {trip.id} is {trip.status.value} and can no longer be modified",
            "INVALID_STATUS_TRANSITION",
        )


class TripLifecycleService:

    # ----------------------------------------------------------------- reads

    @staticmethod
    async def _load_trip(db: AsyncSession, trip_id: int, actor: Optional[Identity] = None) -> Trip:
        trip = await TripRepository.get(db, trip_id, refresh=True)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        if actor is not None:
            ownership_guard.enforce(trip.organization_id, actor, "trip")
        return trip

    @staticmethod
    async def _view(db: AsyncSession, trip: Trip) -> TripResponse:
        stops = await TripRepository.stops(db, trip.id)
        revenue = await TripRepository.booked_revenue(db, [trip.id])
        return TripResponse.from_trip(trip, stops, revenue.get(trip.id, 0.0))

    @staticmethod
    async def get_trip(db: AsyncSession, actor: Identity, trip_id: int) -> TripResponse:
        trip = await TripLifecycleService._load_trip(db, trip_id, actor)
        return await TripLifecycleService._view(db, trip)

    @staticmethod
    async def list_trips(db: AsyncSession, actor: Identity, query: TripListQuery) -> TripListResponse:
        """
        Filtered, sorted, paginated trips of the caller's organization.

        Stats cover every trip of the organization, not just the page.
        """
        organization_id = actor.organization_id
        trips = await TripRepository.list_for_organization(
            db,
            organization_id,
            statuses=statuses_for_filter(query.status) if query.status else None,
            driver_id=query.driver_id,
            vehicle_id=query.vehicle_id,
            departure_city=query.departure_city,
            destination_city=query.destination_city,
            start_date=query.start_date,
            end_date=query.end_date,
        )
        all_trips = await TripRepository.list_for_organization(db, organization_id)
        revenue = await TripRepository.booked_revenue(db, [trip.id for trip in all_trips])

        sort_keys = {
            "departureTime": lambda trip: trip.departure_time,
            "revenue": lambda trip: revenue.get(trip.id, 0.0),
            "status": lambda trip: _client_status(trip.status),
            "createdAt": lambda trip: trip.created_at,
        }
        ordered = sort_records(
            trips,
            primary=sort_keys.get(query.sort_by, lambda trip: trip.id),
            fallback=lambda trip: trip.id,
            descending=query.sort_order == "desc",
        )
        page_items, meta = paginate(ordered, query.page, query.limit)
        stops = await TripRepository.stops_by_trip(db, [trip.id for trip in page_items])

        return TripListResponse(
            trips=[
                TripResponse.from_trip(trip, stops[trip.id], revenue.get(trip.id, 0.0))
                for trip in page_items
            ],
            pagination=PaginationMeta.model_validate(meta),
            stats=TripLifecycleService.trip_stats(all_trips, revenue),
            filters={
                "applied": query.model_dump(by_alias=True, mode="json", exclude={"page", "limit"}),
                "available": TRIP_FILTER_OPTIONS,
            },
        )

    @staticmethod
    def trip_stats(trips: List[Trip], revenue: Dict[int, float]) -> TripStats:
        def count(*statuses):
            return sum(1 for trip in trips if trip.status in statuses)

        utilizations = [
            pricing.capacity_utilization(trip.total_capacity, trip.remaining_capacity) for trip in trips
        ]
        return TripStats(
            total_trips=len(trips),
            scheduled_trips=count(TripStatus.PLANNED, TripStatus.SCHEDULED),
            active_trips=count(TripStatus.IN_PROGRESS),
            completed_trips=count(TripStatus.COMPLETED),
            cancelled_trips=count(TripStatus.CANCELLED),
            delayed_trips=count(TripStatus.DELAYED),
            total_revenue=pricing.booked_revenue(revenue.get(trip.id, 0.0) for trip in trips),
            total_capacity=sum(trip.total_capacity for trip in trips),
            average_utilization=round(sum(utilizations) / max(len(utilizations), 1), 2),
        )

    # -------------------------------------------------------------- creation

    @staticmethod
    async def create_trip(db: AsyncSession, actor: Identity, data: TripCreate) -> TripResponse:
        """
        Create a trip in PLANNED for the caller's organization.

        Raises:
            InsufficientPermissionsError: caller is not an organization admin
            InvalidDatesError: arrival is not after departure
            InvalidCapacityError: total capacity not a finite number of at least 1 kg
        """
        ensure_role(actor, TRIP_MANAGERS)
        _check_dates(data.departure_time, data.arrival_time)
        _check_total_capacity(data.total_capacity)

        try:
            trip = await TripRepository.create(
                db,
                organization_id=actor.organization_id,
                departure_address=data.departure_address,
                departure_city=data.departure_city,
                departure_country=data.departure_country,
                destination_address=data.destination_address,
                destination_city=data.destination_city,
                destination_country=data.destination_country,
                departure_time=data.departure_time,
                arrival_time=data.arrival_time,
                base_price=data.base_price,
                price_per_kg=data.price_per_kg,
                minimum_price=data.minimum_price,
                weight_threshold=data.weight_threshold,
                currency=data.currency,
                total_capacity=data.total_capacity,
                remaining_capacity=data.total_capacity,
                status=TripStatus.PLANNED,
                notes=data.notes,
            )
            if data.vehicle_id is not None:
                await TripLifecycleService._attach_vehicle(db, trip, data.vehicle_id)
            if data.driver_id is not None:
                await TripLifecycleService._attach_driver(db, trip, data.driver_id)
            await db.commit()
        except AppException:
            await db.rollback()
            raise

        logger.info("Trip %s created for organization %s", trip.id, trip.organization_id)
        await log_event(
            db,
            AuditAction.TRIP_CREATED,
            actor=actor,
            entity_type="trip",
            entity_id=trip.id,
            metadata={
                "total_capacity": trip.total_capacity,
                "driver_id": trip.driver_id,
                "vehicle_id": trip.vehicle_id,
            },
        )
        return await TripLifecycleService._view(db, trip)

    # ------------------------------------------------------------ assignment

    @staticmethod
    def _promote_if_ready(trip: Trip) -> None:
        if trip.status == TripStatus.PLANNED and trip.driver_id and trip.vehicle_id:
            ensure_transition(trip.status, TripStatus.SCHEDULED)
            trip.status = TripStatus.SCHEDULED

    @staticmethod
    async def _attach_driver(db: AsyncSession, trip: Trip, driver_id: int) -> None:
        driver = await DriverRepository.get(db, driver_id, refresh=True)
        if driver is None:
            raise ResourceNotFoundError("Driver", driver_id)
        if driver.organization_id != trip.organization_id:
            raise InsufficientPermissionsError("Driver belongs to another organization")
        if driver.status == DriverStatus.INACTIVE:
            raise ConflictError(f"Driver {driver_id} is inactive", "DRIVER_UNAVAILABLE")

        observed = driver.current_trip_id
        if observed != trip.id:
            if observed is not None:
                other = await TripRepository.get(db, observed, refresh=True)
                if other is not None and not is_terminal(other.status):
                    raise ConflictError(
                        f"Driver {driver_id} is already assigned to trip {observed}",
                        "DRIVER_UNAVAILABLE",
                    )
            if not await DriverRepository.swap_current_trip(db, driver.id, observed, trip.id):
                raise ConflictError(
                    f"Driver {driver_id} was assigned to another trip concurrently",
                    "DRIVER_UNAVAILABLE",
                )

        previous_id = trip.driver_id
        if previous_id is not None and previous_id != driver.id:
            await DriverRepository.swap_current_trip(db, previous_id, trip.id, None)
            previous = await DriverRepository.get(db, previous_id, refresh=True)
            if previous is not None and previous.status == DriverStatus.ON_TRIP:
                previous.status = DriverStatus.ACTIVE
                previous.current_vehicle_id = None

        if trip.status == TripStatus.IN_PROGRESS:
            driver.status = DriverStatus.ON_TRIP
            driver.current_vehicle_id = trip.vehicle_id

        trip.driver_id = driver.id
        TripLifecycleService._promote_if_ready(trip)
        await db.flush()

    @staticmethod
    async def _attach_vehicle(db: AsyncSession, trip: Trip, vehicle_id: int) -> None:
        vehicle = await VehicleRepository.get(db, vehicle_id, refresh=True)
        if vehicle is None:
            raise ResourceNotFoundError("Vehicle", vehicle_id)
        if vehicle.organization_id != trip.organization_id:
            raise InsufficientPermissionsError("Vehicle belongs to another organization")
        if vehicle.status != VehicleStatus.ACTIVE:
            raise ConflictError(
                f"Vehicle {vehicle_id} is {vehicle.status.value} and cannot be assigned",
                "VEHICLE_UNAVAILABLE",
            )
        if vehicle.capacity_weight_max < trip.total_capacity:
            raise InvalidCapacityError(
                f"Vehicle {vehicle_id} carries at most {vehicle.capacity_weight_max} kg, "
                f"trip needs {trip.total_capacity} kg"
            )

        trip.vehicle_id = vehicle.id
        TripLifecycleService._promote_if_ready(trip)
        await db.flush()

    @staticmethod
    async def assign_driver(db: AsyncSession, actor: Identity, trip_id: int, driver_id: int) -> TripResponse:
        """
        Assign a driver; the previous driver, if any, is released.

        Raises:
            ConflictError: DRIVER_UNAVAILABLE when the driver is inactive or
                holds another non-terminal trip
        """
        ensure_role(actor, TRIP_MANAGERS)
        trip = await TripLifecycleService._load_trip(db, trip_id, actor)
        _ensure_open(trip)

        try:
            await TripLifecycleService._attach_driver(db, trip, driver_id)
            await db.commit()
        except AppException:
            await db.rollback()
            raise

        await log_event(
            db, AuditAction.DRIVER_ASSIGNED, actor=actor, entity_type="trip", entity_id=trip.id,
            metadata={"driver_id": driver_id, "status": trip.status.value},
        )
        return await TripLifecycleService._view(db, trip)

    @staticmethod
    async def assign_vehicle(db: AsyncSession, actor: Identity, trip_id: int, vehicle_id: int) -> TripResponse:
        ensure_role(actor, TRIP_MANAGERS)
        trip = await TripLifecycleService._load_trip(db, trip_id, actor)
        _ensure_open(trip)

        try:
            await TripLifecycleService._attach_vehicle(db, trip, vehicle_id)
            await db.commit()
        except AppException:
            await db.rollback()
            raise

        await log_event(
            db, AuditAction.VEHICLE_ASSIGNED, actor=actor, entity_type="trip", entity_id=trip.id,
            metadata={"vehicle_id": vehicle_id, "status": trip.status.value},
        )
        return await TripLifecycleService._view(db, trip)

    # ----------------------------------------------------------------- stops

    @staticmethod
    async def add_stop(db: AsyncSession, actor: Identity, trip_id: int, stop: TripStopCreate) -> TripStopResponse:
        """
        Append a stop. Its sequence must exceed every existing one.

        Raises:
            InvalidStopSequenceError
        """
        ensure_role(actor, TRIP_MANAGERS)
        trip = await TripLifecycleService._load_trip(db, trip_id, actor)
        _ensure_open(trip)

        last_sequence = await TripRepository.last_stop_sequence(db, trip.id)
        if stop.sequence <= last_sequence:
            raise InvalidStopSequenceError(stop.sequence, last_sequence)

        try:
            created = await TripStopRepository.create(
                db,
                trip_id=trip.id,
                sequence=stop.sequence,
                address=stop.address,
                city=stop.city,
                country=stop.country,
                latitude=stop.latitude,
                longitude=stop.longitude,
                estimated_arrival=stop.estimated_arrival,
                stop_type=TripStopType(stop.stop_type),
                status=TripStopStatus.PENDING,
            )
            await db.commit()
        except IntegrityError:
            # Another stop took the same sequence first
            await db.rollback()
            raise InvalidStopSequenceError(stop.sequence, await TripRepository.last_stop_sequence(db, trip.id))

        await log_event(
            db, AuditAction.STOP_ADDED, actor=actor, entity_type="trip", entity_id=trip.id,
            metadata={"stop_id": created.id, "sequence": created.sequence},
        )
        return TripStopResponse.from_stop(created)

    @staticmethod
    async def update_stop_status(
        db: AsyncSession, actor: Identity, trip_id: int, stop_id: int, status: str
    ) -> TripStopResponse:
        ensure_role(actor, TRIP_MANAGERS)
        trip = await TripLifecycleService._load_trip(db, trip_id, actor)

        stop = await TripStopRepository.get(db, stop_id, refresh=True)
        if stop is None or stop.trip_id != trip.id:
            raise ResourceNotFoundError("Trip stop", stop_id)

        new_status = TripStopStatus(status)
        stop.status = new_status
        stop.completed_at = _now() if new_status == TripStopStatus.COMPLETED else None
        await db.commit()

        await log_event(
            db, AuditAction.STOP_UPDATED, actor=actor, entity_type="trip", entity_id=trip.id,
            metadata={"stop_id": stop.id, "status": new_status.value},
        )
        return TripStopResponse.from_stop(stop)

    # -------------------------------------------------------- capacity ledger

    @staticmethod
    def _check_weight(weight: float) -> None:
        if weight is None or not math.isfinite(weight) or weight <= 0:
            raise ValidationFailedError(
                "Weight must be greater than 0",
                [{"field": "weight", "message": "Weight must be greater than 0"}],
            )

    @staticmethod
    async def book_capacity(db: AsyncSession, trip_id: int, weight: float, commit: bool = True) -> Trip:
        """
        Atomically take ``weight`` kg from a trip's remaining capacity.

        The check and the decrement are one conditional UPDATE, so two
        concurrent bookings can never oversell. When nothing is updated the
        trip is re-read to report why.

        Args:
            commit: False when the caller owns the surrounding transaction

        Raises:
            ValidationFailedError: weight is not positive
            ResourceNotFoundError: TRIP_NOT_FOUND
            ConflictError: TRIP_CANCELLED or TRIP_NOT_BOOKABLE
            CapacityExceededError: not enough capacity left
        """
        TripLifecycleService._check_weight(weight)

        if await TripRepository.decrement_capacity(db, trip_id, weight):
            if commit:
                await db.commit()
            return await TripRepository.get(db, trip_id, refresh=True)

        trip = await TripRepository.get(db, trip_id, refresh=True)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        if trip.status == TripStatus.CANCELLED:
            raise ConflictError(f"Trip {trip_id} has been cancelled", "TRIP_CANCELLED")
        if trip.status not in BOOKABLE_STATUSES:
            raise ConflictError(
                f"Trip {trip_id} is {_client_status(trip.status)} and no longer accepts bookings",
                "TRIP_NOT_BOOKABLE",
            )
        raise CapacityExceededError(weight, trip.remaining_capacity)

    @staticmethod
    async def release_capacity(db: AsyncSession, trip_id: int, weight: float, commit: bool = True) -> Trip:
        """
        Give ``weight`` kg back to a trip.

        Never lets remaining exceed total: an over-release clamps to the
        total and is logged as a ledger inconsistency.
        """
        TripLifecycleService._check_weight(weight)

        if not await TripRepository.increment_capacity(db, trip_id, weight):
            trip = await TripRepository.get(db, trip_id, refresh=True)
            if trip is None:
                raise ResourceNotFoundError("Trip", trip_id)
            logger.warning(
                "Releasing %s kg on trip %s would exceed total capacity %s (remaining %s); clamping to total",
                weight, trip_id, trip.total_capacity, trip.remaining_capacity,
            )
            await TripRepository.reset_capacity_to_total(db, trip_id)

        if commit:
            await db.commit()
        return await TripRepository.get(db, trip_id, refresh=True)

    # ----------------------------------------------------------- transitions

    @staticmethod
    async def _release_assignments(db: AsyncSession, trip: Trip, completed: bool) -> None:
        if trip.driver_id is not None:
            driver = await DriverRepository.get(db, trip.driver_id, refresh=True)
            if driver is not None:
                if driver.current_trip_id == trip.id:
                    driver.current_trip_id = None
                    if driver.status == DriverStatus.ON_TRIP:
                        driver.status = DriverStatus.ACTIVE
                    driver.current_vehicle_id = None
                if completed:
                    driver.completed_trips = (driver.completed_trips or 0) + 1

        if trip.vehicle_id is not None:
            vehicle = await VehicleRepository.get(db, trip.vehicle_id, refresh=True)
            if vehicle is not None and vehicle.current_driver_id == trip.driver_id:
                vehicle.current_driver_id = None

    @staticmethod
    async def _occupy_assignments(db: AsyncSession, trip: Trip) -> None:
        if trip.vehicle_id is None:
            raise ConflictError(f"Trip {trip.id} has no vehicle assigned", "VEHICLE_UNAVAILABLE")
        if trip.driver_id is None:
            raise ConflictError(f"Trip {trip.id} has no driver assigned", "DRIVER_UNAVAILABLE")

        vehicle = await VehicleRepository.get(db, trip.vehicle_id, refresh=True)
        if vehicle is None or vehicle.status != VehicleStatus.ACTIVE:
            raise ConflictError(f"Vehicle {trip.vehicle_id} is not available", "VEHICLE_UNAVAILABLE")
        if await TripRepository.vehicle_busy_elsewhere(db, vehicle.id, trip.id):
            raise ConflictError(
                f"Vehicle {vehicle.id} is already running another trip", "VEHICLE_UNAVAILABLE"
            )

        driver = await DriverRepository.get(db, trip.driver_id, refresh=True)
        if driver is None or driver.status == DriverStatus.INACTIVE:
            raise ConflictError(f"Driver {trip.driver_id} is not available", "DRIVER_UNAVAILABLE")

        driver.status = DriverStatus.ON_TRIP
        driver.current_vehicle_id = vehicle.id
        vehicle.current_driver_id = driver.id

    @staticmethod
    async def _change_status(
        db: AsyncSession,
        actor: Identity,
        trip_id: int,
        target: TripStatus,
        reason: Optional[str] = None,
        new_departure_time: Optional[datetime] = None,
        new_arrival_time: Optional[datetime] = None,
    ) -> TripResponse:
        ensure_role(actor, TRIP_MANAGERS)
        trip = await TripLifecycleService._load_trip(db, trip_id, actor)
        previous = trip.status
        ensure_transition(previous, target)

        try:
            if target == TripStatus.IN_PROGRESS:
                await TripLifecycleService._occupy_assignments(db, trip)
                trip.started_at = trip.started_at or _now()
            elif target == TripStatus.COMPLETED:
                await TripLifecycleService._release_assignments(db, trip, completed=True)
                trip.completed_at = _now()
            elif target == TripStatus.CANCELLED:
                await TripLifecycleService._release_assignments(db, trip, completed=False)
                trip.cancelled_at = _now()
                trip.cancellation_reason = reason
            elif target == TripStatus.DELAYED:
                if new_departure_time or new_arrival_time:
                    _check_dates(new_departure_time or trip.departure_time, new_arrival_time or trip.arrival_time)
                    trip.departure_time = new_departure_time or trip.departure_time
                    trip.arrival_time = new_arrival_time or trip.arrival_time
                if reason:
                    trip.notes = f"{trip.notes}\nDelayed: {reason}" if trip.notes else f"Delayed: {reason}"

            trip.status = target
            await db.commit()
        except AppException:
            await db.rollback()
            raise

        logger.info("Trip %s moved from %s to %s", trip.id, previous.value, target.value)
        await log_event(
            db, AuditAction.TRIP_STATUS_CHANGED, actor=actor, entity_type="trip", entity_id=trip.id,
            metadata={"from": previous.value, "to": target.value, "reason": reason},
        )
        return await TripLifecycleService._view(db, trip)

    @staticmethod
    async def schedule_trip(db: AsyncSession, actor: Identity, trip_id: int) -> TripResponse:
        return await TripLifecycleService._change_status(db, actor, trip_id, TripStatus.SCHEDULED)

    @staticmethod
    async def start_trip(db: AsyncSession, actor: Identity, trip_id: int) -> TripResponse:
        """Start a trip; the vehicle must not be running another one."""
        return await TripLifecycleService._change_status(db, actor, trip_id, TripStatus.IN_PROGRESS)

    @staticmethod
    async def complete_trip(db: AsyncSession, actor: Identity, trip_id: int) -> TripResponse:
        return await TripLifecycleService._change_status(db, actor, trip_id, TripStatus.COMPLETED)

    @staticmethod
    async def delay_trip(
        db: AsyncSession,
        actor: Identity,
        trip_id: int,
        reason: Optional[str] = None,
        new_departure_time: Optional[datetime] = None,
        new_arrival_time: Optional[datetime] = None,
    ) -> TripResponse:
        return await TripLifecycleService._change_status(
            db, actor, trip_id, TripStatus.DELAYED,
            reason=reason, new_departure_time=new_departure_time, new_arrival_time=new_arrival_time,
        )

    @staticmethod
    async def cancel_trip(db: AsyncSession, actor: Identity, trip_id: int, reason: Optional[str] = None) -> TripResponse:
        """Cancel a trip and release its driver. Later bookings fail with TRIP_CANCELLED."""
        return await TripLifecycleService._change_status(db, actor, trip_id, TripStatus.CANCELLED, reason=reason)

    # --------------------------------------------------------------- updates

    @staticmethod
    async def update_trip(db: AsyncSession, actor: Identity, trip_id: int, changes: TripUpdate) -> TripResponse:
        """
        Partial update of an open trip.

        A total capacity change moves remaining capacity by the same delta so
        booked weight is preserved.

        Raises:
            InvalidDatesError: merged dates are out of order
            InvalidCapacityError: new total below 1 kg, below the booked
                weight, or above the assigned vehicle's payload
        """
        ensure_role(actor, TRIP_MANAGERS)
        trip = await TripLifecycleService._load_trip(db, trip_id, actor)
        _ensure_open(trip)

        fields = {
            key: value
            for key, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or key in NULLABLE_UPDATE_FIELDS
        }
        new_total = fields.pop("total_capacity", None)

        if "departure_time" in fields or "arrival_time" in fields:
            _check_dates(
                fields.get("departure_time", trip.departure_time),
                fields.get("arrival_time", trip.arrival_time),
            )

        try:
            if new_total is not None and new_total != trip.total_capacity:
                _check_total_capacity(new_total)
                if trip.vehicle_id is not None:
                    vehicle = await VehicleRepository.get(db, trip.vehicle_id)
                    if vehicle is not None and vehicle.capacity_weight_max < new_total:
                        raise InvalidCapacityError(
                            f"Vehicle {vehicle.id} carries at most {vehicle.capacity_weight_max} kg"
                        )
                delta = new_total - trip.total_capacity
                if not await TripRepository.resize_capacity(db, trip.id, delta):
                    booked = trip.total_capacity - trip.remaining_capacity
                    raise InvalidCapacityError(
                        f"Total capacity cannot drop below the {booked} kg already booked"
                    )

            for key, value in fields.items():
                setattr(trip, key, value)
            await db.commit()
        except AppException:
            await db.rollback()
            raise

        trip = await TripRepository.get(db, trip.id, refresh=True)
        await log_event(
            db, AuditAction.TRIP_UPDATED, actor=actor, entity_type="trip", entity_id=trip.id,
            metadata=keys_to_snake({**fields, **({"total_capacity": new_total} if new_total is not None else {})}),
        )
        return await TripLifecycleService._view(db, trip)

    # --------------------------------------------------------- fleet backend

    @staticmethod
    async def export_trip(db: AsyncSession, actor: Identity, trip_id: int) -> Dict[str, Any]:
        """
        The trip as the fleet backend exchanges it: delimited origin and
        destination, nested price and the stored status token.
        """
        trip = await TripLifecycleService._load_trip(db, trip_id, actor)
        stops = await TripRepository.stops(db, trip.id)
        return trip_to_wire(trip, stops)

    @staticmethod
    async def import_trip(db: AsyncSession, actor: Identity, payload: Dict[str, Any]) -> TripResponse:
        """
        Create a trip and its stops from a fleet-backend payload.

        The trip starts in PLANNED for the caller's organization. The
        payload's id, organization, status, assignments and remaining
        capacity are not carried over.

        Raises:
            ValidationFailedError: payload does not describe a valid trip
            InvalidStopSequenceError: stop sequences are not increasing
        """
        ensure_role(actor, TRIP_MANAGERS)

        try:
            fields = trip_from_wire(payload)
            data = TripCreate.model_validate(
                {key: fields[key] for key in IMPORTED_TRIP_FIELDS if fields.get(key) is not None}
            )
            stops = [TripStopCreate.model_validate(stop) for stop in fields["stops"]]
        except ValidationError as exc:
            raise ValidationFailedError("Invalid fleet trip payload", field_errors(exc.errors()))
        except ValueError as exc:
            # Malformed timestamps fail before schema validation
            raise ValidationFailedError("Invalid fleet trip payload", [{"field": "body", "message": str(exc)}])

        last_sequence = 0
        for stop in stops:
            if stop.sequence <= last_sequence:
                raise InvalidStopSequenceError(stop.sequence, last_sequence)
            last_sequence = stop.sequence

        created = await TripLifecycleService.create_trip(db, actor, data)
        for stop in stops:
            await TripLifecycleService.add_stop(db, actor, created.id, stop)

        logger.info("Trip %s imported with %d stops", created.id, len(stops))
        return await TripLifecycleService.get_trip(db, actor, created.id)

    # ------------------------------------------------------------------ bulk

    @staticmethod
    async def _apply_action(
        db: AsyncSession, actor: Identity, trip_id: int, action: TripAction, data: Dict[str, Any]
    ) -> TripResponse:
        if action == TripAction.CANCEL:
            return await TripLifecycleService.cancel_trip(db, actor, trip_id, reason=data.get("reason"))
        if action == TripAction.COMPLETE:
            return await TripLifecycleService.complete_trip(db, actor, trip_id)
        if action == TripAction.START:
            return await TripLifecycleService.start_trip(db, actor, trip_id)
        if action == TripAction.SCHEDULE:
            return await TripLifecycleService.schedule_trip(db, actor, trip_id)
        if action == TripAction.DELAY:
            return await TripLifecycleService.delay_trip(db, actor, trip_id, reason=data.get("reason"))
        return await TripLifecycleService.update_trip(db, actor, trip_id, TripUpdate.model_validate(data))

    @staticmethod
    async def bulk_update(
        db: AsyncSession,
        actor: Identity,
        trip_ids: List[int],
        action: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[BulkItemResult]:
        """
        Apply one action to many trips, each in its own transaction.

        Per-trip failures are reported in the result list and never abort
        the remaining trips.

        Raises:
            InvalidActionError: unknown action (nothing is applied)
        """
        ensure_role(actor, TRIP_MANAGERS)
        try:
            trip_action = TripAction(action)
        except ValueError:
            raise InvalidActionError(action)

        payload = keys_to_snake(data or {})
        results: List[BulkItemResult] = []

        for trip_id in trip_ids:
            try:
                view = await TripLifecycleService._apply_action(db, actor, trip_id, trip_action, payload)
                results.append(BulkItemResult(id=trip_id, success=True, status=view.status))
            except AppException as exc:
                await db.rollback()
                results.append(BulkItemResult(
                    id=trip_id, success=False,
                    error=BulkItemError(code=exc.error_code, message=exc.message),
                ))
            except ValidationError as exc:
                await db.rollback()
                results.append(BulkItemResult(
                    id=trip_id, success=False,
                    error=BulkItemError(code="VALIDATION_ERROR", message=str(exc.errors()[0]["msg"])),
                ))
            except SQLAlchemyError:
                await db.rollback()
                logger.exception("Bulk %s failed for trip %s", trip_action.value, trip_id)
                results.append(BulkItemResult(
                    id=trip_id, success=False,
                    error=BulkItemError(code="OPERATION_FAILED", message="Operation failed"),
                ))

        return results
