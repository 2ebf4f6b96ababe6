"""
Vehicle Service.

Organization fleet management. Capacity is validated against the vehicle
type bounds before any row is written.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationFailedError
from tripfleet.app.core.guards import ensure_role, ownership_guard
from tripfleet.app.core.pagination import paginate, sort_records
from tripfleet.app.domain import pricing
from tripfleet.app.domain.capacity import estimate_max_packages, validate_vehicle_capacity
from tripfleet.app.domain.mapping import VEHICLE_TYPES
from tripfleet.app.models.enums import UserRole, VehicleStatus, VehicleType
from tripfleet.app.models.driver import Driver
from tripfleet.app.models.fleet_vehicle import FleetVehicle
from tripfleet.app.models.trip import Trip
from tripfleet.app.repositories.fleet_repository import DriverRepository, VehicleRepository
from tripfleet.app.repositories.trip_repository import TripRepository
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.common import PaginationMeta
from tripfleet.app.schemas.fleet_vehicle import (
    FleetVehicleCreate,
    FleetVehicleResponse,
    FleetVehicleUpdate,
    VehicleListResponse,
    VehicleStats,
)
from tripfleet.app.schemas.query import VehicleListQuery
from tripfleet.app.services.audit import AuditAction, log_event

logger = logging.getLogger("tripfleet.vehicles")

FLEET_MANAGERS = [UserRole.ORGANIZATION_ADMIN]

VEHICLE_FILTER_OPTIONS = {
    "status": ["active", "maintenance", "inactive"],
    "type": VEHICLE_TYPES.internal_values(),
    "sortBy": ["brand", "model", "status", "createdAt", "utilization"],
    "sortOrder": ["asc", "desc"],
}


def _capacity_errors(
    vehicle_type: str,
    weight_min: float,
    weight_max: float,
    volume_min: float,
    volume_max: float,
    packages: int,
) -> Optional[str]:
    if weight_min > weight_max:
        return "Minimum weight capacity cannot exceed maximum weight capacity"
    if volume_min > volume_max:
        return "Minimum volume capacity cannot exceed maximum volume capacity"
    # Both ends of the weight range must sit inside the type bounds
    return (
        validate_vehicle_capacity(vehicle_type, weight_max, packages)
        or validate_vehicle_capacity(vehicle_type, weight_min, packages)
    )


class VehicleService:

    @staticmethod
    async def _load(db: AsyncSession, actor: Identity, vehicle_id: int) -> FleetVehicle:
        vehicle = await VehicleRepository.get(db, vehicle_id, refresh=True)
        if vehicle is None:
            raise ResourceNotFoundError("Vehicle", vehicle_id)
        ownership_guard.enforce(vehicle.organization_id, actor, "vehicle")
        return vehicle

    @staticmethod
    async def trip_figures(db: AsyncSession, trips: List[Trip]) -> Dict[int, Tuple[int, int, float]]:
        """
        Per-vehicle ``(trip_count, average_utilization, booked_revenue)``.
        """
        revenue = await TripRepository.booked_revenue(db, [trip.id for trip in trips])
        grouped: Dict[int, List[Trip]] = {}
        for trip in trips:
            if trip.vehicle_id is not None:
                grouped.setdefault(trip.vehicle_id, []).append(trip)

        figures = {}
        for vehicle_id, vehicle_trips in grouped.items():
            utilizations = [
                pricing.capacity_utilization(trip.total_capacity, trip.remaining_capacity) for trip in vehicle_trips
            ]
            figures[vehicle_id] = (
                len(vehicle_trips),
                round(sum(utilizations) / len(utilizations)),
                pricing.booked_revenue(revenue.get(trip.id, 0.0) for trip in vehicle_trips),
            )
        return figures

    @staticmethod
    def vehicle_view(vehicle: FleetVehicle, figures: Dict[int, Tuple[int, int, float]]) -> FleetVehicleResponse:
        total_trips, utilization, revenue = figures.get(vehicle.id, (0, 0, 0.0))
        return FleetVehicleResponse.from_vehicle(vehicle, total_trips, utilization, revenue)

    @staticmethod
    async def create_vehicle(db: AsyncSession, actor: Identity, data: FleetVehicleCreate) -> FleetVehicleResponse:
        """
        Register a vehicle for the caller's organization.

        Raises:
            ValidationFailedError: capacity outside the type bounds or
                duplicate license plate
        """
        ensure_role(actor, FLEET_MANAGERS)
        external_type = VEHICLE_TYPES.to_external(data.type)
        packages = data.max_packages or estimate_max_packages(data.capacity_weight_max, external_type)

        error = _capacity_errors(
            external_type,
            data.capacity_weight_min,
            data.capacity_weight_max,
            data.capacity_volume_min,
            data.capacity_volume_max,
            packages,
        )
        if error:
            raise ValidationFailedError(error, [{"field": "capacity", "message": error}])

        if await VehicleRepository.get_by_plate(db, data.license_plate):
            raise ValidationFailedError(
                "License plate already registered",
                [{"field": "licensePlate", "message": "License plate already registered"}],
            )

        try:
            vehicle = await VehicleRepository.create(
                db,
                organization_id=actor.organization_id,
                vehicle_type=VehicleType(external_type),
                brand=data.brand,
                model=data.model,
                license_plate=data.license_plate,
                year=data.year,
                capacity_weight_min=data.capacity_weight_min,
                capacity_weight_max=data.capacity_weight_max,
                capacity_volume_min=data.capacity_volume_min,
                capacity_volume_max=data.capacity_volume_max,
                max_packages=packages,
                status=VehicleStatus(data.status),
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ValidationFailedError(
                "License plate already registered",
                [{"field": "licensePlate", "message": "License plate already registered"}],
            )

        await log_event(
            db, AuditAction.VEHICLE_CREATED, actor=actor, entity_type="vehicle", entity_id=vehicle.id,
            metadata={"license_plate": vehicle.license_plate, "type": external_type},
        )
        return FleetVehicleResponse.from_vehicle(vehicle)

    @staticmethod
    async def get_vehicle(db: AsyncSession, actor: Identity, vehicle_id: int) -> FleetVehicleResponse:
        vehicle = await VehicleService._load(db, actor, vehicle_id)
        trips = await TripRepository.list(db, Trip.vehicle_id == vehicle.id)
        return VehicleService.vehicle_view(vehicle, await VehicleService.trip_figures(db, trips))

    @staticmethod
    async def list_vehicles(db: AsyncSession, actor: Identity, query: VehicleListQuery) -> VehicleListResponse:
        organization_id = actor.organization_id
        vehicles = await VehicleRepository.list_for_organization(
            db,
            organization_id,
            status=VehicleStatus(query.status) if query.status else None,
            vehicle_type=VehicleType(VEHICLE_TYPES.to_external(query.type)) if query.type else None,
            search=query.search,
        )
        trips = await TripRepository.list_for_organization(db, organization_id)
        figures = await VehicleService.trip_figures(db, trips)
        views = [VehicleService.vehicle_view(vehicle, figures) for vehicle in vehicles]

        sort_keys = {
            "brand": lambda v: v.brand,
            "model": lambda v: v.model,
            "status": lambda v: v.status,
            "createdAt": lambda v: v.created_at,
            "utilization": lambda v: v.utilization,
        }
        ordered = sort_records(
            views,
            primary=sort_keys.get(query.sort_by, lambda v: v.license_plate),
            fallback=lambda v: v.license_plate,
            descending=query.sort_order == "desc",
        )
        page_items, meta = paginate(ordered, query.page, query.limit)

        all_vehicles = await VehicleRepository.list_for_organization(db, organization_id)
        all_views = [VehicleService.vehicle_view(vehicle, figures) for vehicle in all_vehicles]
        stats = VehicleStats(
            total_vehicles=len(all_views),
            active_vehicles=sum(1 for v in all_views if v.status == VehicleStatus.ACTIVE.value),
            maintenance_vehicles=sum(1 for v in all_views if v.status == VehicleStatus.MAINTENANCE.value),
            inactive_vehicles=sum(1 for v in all_views if v.status == VehicleStatus.INACTIVE.value),
            total_capacity_weight=sum(v.capacity_weight_max for v in all_views),
            average_utilization=round(sum(v.utilization for v in all_views) / max(len(all_views), 1), 2),
        )

        return VehicleListResponse(
            vehicles=page_items,
            pagination=PaginationMeta.model_validate(meta),
            stats=stats,
            filters={
                "applied": query.model_dump(by_alias=True, mode="json", exclude={"page", "limit"}),
                "available": VEHICLE_FILTER_OPTIONS,
            },
        )

    @staticmethod
    async def update_vehicle(
        db: AsyncSession, actor: Identity, vehicle_id: int, changes: FleetVehicleUpdate
    ) -> FleetVehicleResponse:
        """Partial update; capacity is re-validated on the merged values."""
        ensure_role(actor, FLEET_MANAGERS)
        vehicle = await VehicleService._load(db, actor, vehicle_id)
        fields = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}

        external_type = (
            VEHICLE_TYPES.to_external(fields.pop("type")) if "type" in fields else vehicle.vehicle_type.value
        )
        merged = {
            "weight_min": fields.get("capacity_weight_min", vehicle.capacity_weight_min),
            "weight_max": fields.get("capacity_weight_max", vehicle.capacity_weight_max),
            "volume_min": fields.get("capacity_volume_min", vehicle.capacity_volume_min),
            "volume_max": fields.get("capacity_volume_max", vehicle.capacity_volume_max),
        }
        packages = fields.get("max_packages", vehicle.max_packages)
        error = _capacity_errors(
            external_type, merged["weight_min"], merged["weight_max"],
            merged["volume_min"], merged["volume_max"], packages,
        )
        if error:
            raise ValidationFailedError(error, [{"field": "capacity", "message": error}])

        plate = fields.get("license_plate")
        if plate and plate != vehicle.license_plate and await VehicleRepository.get_by_plate(db, plate):
            raise ValidationFailedError(
                "License plate already registered",
                [{"field": "licensePlate", "message": "License plate already registered"}],
            )

        if "status" in fields:
            fields["status"] = VehicleStatus(fields["status"])
        fields["vehicle_type"] = VehicleType(external_type)

        try:
            await VehicleRepository.update(db, vehicle, **fields)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ValidationFailedError("Vehicle update violates a uniqueness constraint")

        await log_event(
            db, AuditAction.VEHICLE_UPDATED, actor=actor, entity_type="vehicle", entity_id=vehicle.id,
            metadata={"fields": sorted(changes.model_dump(exclude_unset=True).keys())},
        )
        vehicle = await VehicleRepository.get(db, vehicle.id, refresh=True)
        return FleetVehicleResponse.from_vehicle(vehicle)

    @staticmethod
    async def delete_vehicle(db: AsyncSession, actor: Identity, vehicle_id: int) -> None:
        """
        Raises:
            ConflictError: VEHICLE_IN_USE while a non-terminal trip references it
        """
        ensure_role(actor, FLEET_MANAGERS)
        vehicle = await VehicleService._load(db, actor, vehicle_id)

        open_trips = await TripRepository.open_trips_for_vehicle(db, vehicle.id)
        if open_trips:
            raise ConflictError(
                f"Vehicle {vehicle_id} is referenced by {open_trips} open trip(s)", "VEHICLE_IN_USE"
            )

        # Terminal trips keep their history without the vehicle link
        for trip in await TripRepository.list(db, Trip.vehicle_id == vehicle.id):
            trip.vehicle_id = None
        for driver in await DriverRepository.list(db, Driver.current_vehicle_id == vehicle.id):
            driver.current_vehicle_id = None
        await db.flush()
        await db.delete(vehicle)
        await db.commit()

        await log_event(
            db, AuditAction.VEHICLE_DELETED, actor=actor, entity_type="vehicle", entity_id=vehicle_id,
            metadata={"license_plate": vehicle.license_plate},
        )

    @staticmethod
    async def schedule_maintenance(
        db: AsyncSession,
        actor: Identity,
        vehicle_id: int,
        scheduled_for: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> FleetVehicleResponse:
        """
        Put a vehicle into maintenance.

        Raises:
            ConflictError: VEHICLE_IN_USE while it runs an in-progress trip
        """
        ensure_role(actor, FLEET_MANAGERS)
        vehicle = await VehicleService._load(db, actor, vehicle_id)

        if await TripRepository.vehicle_busy_elsewhere(db, vehicle.id, trip_id=0):
            raise ConflictError(f"Vehicle {vehicle_id} is on an in-progress trip", "VEHICLE_IN_USE")

        vehicle.status = VehicleStatus.MAINTENANCE
        vehicle.next_maintenance_at = scheduled_for or datetime.now(timezone.utc)
        await db.commit()

        logger.info("Vehicle %s scheduled for maintenance", vehicle.id)
        await log_event(
            db, AuditAction.MAINTENANCE_SCHEDULED, actor=actor, entity_type="vehicle", entity_id=vehicle.id,
            metadata={"scheduled_for": vehicle.next_maintenance_at.isoformat(), "notes": notes},
        )
        return FleetVehicleResponse.from_vehicle(vehicle)
