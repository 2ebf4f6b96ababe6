"""
Fleet Aggregation Service.

Read-only dashboard views over an organization's vehicles, drivers and
trips. Every figure is folded from the collections fetched for the request;
nothing is cached.

When the vehicle or driver source cannot be read the overview is still
returned, flagged ``partial``, with that source listed as unavailable and
its collection empty.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.exceptions import AppException, ValidationFailedError
from tripfleet.app.core.guards import ensure_role
from tripfleet.app.core.pagination import paginate, sort_records
from tripfleet.app.core.reliability import CircuitOpenError, driver_source_breaker, vehicle_source_breaker
from tripfleet.app.domain import pricing
from tripfleet.app.domain.mapping import ORGANIZATION_TYPES, TRIP_STATUSES
from tripfleet.app.models.enums import DriverStatus, UserRole, VehicleStatus
from tripfleet.app.models.organization import Organization
from tripfleet.app.models.trip_enums import TripStatus
from tripfleet.app.repositories.fleet_repository import AlertRepository, DriverRepository, VehicleRepository
from tripfleet.app.repositories.trip_repository import TripRepository
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.common import PaginationMeta
from tripfleet.app.schemas.driver import DriverResponse
from tripfleet.app.schemas.fleet import (
    FleetAlertResponse,
    FleetAnalytics,
    FleetOverviewResponse,
    FleetOverviewStats,
    FleetPagination,
    FleetReport,
    MaintenanceResult,
    OrganizationSummary,
)
from tripfleet.app.schemas.fleet_vehicle import FleetVehicleResponse
from tripfleet.app.schemas.query import FleetQuery
from tripfleet.app.services.driver_service import DriverService
from tripfleet.app.services.vehicle_service import VehicleService

logger = logging.getLogger("tripfleet.fleet")

FLEET_FILTER_OPTIONS = {
    "vehicleStatus": ["active", "maintenance", "inactive"],
    "driverStatus": ["active", "inactive", "on_trip"],
    "sortBy": ["name", "status", "utilization", "revenue"],
    "sortOrder": ["asc", "desc"],
}

TOP_DRIVERS = 5


async def _fetch_source(name: str, breaker, fetch, *args, **kwargs) -> Tuple[list, bool]:
    """
    Call a fleet source through its circuit breaker.

    Returns ``(rows, available)``; a failed source yields an empty list.
    """
    try:
        return await breaker.call(fetch, *args, **kwargs), True
    except (SQLAlchemyError, CircuitOpenError) as exc:
        logger.warning("Fleet source '%s' unavailable: %s", name, exc)
        return [], False


class FleetAggregationService:

    @staticmethod
    async def _collect(
        db: AsyncSession,
        organization_id: int,
        vehicle_status: Optional[str] = None,
        driver_status: Optional[str] = None,
    ) -> Tuple[List[FleetVehicleResponse], List[DriverResponse], List[str]]:
        """
        Read both fleet sources into response views.

        Rows are converted as soon as they are read, so rolling back after a
        failed source leaves nothing expired behind.
        """
        unavailable: List[str] = []

        rows, ok = await _fetch_source(
            "vehicles", vehicle_source_breaker, VehicleRepository.list_for_organization,
            db, organization_id, status=VehicleStatus(vehicle_status) if vehicle_status else None,
        )
        vehicles = [FleetVehicleResponse.from_vehicle(row) for row in rows]
        if not ok:
            unavailable.append("vehicles")
            await db.rollback()

        rows, ok = await _fetch_source(
            "drivers", driver_source_breaker, DriverRepository.list_for_organization,
            db, organization_id, status=DriverStatus(driver_status) if driver_status else None,
        )
        drivers = [DriverResponse.from_driver(row) for row in rows]
        if not ok:
            unavailable.append("drivers")
            await db.rollback()

        return vehicles, drivers, unavailable

    @staticmethod
    def _overview(
        vehicles: List[FleetVehicleResponse],
        drivers: List[DriverResponse],
        trips,
        revenue: Dict[int, float],
    ) -> FleetOverviewStats:
        vehicle_status = Counter(v.status for v in vehicles)
        driver_status = Counter(d.status for d in drivers)
        trip_status = Counter(trip.status for trip in trips)
        utilizations = [pricing.capacity_utilization(t.total_capacity, t.remaining_capacity) for t in trips]

        return FleetOverviewStats(
            total_vehicles=len(vehicles),
            active_vehicles=vehicle_status[VehicleStatus.ACTIVE.value],
            maintenance_vehicles=vehicle_status[VehicleStatus.MAINTENANCE.value],
            inactive_vehicles=vehicle_status[VehicleStatus.INACTIVE.value],
            total_drivers=len(drivers),
            active_drivers=driver_status[DriverStatus.ACTIVE.value],
            drivers_on_trip=driver_status[DriverStatus.ON_TRIP.value],
            inactive_drivers=driver_status[DriverStatus.INACTIVE.value],
            total_trips=len(trips),
            active_trips=trip_status[TripStatus.IN_PROGRESS],
            completed_trips=trip_status[TripStatus.COMPLETED],
            total_revenue=pricing.booked_revenue(revenue.get(trip.id, 0.0) for trip in trips),
            average_utilization=round(sum(utilizations) / max(len(utilizations), 1), 2),
        )

    @staticmethod
    def _analytics(
        vehicles: List[FleetVehicleResponse],
        drivers: List[DriverResponse],
        trips,
    ) -> FleetAnalytics:
        revenue_by_type: Dict[str, float] = {}
        for vehicle in vehicles:
            revenue_by_type[vehicle.type] = revenue_by_type.get(vehicle.type, 0.0) + vehicle.revenue

        top_drivers = sort_records(drivers, primary=lambda d: d.revenue, fallback=lambda d: d.id, descending=True)
        return FleetAnalytics(
            trips_by_status=dict(Counter(TRIP_STATUSES.to_internal(trip.status.value) for trip in trips)),
            revenue_by_vehicle_type={k: round(v, 2) for k, v in revenue_by_type.items()},
            vehicles_by_type=dict(Counter(v.type for v in vehicles)),
            top_drivers=top_drivers[:TOP_DRIVERS],
        )

    @staticmethod
    async def _build(db: AsyncSession, organization_id: int, vehicle_status=None, driver_status=None):
        vehicles, drivers, unavailable = await FleetAggregationService._collect(
            db, organization_id, vehicle_status, driver_status
        )
        trips = await TripRepository.list_for_organization(db, organization_id)
        figures = await VehicleService.trip_figures(db, trips)
        revenue = await TripRepository.booked_revenue(db, [trip.id for trip in trips])
        driver_revenue = await DriverService.revenue_by_driver(db, trips)

        vehicles = [
            vehicle.model_copy(update=dict(zip(("total_trips", "utilization", "revenue"), figures[vehicle.id])))
            if vehicle.id in figures else vehicle
            for vehicle in vehicles
        ]
        drivers = [driver.model_copy(update={"revenue": driver_revenue.get(driver.id, 0.0)}) for driver in drivers]
        return vehicles, drivers, trips, revenue, unavailable

    @staticmethod
    def _organization_summary(organization: Optional[Organization]) -> Optional[OrganizationSummary]:
        if organization is None:
            return None
        return OrganizationSummary(
            id=organization.id,
            legal_name=organization.legal_name,
            type=ORGANIZATION_TYPES.to_internal(organization.organization_type.value),
        )

    @staticmethod
    async def get_fleet_overview(db: AsyncSession, actor: Identity, query: FleetQuery) -> FleetOverviewResponse:
        """
        Overview counts, paginated vehicles and drivers, unresolved alerts
        and analytics for the caller's organization.
        """
        organization_id = actor.organization_id
        vehicles, drivers, trips, revenue, unavailable = await FleetAggregationService._build(
            db, organization_id, query.vehicle_status, query.driver_status
        )
        descending = query.sort_order == "desc"

        vehicle_keys = {
            "name": lambda v: f"{v.brand} {v.model}",
            "status": lambda v: v.status,
            "utilization": lambda v: v.utilization,
            "revenue": lambda v: v.revenue,
        }
        driver_keys = {
            "name": lambda d: d.name,
            "status": lambda d: d.status,
            # Drivers have no utilization figure; order by completed trips
            "utilization": lambda d: d.completed_trips,
            "revenue": lambda d: d.revenue,
        }
        ordered_vehicles = sort_records(
            vehicles,
            primary=vehicle_keys.get(query.sort_by, lambda v: v.license_plate),
            fallback=lambda v: v.license_plate,
            descending=descending,
        )
        ordered_drivers = sort_records(
            drivers,
            primary=driver_keys.get(query.sort_by, lambda d: d.id),
            fallback=lambda d: d.id,
            descending=descending,
        )
        vehicle_page, vehicle_meta = paginate(ordered_vehicles, query.page, query.limit)
        driver_page, driver_meta = paginate(ordered_drivers, query.page, query.limit)

        alerts = await AlertRepository.unresolved_for_organization(db, organization_id)
        organization = await db.get(Organization, organization_id)

        if unavailable:
            logger.warning(
                "Fleet overview for organization %s is partial; unavailable: %s",
                organization_id, ", ".join(unavailable),
            )

        return FleetOverviewResponse(
            organization=FleetAggregationService._organization_summary(organization),
            overview=FleetAggregationService._overview(vehicles, drivers, trips, revenue),
            vehicles=vehicle_page,
            drivers=driver_page,
            alerts=[FleetAlertResponse.from_alert(alert) for alert in alerts],
            analytics=FleetAggregationService._analytics(vehicles, drivers, trips),
            pagination=FleetPagination(
                vehicles=PaginationMeta.model_validate(vehicle_meta),
                drivers=PaginationMeta.model_validate(driver_meta),
            ),
            filters={
                "applied": query.model_dump(by_alias=True, mode="json", exclude={"page", "limit"}),
                "available": FLEET_FILTER_OPTIONS,
            },
            data_status="partial" if unavailable else "complete",
            unavailable_sources=unavailable,
        )

    @staticmethod
    async def generate_fleet_report(db: AsyncSession, actor: Identity) -> FleetReport:
        vehicles, drivers, trips, revenue, unavailable = await FleetAggregationService._build(
            db, actor.organization_id
        )
        return FleetReport(
            generated_at=datetime.now(timezone.utc),
            organization_id=actor.organization_id,
            overview=FleetAggregationService._overview(vehicles, drivers, trips, revenue),
            analytics=FleetAggregationService._analytics(vehicles, drivers, trips),
            data_status="partial" if unavailable else "complete",
            unavailable_sources=unavailable,
        )

    @staticmethod
    async def schedule_bulk_maintenance(
        db: AsyncSession,
        actor: Identity,
        vehicle_ids: List[int],
        scheduled_for: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> List[MaintenanceResult]:
        """
        Schedule maintenance for several vehicles; one result per id.
        """
        ensure_role(actor, [UserRole.ORGANIZATION_ADMIN])
        if not vehicle_ids:
            raise ValidationFailedError(
                "vehicleIds is required for schedule_maintenance",
                [{"field": "vehicleIds", "message": "At least one vehicle id is required"}],
            )

        results: List[MaintenanceResult] = []
        for vehicle_id in vehicle_ids:
            try:
                await VehicleService.schedule_maintenance(db, actor, vehicle_id, scheduled_for, notes)
                results.append(MaintenanceResult(vehicle_id=vehicle_id, success=True))
            except AppException as exc:
                await db.rollback()
                results.append(MaintenanceResult(vehicle_id=vehicle_id, success=False, error=exc.message))
        return results
