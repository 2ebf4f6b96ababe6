"""
Driver registry for organizations.
"""

import logging
from typing import Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.guards import ensure_role
from tripfleet.app.core.pagination import paginate, sort_records
from tripfleet.app.domain import pricing
from tripfleet.app.models.driver import Driver
from tripfleet.app.models.enums import DriverStatus, UserRole
from tripfleet.app.models.trip import Trip
from tripfleet.app.repositories.fleet_repository import DriverRepository
from tripfleet.app.repositories.trip_repository import TripRepository
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.common import PaginationMeta
from tripfleet.app.schemas.driver import DriverCreate, DriverListResponse, DriverResponse
from tripfleet.app.schemas.query import DriverListQuery
from tripfleet.app.services.audit import AuditAction, log_event

logger = logging.getLogger("tripfleet.drivers")

DRIVER_FILTER_OPTIONS = {
    "status": ["active", "inactive", "on_trip"],
    "sortBy": ["name", "status", "completedTrips", "rating"],
    "sortOrder": ["asc", "desc"],
}


class DriverService:

    @staticmethod
    async def revenue_by_driver(db: AsyncSession, trips: List[Trip]) -> Dict[int, float]:
        """Booked revenue of each driver's trips."""
        revenue = await TripRepository.booked_revenue(db, [trip.id for trip in trips])
        totals: Dict[int, float] = {}
        for trip in trips:
            if trip.driver_id is not None:
                totals[trip.driver_id] = totals.get(trip.driver_id, 0.0) + revenue.get(trip.id, 0.0)
        return {driver_id: pricing.booked_revenue([total]) for driver_id, total in totals.items()}

    @staticmethod
    async def create_driver(db: AsyncSession, actor: Identity, data: DriverCreate) -> DriverResponse:
        ensure_role(actor, [UserRole.ORGANIZATION_ADMIN])
        driver = await DriverRepository.create(
            db,
            organization_id=actor.organization_id,
            user_id=data.user_id,
            name=data.name,
            email=data.email,
            phone=data.phone,
            status=DriverStatus.ACTIVE,
        )
        await db.commit()

        logger.info("Driver %s registered for organization %s", driver.id, driver.organization_id)
        await log_event(
            db, AuditAction.DRIVER_CREATED, actor=actor, entity_type="driver", entity_id=driver.id,
            metadata={"name": driver.name},
        )
        return DriverResponse.from_driver(driver)

    @staticmethod
    async def list_drivers(db: AsyncSession, actor: Identity, query: DriverListQuery) -> DriverListResponse:
        drivers = await DriverRepository.list_for_organization(
            db,
            actor.organization_id,
            status=DriverStatus(query.status) if query.status else None,
            search=query.search,
        )
        trips = await TripRepository.list_for_organization(db, actor.organization_id)
        revenue = await DriverService.revenue_by_driver(db, trips)

        sort_keys = {
            "name": lambda d: d.name,
            "status": lambda d: d.status,
            "completedTrips": lambda d: d.completed_trips,
            "rating": lambda d: d.rating,
        }
        ordered = sort_records(
            drivers,
            primary=sort_keys.get(query.sort_by, lambda d: d.id),
            fallback=lambda d: d.id,
            descending=query.sort_order == "desc",
        )
        page_items, meta = paginate(ordered, query.page, query.limit)

        return DriverListResponse(
            drivers=[DriverResponse.from_driver(d, revenue.get(d.id, 0.0)) for d in page_items],
            pagination=PaginationMeta.model_validate(meta),
            filters={
                "applied": query.model_dump(by_alias=True, mode="json", exclude={"page", "limit"}),
                "available": DRIVER_FILTER_OPTIONS,
            },
        )
