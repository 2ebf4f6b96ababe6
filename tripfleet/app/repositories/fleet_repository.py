"""
Vehicle, driver and alert data access.
"""

from typing import List, Optional
from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.models.driver import Driver
from tripfleet.app.models.enums import VehicleStatus, VehicleType, DriverStatus
from tripfleet.app.models.fleet_alert import FleetAlert
from tripfleet.app.models.fleet_vehicle import FleetVehicle
from tripfleet.app.repositories.base import BaseRepository


class VehicleRepository(BaseRepository[FleetVehicle]):
    model = FleetVehicle

    @staticmethod
    async def list_for_organization(
        db: AsyncSession,
        organization_id: int,
        status: Optional[VehicleStatus] = None,
        vehicle_type: Optional[VehicleType] = None,
        search: Optional[str] = None,
    ) -> List[FleetVehicle]:
        query = select(FleetVehicle).where(FleetVehicle.organization_id == organization_id)
        if status is not None:
            query = query.where(FleetVehicle.status == status)
        if vehicle_type is not None:
            query = query.where(FleetVehicle.vehicle_type == vehicle_type)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                FleetVehicle.brand.ilike(pattern),
                FleetVehicle.model.ilike(pattern),
                FleetVehicle.license_plate.ilike(pattern),
            ))
        result = await db.execute(query.order_by(FleetVehicle.license_plate))
        return list(result.scalars().all())

    @staticmethod
    async def get_by_plate(db: AsyncSession, license_plate: str) -> Optional[FleetVehicle]:
        result = await db.execute(
            select(FleetVehicle).where(FleetVehicle.license_plate == license_plate)
        )
        return result.scalar_one_or_none()


class DriverRepository(BaseRepository[Driver]):
    model = Driver

    @staticmethod
    async def list_for_organization(
        db: AsyncSession,
        organization_id: int,
        status: Optional[DriverStatus] = None,
        search: Optional[str] = None,
    ) -> List[Driver]:
        query = select(Driver).where(Driver.organization_id == organization_id)
        if status is not None:
            query = query.where(Driver.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Driver.name.ilike(pattern), Driver.email.ilike(pattern)))
        result = await db.execute(query.order_by(Driver.id))
        return list(result.scalars().all())

    @staticmethod
    async def swap_current_trip(
        db: AsyncSession,
        driver_id: int,
        expected_trip_id: Optional[int],
        new_trip_id: Optional[int],
    ) -> bool:
        """
        Compare-and-swap ``current_trip_id``.

        Only writes when the column still holds ``expected_trip_id``, so two
        concurrent assignments of the same driver cannot both succeed.
        """
        current = (
            Driver.current_trip_id.is_(None)
            if expected_trip_id is None
            else Driver.current_trip_id == expected_trip_id
        )
        result = await db.execute(
            update(Driver)
            .where(Driver.id == driver_id, current)
            .values(current_trip_id=new_trip_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class AlertRepository(BaseRepository[FleetAlert]):
    model = FleetAlert

    @staticmethod
    async def unresolved_for_organization(db: AsyncSession, organization_id: int, limit: int = 50) -> List[FleetAlert]:
        result = await db.execute(
            select(FleetAlert)
            .where(FleetAlert.organization_id == organization_id, FleetAlert.resolved_at.is_(None))
            .order_by(FleetAlert.created_at.desc(), FleetAlert.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
