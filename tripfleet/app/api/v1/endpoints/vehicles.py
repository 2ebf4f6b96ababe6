"""
Organization vehicle endpoints.
"""

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.exceptions import handle_collaborator_errors
from tripfleet.app.core.guards import require_org_access, require_org_admin
from tripfleet.app.core.query import parse_query
from tripfleet.app.db.session import get_db
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.common import envelope
from tripfleet.app.schemas.fleet_vehicle import FleetVehicleCreate, FleetVehicleUpdate, MaintenanceRequest
from tripfleet.app.schemas.query import VehicleListQuery
from tripfleet.app.services.vehicle_service import VehicleService

router = APIRouter(prefix="/organizations/vehicles", tags=["Organization - Vehicles"])


@router.get("")
@handle_collaborator_errors("FETCH_FAILED")
async def list_vehicles(
    request: Request,
    current_user: Identity = Depends(require_org_access),
    db: AsyncSession = Depends(get_db)
):
    """
    List the organization's vehicles with utilization and fleet stats.

    Filters: status, type, search (brand, model or plate).
    """
    query = parse_query(request, VehicleListQuery)
    result = await VehicleService.list_vehicles(db, current_user, query)
    return envelope(result)


@router.post("", status_code=status.HTTP_201_CREATED)
@handle_collaborator_errors("CREATION_FAILED")
async def create_vehicle(
    vehicle_data: FleetVehicleCreate,
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a vehicle.

    Maximum weight and package count must fall inside the bounds of the
    vehicle type; the license plate must be unique.
    """
    vehicle = await VehicleService.create_vehicle(db, current_user, vehicle_data)
    return envelope(vehicle, "Vehicle created successfully")


@router.get("/{vehicle_id}")
@handle_collaborator_errors("FETCH_FAILED")
async def get_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    current_user: Identity = Depends(require_org_access),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await VehicleService.get_vehicle(db, current_user, vehicle_id)
    return envelope(vehicle)


@router.put("/{vehicle_id}")
@handle_collaborator_errors("OPERATION_FAILED")
async def update_vehicle(
    changes: FleetVehicleUpdate,
    vehicle_id: int = Path(..., description="Vehicle ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await VehicleService.update_vehicle(db, current_user, vehicle_id, changes)
    return envelope(vehicle, "Vehicle updated successfully")


@router.delete("/{vehicle_id}")
@handle_collaborator_errors("OPERATION_FAILED")
async def delete_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete a vehicle that no open trip references."""
    await VehicleService.delete_vehicle(db, current_user, vehicle_id)
    return envelope(message="Vehicle deleted successfully")


@router.post("/{vehicle_id}/maintenance")
@handle_collaborator_errors("OPERATION_FAILED")
async def schedule_maintenance(
    maintenance: MaintenanceRequest,
    vehicle_id: int = Path(..., description="Vehicle ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await VehicleService.schedule_maintenance(
        db, current_user, vehicle_id, maintenance.scheduled_for, maintenance.notes
    )
    return envelope(vehicle, "Maintenance scheduled")
