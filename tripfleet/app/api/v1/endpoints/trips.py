"""
Organization trip endpoints.

Reads are open to organization admins and drivers; every mutation requires
the organization admin role. Query strings are validated after
authentication so a missing token is always reported first.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.exceptions import handle_collaborator_errors
from tripfleet.app.core.guards import require_org_access, require_org_admin
from tripfleet.app.core.query import parse_query
from tripfleet.app.db.session import get_db
from tripfleet.app.domain.mapping import keys_to_camel
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.common import envelope
from tripfleet.app.schemas.query import TripListQuery
from tripfleet.app.schemas.trip import (
    AssignDriverRequest,
    AssignVehicleRequest,
    BulkTripUpdate,
    TripCancelRequest,
    TripCreate,
    TripDelayRequest,
    TripStopCreate,
    TripStopStatusUpdate,
    TripUpdate,
)
from tripfleet.app.services.trip_service import TripLifecycleService

router = APIRouter(prefix="/organizations/trips", tags=["Organization - Trips"])


@router.get("")
@handle_collaborator_errors("FETCH_FAILED")
async def list_trips(
    request: Request,
    current_user: Identity = Depends(require_org_access),
    db: AsyncSession = Depends(get_db)
):
    """
    List the organization's trips.

    Supports status, driver, vehicle, city and date filters, sorting by
    departureTime / revenue / status / createdAt and page/limit pagination.
    """
    query = parse_query(request, TripListQuery)
    result = await TripLifecycleService.list_trips(db, current_user, query)
    return envelope(result)


@router.post("", status_code=status.HTTP_201_CREATED)
@handle_collaborator_errors("CREATION_FAILED")
async def create_trip(
    trip_data: TripCreate,
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a trip in the planned state."""
    trip = await TripLifecycleService.create_trip(db, current_user, trip_data)
    return envelope(trip, "Trip created successfully")


@router.put("")
@handle_collaborator_errors("OPERATION_FAILED")
async def bulk_update_trips(
    payload: BulkTripUpdate,
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Apply one action to several trips.

    Each trip succeeds or fails on its own; the response lists one outcome
    per id.
    """
    results = await TripLifecycleService.bulk_update(
        db, current_user, payload.trip_ids, payload.action, payload.data
    )
    succeeded = sum(1 for item in results if item.success)
    return envelope(
        {"results": [item.model_dump(by_alias=True, mode="json") for item in results],
         "succeeded": succeeded,
         "failed": len(results) - succeeded},
        f"{succeeded} of {len(results)} trips updated",
    )


@router.post("/import", status_code=status.HTTP_201_CREATED)
@handle_collaborator_errors("CREATION_FAILED")
async def import_trip(
    payload: Dict[str, Any] = Body(..., description="Trip in the fleet-backend format"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a planned trip, with its stops, from a fleet-backend payload."""
    trip = await TripLifecycleService.import_trip(db, current_user, payload)
    return envelope(trip, "Trip imported successfully")


@router.get("/{trip_id}/export")
@handle_collaborator_errors("FETCH_FAILED")
async def export_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_access),
    db: AsyncSession = Depends(get_db)
):
    """The fleet-backend record of a trip, camelCased like every response."""
    record = await TripLifecycleService.export_trip(db, current_user, trip_id)
    return envelope(keys_to_camel(record))


@router.get("/{trip_id}")
@handle_collaborator_errors("FETCH_FAILED")
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_access),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycleService.get_trip(db, current_user, trip_id)
    return envelope(trip)


@router.patch("/{trip_id}")
@handle_collaborator_errors("OPERATION_FAILED")
async def update_trip(
    changes: TripUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycleService.update_trip(db, current_user, trip_id, changes)
    return envelope(trip, "Trip updated successfully")


@router.post("/{trip_id}/assign-driver")
@handle_collaborator_errors("OPERATION_FAILED")
async def assign_driver(
    assignment: AssignDriverRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycleService.assign_driver(db, current_user, trip_id, assignment.driver_id)
    return envelope(trip, "Driver assigned successfully")


@router.post("/{trip_id}/assign-vehicle")
@handle_collaborator_errors("OPERATION_FAILED")
async def assign_vehicle(
    assignment: AssignVehicleRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycleService.assign_vehicle(db, current_user, trip_id, assignment.vehicle_id)
    return envelope(trip, "Vehicle assigned successfully")


@router.post("/{trip_id}/stops", status_code=status.HTTP_201_CREATED)
@handle_collaborator_errors("CREATION_FAILED")
async def add_stop(
    stop_data: TripStopCreate,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    """Append a stop; its sequence must exceed every existing one."""
    stop = await TripLifecycleService.add_stop(db, current_user, trip_id, stop_data)
    return envelope(stop, "Stop added successfully")


@router.patch("/{trip_id}/stops/{stop_id}")
@handle_collaborator_errors("OPERATION_FAILED")
async def update_stop_status(
    update: TripStopStatusUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    stop_id: int = Path(..., description="Stop ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    stop = await TripLifecycleService.update_stop_status(db, current_user, trip_id, stop_id, update.status)
    return envelope(stop)


@router.post("/{trip_id}/schedule")
@handle_collaborator_errors("OPERATION_FAILED")
async def schedule_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycleService.schedule_trip(db, current_user, trip_id)
    return envelope(trip, "Trip scheduled")


@router.post("/{trip_id}/start")
@handle_collaborator_errors("OPERATION_FAILED")
async def start_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycleService.start_trip(db, current_user, trip_id)
    return envelope(trip, "Trip started")


@router.post("/{trip_id}/complete")
@handle_collaborator_errors("OPERATION_FAILED")
async def complete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycleService.complete_trip(db, current_user, trip_id)
    return envelope(trip, "Trip completed")


@router.post("/{trip_id}/delay")
@handle_collaborator_errors("OPERATION_FAILED")
async def delay_trip(
    delay: TripDelayRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycleService.delay_trip(
        db, current_user, trip_id,
        reason=delay.reason,
        new_departure_time=delay.new_departure_time,
        new_arrival_time=delay.new_arrival_time,
    )
    return envelope(trip, "Trip delayed")


@router.post("/{trip_id}/cancel")
@handle_collaborator_errors("OPERATION_FAILED")
async def cancel_trip(
    cancellation: TripCancelRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    """Cancel a trip. Bookings made afterwards fail with TRIP_CANCELLED."""
    trip = await TripLifecycleService.cancel_trip(db, current_user, trip_id, cancellation.reason)
    return envelope(trip, "Trip cancelled")
