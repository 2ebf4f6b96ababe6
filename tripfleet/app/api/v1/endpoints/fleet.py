"""
Organization fleet overview endpoints.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.exceptions import InvalidActionError, handle_collaborator_errors
from tripfleet.app.core.guards import require_org_access, require_org_admin
from tripfleet.app.core.query import parse_query
from tripfleet.app.db.session import get_db
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.common import envelope
from tripfleet.app.schemas.fleet import FleetActionRequest
from tripfleet.app.schemas.query import FleetQuery
from tripfleet.app.services.fleet_aggregation import FleetAggregationService

router = APIRouter(prefix="/organizations/fleet", tags=["Organization - Fleet"])


@router.get("")
@handle_collaborator_errors("FETCH_FAILED")
async def get_fleet_overview(
    request: Request,
    current_user: Identity = Depends(require_org_access),
    db: AsyncSession = Depends(get_db)
):
    """
    Fleet dashboard: overview counts, vehicles, drivers, alerts and analytics.

    ``dataStatus`` is ``partial`` when a source could not be read.
    """
    query = parse_query(request, FleetQuery)
    overview = await FleetAggregationService.get_fleet_overview(db, current_user, query)
    return envelope(overview)


@router.post("")
@handle_collaborator_errors("OPERATION_FAILED")
async def fleet_action(
    payload: FleetActionRequest,
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Fleet-wide actions: ``schedule_maintenance`` or ``generate_report``.
    """
    if payload.action == "schedule_maintenance":
        results = await FleetAggregationService.schedule_bulk_maintenance(
            db, current_user, payload.vehicle_ids or [], payload.scheduled_for, payload.notes
        )
        scheduled = sum(1 for item in results if item.success)
        return envelope(results, f"Maintenance scheduled for {scheduled} of {len(results)} vehicles")

    if payload.action == "generate_report":
        report = await FleetAggregationService.generate_fleet_report(db, current_user)
        return envelope(report, "Fleet report generated")

    raise InvalidActionError(payload.action)
