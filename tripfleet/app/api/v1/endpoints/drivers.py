"""
Organization driver endpoints.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.exceptions import handle_collaborator_errors
from tripfleet.app.core.guards import require_org_access, require_org_admin
from tripfleet.app.core.query import parse_query
from tripfleet.app.db.session import get_db
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.common import envelope
from tripfleet.app.schemas.driver import DriverCreate
from tripfleet.app.schemas.query import DriverListQuery
from tripfleet.app.services.driver_service import DriverService

router = APIRouter(prefix="/organizations/drivers", tags=["Organization - Drivers"])


@router.get("")
@handle_collaborator_errors("FETCH_FAILED")
async def list_drivers(
    request: Request,
    current_user: Identity = Depends(require_org_access),
    db: AsyncSession = Depends(get_db)
):
    query = parse_query(request, DriverListQuery)
    result = await DriverService.list_drivers(db, current_user, query)
    return envelope(result)


@router.post("", status_code=status.HTTP_201_CREATED)
@handle_collaborator_errors("CREATION_FAILED")
async def create_driver(
    driver_data: DriverCreate,
    current_user: Identity = Depends(require_org_admin),
    db: AsyncSession = Depends(get_db)
):
    driver = await DriverService.create_driver(db, current_user, driver_data)
    return envelope(driver, "Driver created successfully")
