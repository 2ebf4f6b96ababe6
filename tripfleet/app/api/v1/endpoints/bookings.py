"""
Booking endpoints.

Customers reserve trip capacity; the price estimate is public to any
authenticated caller.
"""

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.dependencies import get_current_user
from tripfleet.app.core.exceptions import handle_collaborator_errors
from tripfleet.app.core.query import parse_query
from tripfleet.app.db.session import get_db
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.booking import BookingCreate
from tripfleet.app.schemas.common import envelope
from tripfleet.app.schemas.query import PriceEstimateQuery
from tripfleet.app.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["Bookings"])
pricing_router = APIRouter(prefix="/trips", tags=["Bookings"])


@router.post("", status_code=status.HTTP_201_CREATED)
@handle_collaborator_errors("CREATION_FAILED")
async def create_booking(
    booking_data: BookingCreate,
    current_user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Book capacity on a trip.

    The weight is taken from the trip's remaining capacity in one
    conditional update, so concurrent bookings cannot oversell a trip.
    """
    result = await BookingService.create_booking(db, current_user, booking_data.trip_id, booking_data.weight)
    return envelope(result, "Booking confirmed")


@router.get("/{booking_id}")
@handle_collaborator_errors("FETCH_FAILED")
async def get_booking(
    booking_id: int = Path(..., description="Booking ID"),
    current_user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    booking = await BookingService.get_booking(db, current_user, booking_id)
    return envelope(booking)


@router.post("/{booking_id}/cancel")
@handle_collaborator_errors("OPERATION_FAILED")
async def cancel_booking(
    booking_id: int = Path(..., description="Booking ID"),
    current_user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Cancel a booking and give its weight back to the trip."""
    booking = await BookingService.cancel_booking(db, current_user, booking_id)
    return envelope(booking, "Booking cancelled")


@pricing_router.get("/{trip_id}/price-estimate")
@handle_collaborator_errors("FETCH_FAILED")
async def estimate_price(
    request: Request,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = parse_query(request, PriceEstimateQuery)
    breakdown = await BookingService.estimate_price(db, trip_id, query.weight)
    return envelope(breakdown)
