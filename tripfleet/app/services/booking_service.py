"""
Booking Service.

Customers reserve capacity on trips. A booking and its capacity decrement
commit together; cancelling gives the weight back.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from tripfleet.app.core.exceptions import AppException, ConflictError, InsufficientPermissionsError, ResourceNotFoundError
from tripfleet.app.core.guards import ensure_role, ownership_guard
from tripfleet.app.domain import pricing
from tripfleet.app.models.booking import Booking
from tripfleet.app.models.enums import BookingStatus, UserRole
from tripfleet.app.repositories.booking_repository import BookingRepository
from tripfleet.app.repositories.trip_repository import TripRepository
from tripfleet.app.schemas.auth import Identity
from tripfleet.app.schemas.booking import BookingCreateResponse, BookingResponse, PriceBreakdown
from tripfleet.app.services.audit import AuditAction, log_event
from tripfleet.app.services.trip_service import TripLifecycleService

logger = logging.getLogger("tripfleet.bookings")

BOOKING_ROLES = [UserRole.CUSTOMER, UserRole.ADMIN]


class BookingService:

    @staticmethod
    async def estimate_price(db: AsyncSession, trip_id: int, weight: float) -> PriceBreakdown:
        """Price a prospective booking without reserving anything."""
        trip = await TripRepository.get(db, trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        return PriceBreakdown(**pricing.estimate_price(trip, weight))

    @staticmethod
    def _can_access(booking: Booking, trip, actor: Identity) -> bool:
        if booking.customer_id == actor.user_id:
            return True
        return trip is not None and ownership_guard.is_allowed(trip.organization_id, actor) and (
            actor.role in (UserRole.ADMIN, UserRole.ORGANIZATION_ADMIN)
        )

    @staticmethod
    async def get_booking(db: AsyncSession, actor: Identity, booking_id: int) -> BookingResponse:
        booking = await BookingRepository.get(db, booking_id)
        if booking is None:
            raise ResourceNotFoundError("Booking", booking_id)
        trip = await TripRepository.get(db, booking.trip_id)
        if not BookingService._can_access(booking, trip, actor):
            raise InsufficientPermissionsError("Access denied. You do not have permission to access this booking.")
        return BookingResponse.from_booking(booking)

    @staticmethod
    async def create_booking(db: AsyncSession, actor: Identity, trip_id: int, weight: float) -> BookingCreateResponse:
        """
        Reserve ``weight`` kg on a trip for the caller.

        The capacity decrement and the booking row are committed together.

        Raises:
            CapacityExceededError, ConflictError (TRIP_CANCELLED,
            TRIP_NOT_BOOKABLE), ResourceNotFoundError, ValidationFailedError
        """
        ensure_role(actor, BOOKING_ROLES)

        try:
            trip = await TripLifecycleService.book_capacity(db, trip_id, weight, commit=False)
            quote = pricing.estimate_price(trip, weight)
            booking = await BookingRepository.create(
                db,
                trip_id=trip.id,
                customer_id=actor.user_id,
                weight=weight,
                price=quote["total"],
                currency=trip.currency,
                status=BookingStatus.CONFIRMED,
            )
            await db.commit()
        except AppException:
            await db.rollback()
            raise

        logger.info("Booking %s reserved %s kg on trip %s", booking.id, weight, trip.id)
        await log_event(
            db, AuditAction.BOOKING_CREATED, actor=actor, entity_type="booking", entity_id=booking.id,
            organization_id=trip.organization_id,
            metadata={"trip_id": trip.id, "weight": weight, "price": booking.price},
        )
        return BookingCreateResponse(
            booking=BookingResponse.from_booking(booking),
            price=PriceBreakdown(**quote),
            remaining_capacity=trip.remaining_capacity,
        )

    @staticmethod
    async def cancel_booking(db: AsyncSession, actor: Identity, booking_id: int) -> BookingResponse:
        """
        Cancel a booking and release its weight.

        Raises:
            ConflictError: BOOKING_CANCELLED if it was already cancelled
        """
        booking = await BookingRepository.get(db, booking_id, refresh=True)
        if booking is None:
            raise ResourceNotFoundError("Booking", booking_id)
        trip = await TripRepository.get(db, booking.trip_id)
        if not BookingService._can_access(booking, trip, actor):
            raise InsufficientPermissionsError("Access denied. You do not have permission to cancel this booking.")
        if booking.status == BookingStatus.CANCELLED:
            raise ConflictError(f"Booking {booking_id} is already cancelled", "BOOKING_CANCELLED")

        try:
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = datetime.now(timezone.utc)
            await TripLifecycleService.release_capacity(db, booking.trip_id, booking.weight, commit=False)
            await db.commit()
        except AppException:
            await db.rollback()
            raise

        await log_event(
            db, AuditAction.BOOKING_CANCELLED, actor=actor, entity_type="booking", entity_id=booking.id,
            organization_id=trip.organization_id if trip else None,
            metadata={"trip_id": booking.trip_id, "weight": booking.weight},
        )
        return BookingResponse.from_booking(booking)
