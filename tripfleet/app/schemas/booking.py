"""
Booking schemas.
"""

from datetime import datetime
from typing import Optional
from pydantic import Field
from tripfleet.app.schemas.common import CamelModel


class BookingCreate(CamelModel):
    trip_id: int
    weight: float = Field(..., gt=0, allow_inf_nan=False, description="Parcel weight in kg")


class PriceBreakdown(CamelModel):
    base: float
    weight_cost: float
    insurance: float
    tax: float
    total: float


class BookingResponse(CamelModel):
    id: int
    trip_id: int
    customer_id: int
    weight: float
    price: float
    currency: str
    status: str
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            trip_id=booking.trip_id,
            customer_id=booking.customer_id,
            weight=booking.weight,
            price=booking.price,
            currency=booking.currency,
            status=booking.status.value,
            created_at=booking.created_at,
            cancelled_at=booking.cancelled_at,
        )


class BookingCreateResponse(CamelModel):
    booking: BookingResponse
    price: PriceBreakdown
    remaining_capacity: float
