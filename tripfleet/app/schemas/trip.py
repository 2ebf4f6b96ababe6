"""
Trip schemas.

Request bodies for trip creation, updates and lifecycle actions, and the
structured trip view returned by every trip endpoint.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import Field
from tripfleet.app.domain.mapping import TRIP_STATUSES
from tripfleet.app.domain import pricing
from tripfleet.app.schemas.common import CamelModel, PaginationMeta


class AddressSchema(CamelModel):
    address: str
    city: str
    country: str


class TripStopCreate(CamelModel):
    """Schema for adding a stop to a trip."""
    sequence: int = Field(..., ge=1, description="Position along the trip, strictly increasing")
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    estimated_arrival: Optional[datetime] = None
    stop_type: Literal["pickup", "dropoff", "both"] = "both"


class TripStopStatusUpdate(CamelModel):
    status: Literal["pending", "completed", "skipped"]


class TripStopResponse(CamelModel):
    """Schema for trip stop response."""
    id: int
    trip_id: int
    sequence: int
    address: str
    city: str
    country: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    estimated_arrival: Optional[datetime] = None
    stop_type: str
    status: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_stop(cls, stop) -> "TripStopResponse":
        return cls(
            id=stop.id,
            trip_id=stop.trip_id,
            sequence=stop.sequence,
            address=stop.address,
            city=stop.city,
            country=stop.country,
            latitude=stop.latitude,
            longitude=stop.longitude,
            estimated_arrival=stop.estimated_arrival,
            stop_type=stop.stop_type.value,
            status=stop.status.value,
            created_at=stop.created_at,
            completed_at=stop.completed_at,
        )


class TripCreate(CamelModel):
    """
    Schema for creating a trip.

    Date ordering and the minimum capacity are checked by the lifecycle
    service so they surface as INVALID_DATES / INVALID_CAPACITY.
    """
    departure_country: str = Field(..., min_length=1, description="Departure country is required")
    departure_city: str = Field(..., min_length=1, description="Departure city is required")
    departure_address: str = Field(..., min_length=5, description="Departure address is required")
    destination_country: str = Field(..., min_length=1)
    destination_city: str = Field(..., min_length=1)
    destination_address: str = Field(..., min_length=5)
    departure_time: datetime
    arrival_time: datetime
    base_price: float = Field(..., ge=0, allow_inf_nan=False)
    price_per_kg: float = Field(..., ge=0, allow_inf_nan=False)
    minimum_price: float = Field(..., ge=0, allow_inf_nan=False)
    weight_threshold: float = Field(0.0, ge=0, allow_inf_nan=False)
    currency: str = Field("EUR", min_length=3, max_length=3)
    total_capacity: float
    notes: Optional[str] = None
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None


class TripUpdate(CamelModel):
    """Partial trip update. Status changes go through the action endpoints."""
    departure_country: Optional[str] = Field(None, min_length=1)
    departure_city: Optional[str] = Field(None, min_length=1)
    departure_address: Optional[str] = Field(None, min_length=5)
    destination_country: Optional[str] = Field(None, min_length=1)
    destination_city: Optional[str] = Field(None, min_length=1)
    destination_address: Optional[str] = Field(None, min_length=5)
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    base_price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    price_per_kg: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    minimum_price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    weight_threshold: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    total_capacity: Optional[float] = None
    notes: Optional[str] = None


class AssignDriverRequest(CamelModel):
    driver_id: int


class AssignVehicleRequest(CamelModel):
    vehicle_id: int


class TripDelayRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)
    new_departure_time: Optional[datetime] = None
    new_arrival_time: Optional[datetime] = None


class TripCancelRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)


class BulkTripUpdate(CamelModel):
    """Body of PUT /organizations/trips."""
    trip_ids: List[int] = Field(..., min_length=1)
    action: str
    data: Optional[Dict[str, Any]] = None


class BulkItemError(CamelModel):
    code: str
    message: str


class BulkItemResult(CamelModel):
    id: int
    success: bool
    status: Optional[str] = None
    error: Optional[BulkItemError] = None


class TripPrice(CamelModel):
    base_price: float
    price_per_kg: float
    minimum_price: float
    weight_threshold: float
    currency: str


class TripCapacity(CamelModel):
    total: float
    remaining: float
    booked: float
    utilization: int


class TripRevenue(CamelModel):
    current: float
    potential: float


class TripResponse(CamelModel):
    """Schema for trip response. ``status`` is in the client vocabulary."""
    id: int
    organization_id: int
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    departure: AddressSchema
    destination: AddressSchema
    departure_time: datetime
    arrival_time: datetime
    price: TripPrice
    capacity: TripCapacity
    revenue: TripRevenue
    status: str
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    stops: List[TripStopResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_trip(cls, trip, stops=None, booked_revenue: float = 0.0) -> "TripResponse":
        return cls(
            id=trip.id,
            organization_id=trip.organization_id,
            driver_id=trip.driver_id,
            vehicle_id=trip.vehicle_id,
            departure=AddressSchema(
                address=trip.departure_address, city=trip.departure_city, country=trip.departure_country
            ),
            destination=AddressSchema(
                address=trip.destination_address, city=trip.destination_city, country=trip.destination_country
            ),
            departure_time=trip.departure_time,
            arrival_time=trip.arrival_time,
            price=TripPrice(
                base_price=trip.base_price,
                price_per_kg=trip.price_per_kg,
                minimum_price=trip.minimum_price,
                weight_threshold=trip.weight_threshold,
                currency=trip.currency,
            ),
            capacity=TripCapacity(
                total=trip.total_capacity,
                remaining=trip.remaining_capacity,
                booked=trip.total_capacity - trip.remaining_capacity,
                utilization=pricing.capacity_utilization(trip.total_capacity, trip.remaining_capacity),
            ),
            revenue=TripRevenue(current=booked_revenue, potential=pricing.potential_revenue(trip)),
            status=TRIP_STATUSES.to_internal(trip.status.value),
            notes=trip.notes,
            cancellation_reason=trip.cancellation_reason,
            stops=[TripStopResponse.from_stop(stop) for stop in (stops or [])],
            created_at=trip.created_at,
            updated_at=trip.updated_at,
            started_at=trip.started_at,
            completed_at=trip.completed_at,
            cancelled_at=trip.cancelled_at,
        )


class TripStats(CamelModel):
    total_trips: int
    scheduled_trips: int
    active_trips: int
    completed_trips: int
    cancelled_trips: int
    delayed_trips: int
    total_revenue: float
    total_capacity: float
    average_utilization: float


class TripListResponse(CamelModel):
    """Schema for paginated trip list."""
    trips: List[TripResponse]
    pagination: PaginationMeta
    stats: TripStats
    filters: Dict[str, Any]
