"""
Query contracts for list endpoints.

Query strings arrive as text; pydantic coerces numbers and rejects values
outside the allowed sets.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import Field, field_validator
from tripfleet.app.core.config import settings
from tripfleet.app.schemas.common import CamelModel


SortOrder = Literal["asc", "desc"]


class PageQuery(CamelModel):
    page: int = Field(1, ge=1)
    limit: int = Field(settings.default_page_size, ge=1, le=settings.max_page_size)
    sort_order: SortOrder = "asc"


class TripListQuery(PageQuery):
    status: Optional[Literal["scheduled", "active", "completed", "cancelled", "delayed"]] = None
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    departure_city: Optional[str] = None
    destination_city: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: Optional[Literal["departureTime", "revenue", "status", "createdAt"]] = None


class VehicleListQuery(PageQuery):
    status: Optional[Literal["active", "maintenance", "inactive"]] = None
    type: Optional[Literal["truck", "van", "motorcycle", "car", "bus", "other"]] = None
    search: Optional[str] = None
    sort_by: Optional[Literal["brand", "model", "status", "createdAt", "utilization"]] = None


class DriverListQuery(PageQuery):
    status: Optional[Literal["active", "inactive", "on_trip"]] = None
    search: Optional[str] = None
    sort_by: Optional[Literal["name", "status", "completedTrips", "rating"]] = None


class FleetQuery(PageQuery):
    vehicle_status: Optional[Literal["active", "maintenance", "inactive"]] = None
    driver_status: Optional[Literal["active", "inactive", "on_trip"]] = None
    sort_by: Optional[Literal["name", "status", "utilization", "revenue"]] = None


class PriceEstimateQuery(CamelModel):
    weight: float = Field(..., gt=0)

    @field_validator("weight")
    @classmethod
    def finite_weight(cls, value: float) -> float:
        if value != value or value in (float("inf"), float("-inf")):
            raise ValueError("Weight must be a finite number")
        return value
