"""
Driver schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import Field
from tripfleet.app.schemas.common import CamelModel, PaginationMeta


class DriverCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    user_id: Optional[int] = None


class DriverResponse(CamelModel):
    id: int
    organization_id: int
    user_id: Optional[int] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str
    current_vehicle_id: Optional[int] = None
    current_trip_id: Optional[int] = None
    completed_trips: int
    rating: float
    on_time_percentage: float
    created_at: Optional[datetime] = None

    # Folded from the driver's trips
    revenue: float = 0.0

    @classmethod
    def from_driver(cls, driver, revenue: float = 0.0) -> "DriverResponse":
        return cls(
            id=driver.id,
            organization_id=driver.organization_id,
            user_id=driver.user_id,
            name=driver.name,
            email=driver.email,
            phone=driver.phone,
            status=driver.status.value,
            current_vehicle_id=driver.current_vehicle_id,
            current_trip_id=driver.current_trip_id,
            completed_trips=driver.completed_trips,
            rating=driver.rating,
            on_time_percentage=driver.on_time_percentage,
            created_at=driver.created_at,
            revenue=revenue,
        )


class DriverListResponse(CamelModel):
    drivers: List[DriverResponse]
    pagination: PaginationMeta
    filters: Dict[str, Any]
