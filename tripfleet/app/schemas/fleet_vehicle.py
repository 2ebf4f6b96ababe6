"""
Fleet Vehicle schemas.

Defines request and response models for vehicle management. Vehicle types
travel in the client vocabulary (``van``) and are stored as ``VAN``.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import Field, field_validator
from tripfleet.app.domain.mapping import VEHICLE_TYPES
from tripfleet.app.schemas.common import CamelModel, PaginationMeta

VehicleTypeName = Literal["truck", "van", "motorcycle", "car", "bus", "other"]
VehicleStatusName = Literal["active", "maintenance", "inactive"]


def _check_year(value: Optional[int]) -> Optional[int]:
    if value is not None and not (1900 <= value <= datetime.now().year + 1):
        raise ValueError(f"Year must be between 1900 and {datetime.now().year + 1}")
    return value


class FleetVehicleCreate(CamelModel):
    """Schema for registering a new fleet vehicle."""
    type: VehicleTypeName
    brand: str = Field(..., min_length=1, max_length=100, description="Brand is required")
    model: str = Field(..., min_length=1, max_length=100, description="Model is required")
    license_plate: str = Field(..., min_length=1, max_length=50, description="License plate is required")
    year: int

    # Capacity constraints
    capacity_weight_min: float = Field(..., ge=0, allow_inf_nan=False, description="Minimum payload in kg")
    capacity_weight_max: float = Field(..., ge=0, allow_inf_nan=False, description="Maximum payload in kg")
    capacity_volume_min: float = Field(..., ge=0, allow_inf_nan=False, description="Minimum volume in m³")
    capacity_volume_max: float = Field(..., ge=0, allow_inf_nan=False, description="Maximum volume in m³")
    max_packages: Optional[int] = Field(None, ge=1, description="Defaults to an estimate from max weight")

    status: VehicleStatusName = "active"

    @field_validator("year")
    @classmethod
    def valid_year(cls, value):
        return _check_year(value)


class FleetVehicleUpdate(CamelModel):
    """Schema for updating an existing fleet vehicle."""
    type: Optional[VehicleTypeName] = None
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    license_plate: Optional[str] = Field(None, min_length=1, max_length=50)
    year: Optional[int] = None
    capacity_weight_min: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    capacity_weight_max: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    capacity_volume_min: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    capacity_volume_max: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    max_packages: Optional[int] = Field(None, ge=1)
    status: Optional[VehicleStatusName] = None

    @field_validator("year")
    @classmethod
    def valid_year(cls, value):
        return _check_year(value)


class MaintenanceRequest(CamelModel):
    scheduled_for: datetime
    notes: Optional[str] = Field(None, max_length=1000)


class FleetVehicleResponse(CamelModel):
    """Schema for fleet vehicle response."""
    id: int
    organization_id: int
    type: str
    brand: str
    model: str
    license_plate: str
    year: int
    capacity_weight_min: float
    capacity_weight_max: float
    capacity_volume_min: float
    capacity_volume_max: float
    max_packages: int
    status: str
    current_driver_id: Optional[int] = None
    last_maintenance_at: Optional[datetime] = None
    next_maintenance_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Folded from the vehicle's trips
    total_trips: int = 0
    utilization: int = 0
    revenue: float = 0.0

    @classmethod
    def from_vehicle(cls, vehicle, total_trips: int = 0, utilization: int = 0, revenue: float = 0.0):
        return cls(
            id=vehicle.id,
            organization_id=vehicle.organization_id,
            type=VEHICLE_TYPES.to_internal(vehicle.vehicle_type.value),
            brand=vehicle.brand,
            model=vehicle.model,
            license_plate=vehicle.license_plate,
            year=vehicle.year,
            capacity_weight_min=vehicle.capacity_weight_min,
            capacity_weight_max=vehicle.capacity_weight_max,
            capacity_volume_min=vehicle.capacity_volume_min,
            capacity_volume_max=vehicle.capacity_volume_max,
            max_packages=vehicle.max_packages,
            status=vehicle.status.value,
            current_driver_id=vehicle.current_driver_id,
            last_maintenance_at=vehicle.last_maintenance_at,
            next_maintenance_at=vehicle.next_maintenance_at,
            created_at=vehicle.created_at,
            updated_at=vehicle.updated_at,
            total_trips=total_trips,
            utilization=utilization,
            revenue=revenue,
        )


class VehicleStats(CamelModel):
    total_vehicles: int
    active_vehicles: int
    maintenance_vehicles: int
    inactive_vehicles: int
    total_capacity_weight: float
    average_utilization: float


class VehicleListResponse(CamelModel):
    vehicles: List[FleetVehicleResponse]
    pagination: PaginationMeta
    stats: VehicleStats
    filters: Dict[str, Any]
