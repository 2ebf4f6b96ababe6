"""
Fleet overview schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import Field
from tripfleet.app.schemas.common import CamelModel, PaginationMeta
from tripfleet.app.schemas.driver import DriverResponse
from tripfleet.app.schemas.fleet_vehicle import FleetVehicleResponse


class FleetOverviewStats(CamelModel):
    """Dashboard counters for an organization."""
    total_vehicles: int = 0
    active_vehicles: int = 0
    maintenance_vehicles: int = 0
    inactive_vehicles: int = 0
    total_drivers: int = 0
    active_drivers: int = 0
    drivers_on_trip: int = 0
    inactive_drivers: int = 0
    total_trips: int = 0
    active_trips: int = 0
    completed_trips: int = 0
    total_revenue: float = 0.0
    average_utilization: float = 0.0


class FleetAlertResponse(CamelModel):
    id: int
    type: str
    severity: str
    title: str
    message: str
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    action_required: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_alert(cls, alert) -> "FleetAlertResponse":
        return cls(
            id=alert.id,
            type=alert.alert_type.value,
            severity=alert.severity.value,
            title=alert.title,
            message=alert.message,
            vehicle_id=alert.vehicle_id,
            driver_id=alert.driver_id,
            action_required=alert.action_required,
            created_at=alert.created_at,
        )


class FleetAnalytics(CamelModel):
    trips_by_status: Dict[str, int] = {}
    revenue_by_vehicle_type: Dict[str, float] = {}
    vehicles_by_type: Dict[str, int] = {}
    top_drivers: List[DriverResponse] = []


class FleetPagination(CamelModel):
    vehicles: PaginationMeta
    drivers: PaginationMeta


class OrganizationSummary(CamelModel):
    """The owning organization, type in the client vocabulary."""
    id: int
    legal_name: str
    type: str


class FleetOverviewResponse(CamelModel):
    """
    Fleet overview.

    ``data_status`` is ``partial`` when a source could not be read; the
    missing sources are listed and their collections are empty.
    """
    organization: Optional[OrganizationSummary] = None
    overview: FleetOverviewStats
    vehicles: List[FleetVehicleResponse]
    drivers: List[DriverResponse]
    alerts: List[FleetAlertResponse]
    analytics: FleetAnalytics
    pagination: FleetPagination
    filters: Dict[str, Any]
    data_status: Literal["complete", "partial"] = "complete"
    unavailable_sources: List[str] = []


class FleetActionRequest(CamelModel):
    """Body of POST /organizations/fleet."""
    action: str
    vehicle_ids: Optional[List[int]] = None
    scheduled_for: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)


class MaintenanceResult(CamelModel):
    vehicle_id: int
    success: bool
    error: Optional[str] = None


class FleetReport(CamelModel):
    generated_at: datetime
    organization_id: int
    overview: FleetOverviewStats
    analytics: FleetAnalytics
    data_status: Literal["complete", "partial"] = "complete"
    unavailable_sources: List[str] = []
