"""
Fleet overview, report and bulk maintenance tests.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import seed_driver, seed_vehicle
from tripfleet.app.core.exceptions import AppException
from tripfleet.app.core.reliability import vehicle_source_breaker
from tripfleet.app.models.enums import AlertSeverity, AlertType, VehicleStatus
from tripfleet.app.models.fleet_alert import FleetAlert
from tripfleet.app.repositories.fleet_repository import DriverRepository, VehicleRepository
from tripfleet.app.schemas.query import FleetQuery
from tripfleet.app.services.booking_service import BookingService
from tripfleet.app.services.fleet_aggregation import FleetAggregationService
from tripfleet.app.services.trip_service import TripLifecycleService


@pytest.fixture
async def fleet(db_session, organization, customer, make_trip):
    """Two vehicles, two drivers and one booked trip on the first pair."""
    busy_truck = await seed_vehicle(db_session, organization.id, "B-TF-1001", brand="Volvo", model="FH16")
    spare = await seed_vehicle(
        db_session, organization.id, "B-TF-1002", brand="DAF", model="XF", status=VehicleStatus.MAINTENANCE
    )
    earner = await seed_driver(db_session, organization.id, "Marta Kowalska")
    idle = await seed_driver(db_session, organization.id, "Tomas Berg")

    trip = await make_trip(driverId=earner.id, vehicleId=busy_truck.id)
    # 13.25 kg at 2/kg over a 20 minimum: 50.00 net, 59.50 with tax
    await BookingService.create_booking(db_session, customer, trip.id, 13.25)

    return {
        "busy_truck": busy_truck.id,
        "spare": spare.id,
        "earner": earner.id,
        "idle": idle.id,
        "trip": trip.id,
    }


async def test_overview_counts_and_revenue(db_session, org_admin, fleet):
    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())

    overview = result.overview
    assert overview.total_vehicles == 2
    assert overview.active_vehicles == 1
    assert overview.maintenance_vehicles == 1
    assert overview.total_drivers == 2
    assert overview.total_trips == 1
    assert overview.total_revenue == 59.5
    assert result.data_status == "complete"
    assert result.unavailable_sources == []


async def test_overview_names_the_organization_in_client_vocabulary(db_session, org_admin, organization, fleet):
    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())

    assert result.organization.id == organization.id
    assert result.organization.legal_name == "Acme Freight"
    # Stored as FREIGHT_FORWARDER
    assert result.organization.type == "freight_forward"


async def test_vehicle_figures_come_from_its_trips(db_session, org_admin, fleet):
    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())

    by_id = {vehicle.id: vehicle for vehicle in result.vehicles}
    assert by_id[fleet["busy_truck"]].total_trips == 1
    assert by_id[fleet["busy_truck"]].revenue == 59.5
    assert by_id[fleet["busy_truck"]].utilization == 13
    assert by_id[fleet["spare"]].total_trips == 0
    assert by_id[fleet["spare"]].revenue == 0


async def test_analytics_use_client_vocabulary(db_session, org_admin, fleet):
    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())

    analytics = result.analytics
    assert analytics.trips_by_status == {"scheduled": 1}
    assert analytics.vehicles_by_type == {"truck": 2}
    assert analytics.revenue_by_vehicle_type == {"truck": 59.5}
    assert analytics.top_drivers[0].id == fleet["earner"]


async def test_sorting_by_revenue_descending(db_session, org_admin, fleet):
    query = FleetQuery(sort_by="revenue", sort_order="desc")

    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, query)

    assert result.vehicles[0].id == fleet["busy_truck"]
    assert result.drivers[0].id == fleet["earner"]


async def test_sorting_by_name(db_session, org_admin, fleet):
    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery(sort_by="name"))

    assert [vehicle.brand for vehicle in result.vehicles] == ["DAF", "Volvo"]
    assert [driver.name for driver in result.drivers] == ["Marta Kowalska", "Tomas Berg"]


async def test_status_filter_applies_per_collection(db_session, org_admin, fleet):
    query = FleetQuery(vehicle_status="maintenance")

    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, query)

    assert [vehicle.id for vehicle in result.vehicles] == [fleet["spare"]]
    assert len(result.drivers) == 2
    assert result.filters["applied"]["vehicleStatus"] == "maintenance"


async def test_each_collection_paginates_independently(db_session, org_admin, fleet):
    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery(limit=1, page=2))

    assert len(result.vehicles) == 1
    assert result.pagination.vehicles.total_items == 2
    assert result.pagination.vehicles.has_previous_page is True
    assert result.pagination.drivers.total_pages == 2


async def test_only_unresolved_alerts_are_listed(db_session, organization, org_admin):
    db_session.add_all([
        FleetAlert(
            organization_id=organization.id, alert_type=AlertType.MAINTENANCE_DUE,
            severity=AlertSeverity.WARNING, title="Service due", message="Oil change overdue",
            action_required=True,
        ),
        FleetAlert(
            organization_id=organization.id, alert_type=AlertType.DOCUMENT_EXPIRY,
            title="Insurance renewed", message="Done", resolved_at=datetime.now(timezone.utc),
        ),
    ])
    await db_session.commit()

    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())

    assert [alert.title for alert in result.alerts] == ["Service due"]
    assert result.alerts[0].type == "maintenance_due"


async def test_unreadable_vehicle_source_degrades_to_partial(db_session, org_admin, fleet, mocker):
    mocker.patch.object(VehicleRepository, "list_for_organization", side_effect=SQLAlchemyError("down"))

    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())

    assert result.data_status == "partial"
    assert result.unavailable_sources == ["vehicles"]
    assert result.vehicles == []
    assert len(result.drivers) == 2
    assert result.overview.total_vehicles == 0
    assert result.overview.total_trips == 1


async def test_unreadable_driver_source_degrades_to_partial(db_session, org_admin, fleet, mocker):
    mocker.patch.object(DriverRepository, "list_for_organization", side_effect=SQLAlchemyError("down"))

    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())

    assert result.unavailable_sources == ["drivers"]
    assert len(result.vehicles) == 2


async def test_open_circuit_keeps_source_unavailable(db_session, org_admin, fleet, mocker):
    mocker.patch.object(
        VehicleRepository, "list_for_organization", side_effect=SQLAlchemyError("down")
    )
    for _ in range(vehicle_source_breaker.failure_threshold):
        await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())
    assert vehicle_source_breaker.state == "OPEN"

    mocker.stopall()
    result = await FleetAggregationService.get_fleet_overview(db_session, org_admin, FleetQuery())

    assert result.unavailable_sources == ["vehicles"]


async def test_report_summarises_the_organization(db_session, org_admin, fleet):
    report = await FleetAggregationService.generate_fleet_report(db_session, org_admin)

    assert report.organization_id == org_admin.organization_id
    assert report.overview.total_vehicles == 2
    assert report.analytics.revenue_by_vehicle_type == {"truck": 59.5}
    assert report.data_status == "complete"


async def test_bulk_maintenance_reports_each_vehicle(db_session, org_admin, fleet):
    await TripLifecycleService.start_trip(db_session, org_admin, fleet["trip"])

    results = await FleetAggregationService.schedule_bulk_maintenance(
        db_session, org_admin, [fleet["spare"], fleet["busy_truck"], 9999], notes="Winter tyres"
    )

    assert [r.success for r in results] == [True, False, False]
    assert "in-progress" in results[1].error
    assert results[2].error == "Vehicle with ID 9999 not found"


async def test_bulk_maintenance_needs_vehicle_ids(db_session, org_admin):
    with pytest.raises(AppException) as exc:
        await FleetAggregationService.schedule_bulk_maintenance(db_session, org_admin, [])

    assert exc.value.error_code == "VALIDATION_ERROR"
