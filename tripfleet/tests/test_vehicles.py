"""
Vehicle and driver management tests.
"""

import json

import pytest

from conftest import auth_headers, seed_vehicle
from tripfleet.app.core.exceptions import AppException
from tripfleet.app.models.enums import UserRole, VehicleStatus, VehicleType
from tripfleet.app.repositories.fleet_repository import VehicleRepository
from tripfleet.app.repositories.trip_repository import TripRepository
from tripfleet.app.schemas.fleet_vehicle import FleetVehicleUpdate
from tripfleet.app.services.trip_service import TripLifecycleService
from tripfleet.app.services.vehicle_service import VehicleService

VEHICLES = "/v1/organizations/vehicles"
DRIVERS = "/v1/organizations/drivers"


def _truck(**overrides) -> dict:
    body = {
        "type": "truck",
        "brand": "Scania",
        "model": "R450",
        "licensePlate": "HH-TR-1",
        "year": 2020,
        "capacityWeightMin": 1000,
        "capacityWeightMax": 12000,
        "capacityVolumeMin": 20,
        "capacityVolumeMax": 90,
    }
    body.update(overrides)
    return body


# ------------------------------------------------------------------ create

async def test_create_vehicle_estimates_package_count(client, admin_headers):
    response = await client.post(VEHICLES, json=_truck(), headers=admin_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["type"] == "truck"
    assert data["status"] == "active"
    # 12000 kg / 20 kg per parcel, clamped to the truck ceiling
    assert data["maxPackages"] == 100


async def test_duplicate_plate_is_rejected(client, admin_headers):
    await client.post(VEHICLES, json=_truck(), headers=admin_headers)

    response = await client.post(VEHICLES, json=_truck(brand="MAN"), headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "License plate already registered"


async def test_minimum_above_maximum_is_rejected(client, admin_headers):
    response = await client.post(
        VEHICLES, json=_truck(capacityWeightMin=9000, capacityWeightMax=8000), headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Minimum weight capacity cannot exceed maximum weight capacity"


async def test_other_type_is_not_supported(client, admin_headers):
    response = await client.post(VEHICLES, json=_truck(type="other", maxPackages=10), headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Vehicle type 'OTHER' is not supported"


async def test_minimum_weight_must_fit_the_type(client, admin_headers):
    van = _truck(type="van", licensePlate="HH-VN-1", capacityWeightMin=1, capacityWeightMax=2000,
                 capacityVolumeMin=2, capacityVolumeMax=12, maxPackages=10)

    response = await client.post(VEHICLES, json=van, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Weight for VAN must be between 50-3000 kg"


async def test_non_finite_capacity_is_a_body_error(client, admin_headers):
    body = json.dumps(_truck(capacityWeightMax=float("nan")))

    response = await client.post(
        VEHICLES, content=body, headers={**admin_headers, "Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "capacityWeightMax"


async def test_unknown_type_is_a_body_error(client, admin_headers):
    response = await client.post(VEHICLES, json=_truck(type="hovercraft"), headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "type"


# -------------------------------------------------------------------- read

async def test_list_vehicles_with_stats_and_filters(client, admin_headers, db_session, organization):
    await seed_vehicle(db_session, organization.id, "B-TF-1", brand="Volvo")
    await seed_vehicle(db_session, organization.id, "B-TF-2", brand="MAN", status=VehicleStatus.MAINTENANCE)
    await seed_vehicle(db_session, organization.id, "B-TF-3", brand="Renault", model="Master",
                       vehicle_type=VehicleType.VAN, capacity_weight_min=100, capacity_weight_max=2000, max_packages=10)

    everything = (await client.get(VEHICLES, params={"sortBy": "brand"}, headers=admin_headers)).json()["data"]
    assert [v["brand"] for v in everything["vehicles"]] == ["MAN", "Renault", "Volvo"]
    assert everything["stats"]["totalVehicles"] == 3
    assert everything["stats"]["maintenanceVehicles"] == 1
    assert everything["stats"]["totalCapacityWeight"] == 22000

    vans = (await client.get(VEHICLES, params={"type": "van"}, headers=admin_headers)).json()["data"]
    assert [v["licensePlate"] for v in vans["vehicles"]] == ["B-TF-3"]
    assert vans["stats"]["totalVehicles"] == 3

    found = (await client.get(VEHICLES, params={"search": "volv"}, headers=admin_headers)).json()["data"]
    assert [v["licensePlate"] for v in found["vehicles"]] == ["B-TF-1"]


async def test_vehicle_figures_include_its_trips(client, admin_headers, make_trip, vehicle):
    await make_trip(vehicleId=vehicle.id)

    response = await client.get(f"{VEHICLES}/{vehicle.id}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["totalTrips"] == 1


async def test_unknown_vehicle_is_not_found(client, admin_headers):
    response = await client.get(f"{VEHICLES}/777", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "VEHICLE_NOT_FOUND"


async def test_vehicle_of_another_organization_is_forbidden(client, vehicle, other_organization):
    rival = auth_headers(UserRole.ORGANIZATION_ADMIN, other_organization.id, user_id=77)

    response = await client.get(f"{VEHICLES}/{vehicle.id}", headers=rival)

    assert response.status_code == 403


# ------------------------------------------------------------------ update

async def test_update_revalidates_merged_capacity(db_session, org_admin, vehicle):
    with pytest.raises(AppException) as exc:
        await VehicleService.update_vehicle(
            db_session, org_admin, vehicle.id, FleetVehicleUpdate(capacity_weight_max=20000)
        )

    assert exc.value.error_code == "VALIDATION_ERROR"
    assert exc.value.message == "Weight for TRUCK must be between 500-15000 kg"


async def test_update_checks_the_minimum_weight(db_session, org_admin, vehicle):
    with pytest.raises(AppException) as exc:
        await VehicleService.update_vehicle(
            db_session, org_admin, vehicle.id, FleetVehicleUpdate(capacity_weight_min=100)
        )

    assert exc.value.message == "Weight for TRUCK must be between 500-15000 kg"


async def test_changing_type_checks_the_new_bounds(db_session, org_admin, vehicle):
    # 10000 kg is far above any van
    with pytest.raises(AppException) as exc:
        await VehicleService.update_vehicle(db_session, org_admin, vehicle.id, FleetVehicleUpdate(type="van"))

    assert exc.value.message == "Weight for VAN must be between 50-3000 kg"


async def test_update_over_http(client, admin_headers, vehicle):
    response = await client.put(
        f"{VEHICLES}/{vehicle.id}", json={"brand": "Volvo Trucks", "status": "inactive"}, headers=admin_headers
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["brand"] == "Volvo Trucks"
    assert data["status"] == "inactive"
    assert data["type"] == "truck"


async def test_update_to_a_taken_plate(db_session, org_admin, organization, vehicle):
    await seed_vehicle(db_session, organization.id, "B-TF-9999")

    with pytest.raises(AppException) as exc:
        await VehicleService.update_vehicle(
            db_session, org_admin, vehicle.id, FleetVehicleUpdate(license_plate="B-TF-9999")
        )

    assert exc.value.message == "License plate already registered"


# ------------------------------------------------------------------ delete

async def test_vehicle_on_an_open_trip_cannot_be_deleted(client, admin_headers, make_trip, vehicle):
    await make_trip(vehicleId=vehicle.id)

    response = await client.delete(f"{VEHICLES}/{vehicle.id}", headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "VEHICLE_IN_USE"


async def test_delete_keeps_finished_trips(client, admin_headers, db_session, org_admin, make_trip, vehicle, driver):
    trip = await make_trip(vehicleId=vehicle.id, driverId=driver.id)
    await TripLifecycleService.start_trip(db_session, org_admin, trip.id)
    await TripLifecycleService.complete_trip(db_session, org_admin, trip.id)
    vehicle_id = vehicle.id

    response = await client.delete(f"{VEHICLES}/{vehicle_id}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Vehicle deleted successfully"}
    assert await VehicleRepository.get(db_session, vehicle_id, refresh=True) is None
    assert (await TripRepository.get(db_session, trip.id, refresh=True)).vehicle_id is None


# ------------------------------------------------------------- maintenance

async def test_schedule_maintenance_over_http(client, admin_headers, vehicle):
    response = await client.post(
        f"{VEHICLES}/{vehicle.id}/maintenance",
        json={"scheduledFor": "2026-12-01T08:00:00+00:00", "notes": "Brake inspection"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "maintenance"
    assert data["nextMaintenanceAt"].startswith("2026-12-01T08:00:00")


async def test_vehicle_on_the_road_cannot_go_to_maintenance(db_session, org_admin, make_trip, vehicle, driver):
    trip = await make_trip(vehicleId=vehicle.id, driverId=driver.id)
    await TripLifecycleService.start_trip(db_session, org_admin, trip.id)

    with pytest.raises(AppException) as exc:
        await VehicleService.schedule_maintenance(db_session, org_admin, vehicle.id)

    assert exc.value.error_code == "VEHICLE_IN_USE"


# ----------------------------------------------------------------- drivers

async def test_create_and_list_drivers(client, admin_headers):
    for name in ("Ola Svensson", "Ana Lopez"):
        created = await client.post(DRIVERS, json={"name": name, "email": f"{name.split()[0].lower()}@acme.test"},
                                    headers=admin_headers)
        assert created.status_code == 201
        assert created.json()["data"]["status"] == "active"

    listed = await client.get(DRIVERS, params={"sortBy": "name"}, headers=admin_headers)

    data = listed.json()["data"]
    assert [d["name"] for d in data["drivers"]] == ["Ana Lopez", "Ola Svensson"]
    assert data["pagination"]["totalItems"] == 2


async def test_driver_search(client, admin_headers, driver):
    response = await client.get(DRIVERS, params={"search": "novak"}, headers=admin_headers)

    assert [d["id"] for d in response.json()["data"]["drivers"]] == [driver.id]
