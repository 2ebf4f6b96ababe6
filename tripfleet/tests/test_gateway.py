"""
HTTP surface tests: authentication order, role checks, query validation,
envelopes and tenant isolation.
"""

import json

from httpx import AsyncClient, ASGITransport

from conftest import auth_headers, trip_payload
from tripfleet.app.main import app
from tripfleet.app.core.jwt import create_access_token
from tripfleet.app.models.enums import UserRole
from tripfleet.app.services.trip_service import TripLifecycleService

TRIPS = "/v1/organizations/trips"
VEHICLES = "/v1/organizations/vehicles"


def _van(**overrides) -> dict:
    body = {
        "type": "van",
        "brand": "Ford",
        "model": "Transit",
        "licensePlate": "M-VN-2024",
        "year": 2022,
        "capacityWeightMin": 100,
        "capacityWeightMax": 1200,
        "capacityVolumeMin": 2,
        "capacityVolumeMax": 12,
        "maxPackages": 10,
    }
    body.update(overrides)
    return body


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"


async def test_missing_token_is_unauthorized(client):
    response = await client.get(TRIPS)

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json() == {
        "success": False,
        "error": {"code": "UNAUTHORIZED", "message": "Authentication required"},
    }


async def test_garbage_token_is_unauthorized(client):
    response = await client.get(TRIPS, headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


async def test_organization_role_without_organization_is_unauthorized(client):
    token = create_access_token({"user_id": 5, "email": "x@test.com", "role": "organization_admin"})

    response = await client.get(TRIPS, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


async def test_customer_cannot_reach_organization_endpoints(client, customer_headers):
    for path in (TRIPS, VEHICLES, "/v1/organizations/drivers", "/v1/organizations/fleet"):
        response = await client.get(path, headers=customer_headers)

        assert response.status_code == 403, path
        assert response.json()["error"]["code"] == "FORBIDDEN"


async def test_driver_reads_but_cannot_write(client, driver_headers):
    listed = await client.get(TRIPS, headers=driver_headers)
    assert listed.status_code == 200

    created = await client.post(TRIPS, json=trip_payload(), headers=driver_headers)
    assert created.status_code == 403


async def test_bad_query_value_is_reported_per_field(client, admin_headers):
    response = await client.get(TRIPS, params={"status": "archived"}, headers=admin_headers)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INVALID_QUERY"
    assert error["details"][0]["field"] == "status"


async def test_authentication_is_checked_before_the_query(client):
    response = await client.get(TRIPS, params={"status": "archived"})

    assert response.status_code == 401


async def test_create_trip_envelope(client, admin_headers):
    response = await client.post(TRIPS, json=trip_payload(totalCapacity=300), headers=admin_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Trip created successfully"
    assert body["data"]["status"] == "planned"
    assert body["data"]["capacity"] == {"total": 300.0, "remaining": 300.0, "booked": 0.0, "utilization": 0}
    assert body["data"]["departure"]["city"] == "Berlin"
    assert "pricePerKg" in body["data"]["price"]


async def test_request_body_errors_use_the_envelope(client, admin_headers):
    payload = trip_payload()
    del payload["departureCity"]

    response = await client.post(TRIPS, json=payload, headers=admin_headers)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert {"field": "departureCity", "message": "Field required"} in error["details"]


async def test_second_page_of_trips(client, admin_headers, make_trip):
    for _ in range(25):
        await make_trip()

    response = await client.get(TRIPS, params={"page": 2, "limit": 10}, headers=admin_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["trips"]) == 10
    assert data["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalItems": 25,
        "itemsPerPage": 10,
        "hasNextPage": True,
        "hasPreviousPage": True,
    }
    assert data["stats"]["totalTrips"] == 25


async def test_scheduled_filter_covers_planned_trips(client, admin_headers, make_trip, org_admin, db_session):
    planned = await make_trip()
    cancelled = await make_trip()
    await TripLifecycleService.cancel_trip(db_session, org_admin, cancelled.id)

    response = await client.get(TRIPS, params={"status": "scheduled"}, headers=admin_headers)

    assert [trip["id"] for trip in response.json()["data"]["trips"]] == [planned.id]


async def test_unknown_trip_is_not_found(client, admin_headers):
    response = await client.get(f"{TRIPS}/4040", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TRIP_NOT_FOUND"


async def test_other_organization_cannot_read_a_trip(client, make_trip, other_organization):
    trip = await make_trip()
    rival = auth_headers(UserRole.ORGANIZATION_ADMIN, other_organization.id, user_id=77)

    response = await client.get(f"{TRIPS}/{trip.id}", headers=rival)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


async def test_list_is_scoped_to_the_callers_organization(client, make_trip, other_organization):
    await make_trip()
    rival = auth_headers(UserRole.ORGANIZATION_ADMIN, other_organization.id, user_id=77)

    response = await client.get(TRIPS, headers=rival)

    assert response.json()["data"]["trips"] == []


async def test_invalid_transition_over_http(client, admin_headers, make_trip):
    trip = await make_trip()

    response = await client.post(f"{TRIPS}/{trip.id}/complete", headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


async def test_cancel_then_book_over_http(client, admin_headers, customer_headers, make_trip):
    trip = await make_trip()

    cancelled = await client.post(f"{TRIPS}/{trip.id}/cancel", json={"reason": "Strike"}, headers=admin_headers)
    assert cancelled.json()["data"]["status"] == "cancelled"

    booking = await client.post("/v1/bookings", json={"tripId": trip.id, "weight": 10}, headers=customer_headers)
    assert booking.status_code == 409
    assert booking.json()["error"]["code"] == "TRIP_CANCELLED"


async def test_bulk_update_lists_each_outcome(client, admin_headers, make_trip):
    trip = await make_trip()

    response = await client.put(
        TRIPS, json={"tripIds": [trip.id, 999], "action": "cancel"}, headers=admin_headers
    )

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["succeeded"] == 1
    assert body["data"]["failed"] == 1
    assert body["data"]["results"][1]["error"]["code"] == "TRIP_NOT_FOUND"
    assert body["message"] == "1 of 2 trips updated"


async def test_bulk_update_unknown_action(client, admin_headers, make_trip):
    trip = await make_trip()

    response = await client.put(TRIPS, json={"tripIds": [trip.id], "action": "teleport"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_ACTION"


async def test_export_uses_delimited_addresses_and_camel_keys(client, admin_headers, make_trip):
    trip = await make_trip()

    response = await client.get(f"{TRIPS}/{trip.id}/export", headers=admin_headers)

    assert response.status_code == 200
    record = response.json()["data"]
    assert record["origin"] == "Alexanderplatz 1, Berlin, Germany"
    assert record["destination"] == "Marszalkowska 10, Warsaw, Poland"
    assert record["organizationId"] == trip.organization_id
    assert record["price"]["pricePerKg"] == 2.0
    assert record["availableCapacity"] == 100.0
    assert record["status"] == "planned"


async def test_exported_trip_can_be_imported(client, admin_headers, make_trip):
    trip = await make_trip()
    exported = await client.get(f"{TRIPS}/{trip.id}/export", headers=admin_headers)

    response = await client.post(f"{TRIPS}/import", json=exported.json()["data"], headers=admin_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Trip imported successfully"
    assert body["data"]["id"] != trip.id
    assert body["data"]["departure"]["city"] == "Berlin"


async def test_driver_cannot_import_over_http(client, driver_headers):
    response = await client.post(f"{TRIPS}/import", json={"origin": "Depot 1, Poznan, Poland"}, headers=driver_headers)

    assert response.status_code == 403


async def test_oversized_van_is_rejected(client, admin_headers):
    response = await client.post(VEHICLES, json=_van(capacityWeightMax=3500), headers=admin_headers)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["message"] == "Weight for VAN must be between 50-3000 kg"
    assert error["details"] == [{"field": "capacity", "message": "Weight for VAN must be between 50-3000 kg"}]


async def test_vehicle_type_travels_in_client_vocabulary(client, admin_headers):
    response = await client.post(VEHICLES, json=_van(), headers=admin_headers)

    assert response.status_code == 201
    assert response.json()["data"]["type"] == "van"


async def test_fleet_unknown_action(client, admin_headers):
    response = await client.post("/v1/organizations/fleet", json={"action": "paint"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_ACTION"


async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "trace-123"})

    assert response.headers["X-Correlation-ID"] == "trace-123"


async def test_infinite_capacity_is_refused_and_listings_keep_working(client, admin_headers):
    # json.dumps writes the Infinity and NaN literals
    for total in (float("inf"), float("nan")):
        response = await client.post(
            TRIPS,
            content=json.dumps(trip_payload(totalCapacity=total)),
            headers={**admin_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_CAPACITY"

    trips = await client.get(TRIPS, headers=admin_headers)
    assert trips.status_code == 200
    assert trips.json()["data"]["trips"] == []

    fleet = await client.get("/v1/organizations/fleet", headers=admin_headers)
    assert fleet.status_code == 200


async def test_unexpected_errors_still_use_the_envelope(admin_headers, mocker):
    mocker.patch.object(TripLifecycleService, "list_trips", side_effect=RuntimeError("boom"))
    transport = ASGITransport(app=app, raise_app_exceptions=False)

    async with AsyncClient(transport=transport, base_url="http://test") as raw_client:
        response = await raw_client.get(TRIPS, headers=admin_headers)

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": {"code": "INTERNAL_SERVER_ERROR", "message": "An internal server error occurred"},
    }
