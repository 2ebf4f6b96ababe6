"""
Failure Injection Tests.

Validates resilience against store failures: circuit breaking and the
translation of collaborator errors into envelope errors.
"""

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from conftest import trip_payload
from tripfleet.app.core.exceptions import AppException, ResourceNotFoundError, handle_collaborator_errors
from tripfleet.app.core.reliability import CircuitBreaker, CircuitOpenError
from tripfleet.app.services.trip_service import TripLifecycleService


async def _boom():
    raise ValueError("Boom")


async def _ok():
    return "ok"


async def _trip_failures(cb: CircuitBreaker, count: int):
    for _ in range(count):
        with pytest.raises(ValueError):
            await cb.call(_boom)


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker("test", failure_threshold=2, reset_timeout=60)

    await _trip_failures(cb, 2)

    assert cb.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        await cb.call(_ok)


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    cb = CircuitBreaker("test", failure_threshold=2, reset_timeout=60)

    await _trip_failures(cb, 1)
    assert await cb.call(_ok) == "ok"
    await _trip_failures(cb, 1)

    assert cb.state == "CLOSED"


@pytest.mark.asyncio
async def test_half_open_trial_success_closes_circuit():
    cb = CircuitBreaker("test", failure_threshold=1, reset_timeout=30)
    await _trip_failures(cb, 1)

    # Pretend the reset timeout has elapsed
    cb.last_failure_time -= 31

    assert await cb.call(_ok) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_half_open_trial_failure_reopens_circuit():
    cb = CircuitBreaker("test", failure_threshold=3, reset_timeout=30)
    await _trip_failures(cb, 3)
    cb.last_failure_time -= 31

    await _trip_failures(cb, 1)

    assert cb.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        await cb.call(_ok)


@pytest.mark.asyncio
async def test_store_failure_becomes_failure_code():
    @handle_collaborator_errors("FETCH_FAILED")
    async def read():
        raise SQLAlchemyError("relation does not exist")

    with pytest.raises(AppException) as exc:
        await read()

    assert exc.value.error_code == "FETCH_FAILED"
    assert exc.value.status_code == 500
    assert exc.value.message == "Failed to fetch data"
    assert exc.value.details == {"reason": "relation does not exist"}


@pytest.mark.asyncio
async def test_connection_failure_becomes_network_error():
    @handle_collaborator_errors("CREATION_FAILED")
    async def write():
        raise OperationalError("INSERT INTO trips", {}, ConnectionRefusedError("connection refused"))

    with pytest.raises(AppException) as exc:
        await write()

    assert exc.value.error_code == "NETWORK_ERROR"
    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_open_circuit_becomes_network_error():
    @handle_collaborator_errors()
    async def read():
        raise CircuitOpenError("Circuit 'vehicles' is OPEN")

    with pytest.raises(AppException) as exc:
        await read()

    assert exc.value.error_code == "NETWORK_ERROR"


@pytest.mark.asyncio
async def test_domain_errors_pass_through():
    @handle_collaborator_errors()
    async def read():
        raise ResourceNotFoundError("Trip", 3)

    with pytest.raises(AppException) as exc:
        await read()

    assert exc.value.error_code == "TRIP_NOT_FOUND"


@pytest.mark.asyncio
async def test_list_endpoint_reports_fetch_failed(client, admin_headers, mocker):
    mocker.patch.object(TripLifecycleService, "list_trips", side_effect=SQLAlchemyError("disk I/O error"))

    response = await client.get("/v1/organizations/trips", headers=admin_headers)

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["error"]["code"] == "FETCH_FAILED"


@pytest.mark.asyncio
async def test_create_endpoint_reports_network_error(client, admin_headers, mocker):
    mocker.patch.object(
        TripLifecycleService, "create_trip",
        side_effect=OperationalError("INSERT INTO trips", {}, ConnectionResetError("reset by peer")),
    )

    response = await client.post("/v1/organizations/trips", json=trip_payload(), headers=admin_headers)

    assert response.status_code == 503
    error = response.json()["error"]
    assert error["code"] == "NETWORK_ERROR"
    assert error["message"] == "Service temporarily unavailable"
    assert "reset by peer" in error["details"]["reason"]
