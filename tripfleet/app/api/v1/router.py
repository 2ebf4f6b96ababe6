"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from tripfleet.app.api.v1.endpoints import bookings, drivers, fleet, trips, vehicles

router = APIRouter()

# Organization endpoints
router.include_router(trips.router)
router.include_router(vehicles.router)
router.include_router(drivers.router)
router.include_router(fleet.router)

# Customer bookings
router.include_router(bookings.router)
router.include_router(bookings.pricing_router)
