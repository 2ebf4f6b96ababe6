"""
FastAPI Application Entry Point.

Wires the Trip Fleet routers, middleware and envelope exception handlers
onto one application.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from tripfleet.app.core.config import settings
from tripfleet.app.api.v1.router import router as api_v1_router
from tripfleet.app.db.session import engine, get_db, Base
from tripfleet.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from tripfleet.app.core.observability import ObservabilityMiddleware, configure_logging

# Every table must be on Base.metadata before create_all
from tripfleet.app.models.organization import Organization  # noqa: F401
from tripfleet.app.models.audit_log import AuditLog  # noqa: F401
from tripfleet.app.models.fleet_vehicle import FleetVehicle  # noqa: F401
from tripfleet.app.models.driver import Driver  # noqa: F401
from tripfleet.app.models.trip import Trip  # noqa: F401
from tripfleet.app.models.trip_stop import TripStop  # noqa: F401
from tripfleet.app.models.booking import Booking  # noqa: F401
from tripfleet.app.models.fleet_alert import FleetAlert  # noqa: F401

logger = logging.getLogger("tripfleet.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Trip Fleet API started (environment=%s)", settings.environment)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug and not settings.is_production,
    description="Trip scheduling, capacity booking and fleet management",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Liveness plus a round trip to the database.

    The endpoint itself never fails; an unreachable store is reported as
    ``degraded``.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"{settings.app_name} API",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tripfleet.app.main:app", host="127.0.0.1", port=8000, log_level=settings.log_level.lower())
