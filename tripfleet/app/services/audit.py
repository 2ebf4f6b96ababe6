"""
Audit logging service for tracking mutating fleet operations.

Every trip, vehicle and booking mutation writes one entry.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from tripfleet.app.models.audit_log import AuditLog
from tripfleet.app.schemas.auth import Identity


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Trips
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_UPDATED = "TRIP_UPDATED"
    TRIP_STATUS_CHANGED = "TRIP_STATUS_CHANGED"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    VEHICLE_ASSIGNED = "VEHICLE_ASSIGNED"
    STOP_ADDED = "STOP_ADDED"
    STOP_UPDATED = "STOP_UPDATED"

    # Bookings
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"

    # Fleet
    VEHICLE_CREATED = "VEHICLE_CREATED"
    VEHICLE_UPDATED = "VEHICLE_UPDATED"
    VEHICLE_DELETED = "VEHICLE_DELETED"
    MAINTENANCE_SCHEDULED = "MAINTENANCE_SCHEDULED"
    DRIVER_CREATED = "DRIVER_CREATED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor: Optional[Identity] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    organization_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Log a mutating operation to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor: Identity performing the action (None for system actions)
        entity_type: "trip", "vehicle", "booking", ...
        entity_id: ID of the affected record
        organization_id: Owning organization, defaults to the actor's
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor.user_id if actor else None,
        actor_email=actor.email if actor else None,
        organization_id=organization_id if organization_id is not None else (actor.organization_id if actor else None),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)

    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
