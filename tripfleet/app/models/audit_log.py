"""
Audit Log Database Model.

Tracks mutating trip, vehicle and booking operations.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from tripfleet.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - TRIP_CREATED / TRIP_UPDATED / TRIP_STATUS_CHANGED
    - DRIVER_ASSIGNED / VEHICLE_ASSIGNED / STOP_ADDED
    - BOOKING_CREATED / BOOKING_CANCELLED
    - VEHICLE_CREATED / VEHICLE_UPDATED / VEHICLE_DELETED / MAINTENANCE_SCHEDULED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)
    organization_id = Column(Integer, index=True, nullable=True)

    # What action was performed, on what
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
