"""
Fleet Alert database model.

Alerts are produced by an external feed (maintenance planner, document
tracker) and only read by the fleet overview.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from tripfleet.app.db.session import Base
from tripfleet.app.models.enums import AlertType, AlertSeverity


class FleetAlert(Base):
    __tablename__ = "fleet_alerts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey('organizations.id'), nullable=False, index=True)

    alert_type = Column(Enum(AlertType), nullable=False)
    severity = Column(Enum(AlertSeverity), default=AlertSeverity.INFO, nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(String(1000), nullable=False)

    vehicle_id = Column(Integer, nullable=True)
    driver_id = Column(Integer, nullable=True)
    action_required = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<FleetAlert(id={self.id}, type='{self.alert_type.value}', severity='{self.severity.value}')>"
