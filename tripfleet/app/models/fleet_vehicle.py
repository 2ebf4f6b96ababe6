"""
Fleet Vehicle database model.

Organizations register vehicles with type-bounded capacity.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from tripfleet.app.db.session import Base
from tripfleet.app.models.enums import VehicleType, VehicleStatus


class FleetVehicle(Base):
    """
    Fleet Vehicle model.

    Capacity ranges are validated against the type bounds before a row is
    written. A vehicle referenced by a non-terminal trip is never deleted.
    """
    __tablename__ = "fleet_vehicles"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - Vehicle belongs to Organization
    organization_id = Column(Integer, ForeignKey('organizations.id'), nullable=False, index=True)

    # Vehicle identification
    vehicle_type = Column(Enum(VehicleType), nullable=False)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    license_plate = Column(String(50), unique=True, nullable=False, index=True)
    year = Column(Integer, nullable=False)

    # Capacity constraints (authoritative source)
    capacity_weight_min = Column(Float, nullable=False)
    capacity_weight_max = Column(Float, nullable=False)
    capacity_volume_min = Column(Float, nullable=False)
    capacity_volume_max = Column(Float, nullable=False)
    max_packages = Column(Integer, nullable=False)

    # Status
    status = Column(Enum(VehicleStatus), default=VehicleStatus.ACTIVE, nullable=False, index=True)
    current_driver_id = Column(Integer, index=True, nullable=True)

    # Maintenance
    last_maintenance_at = Column(DateTime(timezone=True), nullable=True)
    next_maintenance_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<FleetVehicle(id={self.id}, plate='{self.license_plate}', org={self.organization_id})>"
