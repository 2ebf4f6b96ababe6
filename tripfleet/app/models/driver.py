"""
Driver database model.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from tripfleet.app.db.session import Base
from tripfleet.app.models.enums import DriverStatus


class Driver(Base):
    """
    Driver model.

    ``current_trip_id`` points at the single non-terminal trip the driver is
    assigned to; assignment swaps it with a conditional UPDATE.
    """
    __tablename__ = "drivers"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey('organizations.id'), nullable=False, index=True)
    user_id = Column(Integer, index=True, nullable=True)

    # Contact
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    # Status and assignment
    status = Column(Enum(DriverStatus), default=DriverStatus.ACTIVE, nullable=False, index=True)
    current_vehicle_id = Column(Integer, index=True, nullable=True)
    current_trip_id = Column(Integer, index=True, nullable=True)

    # Performance aggregates
    completed_trips = Column(Integer, default=0, nullable=False)
    rating = Column(Float, default=0.0, nullable=False)
    on_time_percentage = Column(Float, default=100.0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.name}', status='{self.status.value}')>"
