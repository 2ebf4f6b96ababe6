"""
Trip Stop database model.

Stops are ordered intermediate points of a trip.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.sql import func
from tripfleet.app.db.session import Base
from tripfleet.app.models.trip_enums import TripStopType, TripStopStatus


class TripStop(Base):
    """
    Trip Stop model.

    ``sequence`` is unique per trip and strictly increasing in insertion
    order. The stop status is tracked independently of the trip status.
    """
    __tablename__ = "trip_stops"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Trip reference
    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)

    # Stop details
    sequence = Column(Integer, nullable=False)
    stop_type = Column(Enum(TripStopType), default=TripStopType.BOTH, nullable=False)

    # Location
    address = Column(String(500), nullable=False)
    city = Column(String(100), nullable=False)
    country = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    estimated_arrival = Column(DateTime(timezone=True), nullable=True)

    # Status
    status = Column(Enum(TripStopStatus), default=TripStopStatus.PENDING, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint('trip_id', 'sequence', name='uq_trip_stops_trip_sequence'),
    )

    def __repr__(self):
        return f"<TripStop(id={self.id}, trip_id={self.trip_id}, seq={self.sequence})>"
