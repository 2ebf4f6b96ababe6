"""
Booking database model.
"""

from sqlalchemy import Column, Integer, Float, String, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from tripfleet.app.db.session import Base
from tripfleet.app.models.enums import BookingStatus


class Booking(Base):
    """A customer's reservation of capacity on a trip."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    customer_id = Column(Integer, index=True, nullable=False)

    weight = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")

    status = Column(Enum(BookingStatus), default=BookingStatus.CONFIRMED, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Booking(id={self.id}, trip_id={self.trip_id}, weight={self.weight})>"
