"""
Trip database model.

A trip is a scheduled transport leg owned by an organization. Its remaining
capacity is the ledger that bookings draw down.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Text, ForeignKey, DateTime, Enum, CheckConstraint
)
from sqlalchemy.sql import func
from tripfleet.app.db.session import Base
from tripfleet.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    Created in PLANNED by an organization admin. Bookings decrement
    ``remaining_capacity`` through a conditional UPDATE, cancellations
    restore it.
    """
    __tablename__ = "trips"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - Trip belongs to Organization
    organization_id = Column(Integer, ForeignKey('organizations.id'), nullable=False, index=True)

    # Assignment (optional initially, can be assigned later)
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey('fleet_vehicles.id'), nullable=True, index=True)

    # Departure / destination (structured, never a delimited string)
    departure_address = Column(String(500), nullable=False)
    departure_city = Column(String(100), nullable=False, index=True)
    departure_country = Column(String(100), nullable=False)
    destination_address = Column(String(500), nullable=False)
    destination_city = Column(String(100), nullable=False, index=True)
    destination_country = Column(String(100), nullable=False)

    departure_time = Column(DateTime(timezone=True), nullable=False, index=True)
    arrival_time = Column(DateTime(timezone=True), nullable=False)

    # Pricing
    base_price = Column(Float, nullable=False, default=0.0)
    price_per_kg = Column(Float, nullable=False, default=0.0)
    minimum_price = Column(Float, nullable=False, default=0.0)
    weight_threshold = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="EUR")

    # Capacity ledger (kg)
    total_capacity = Column(Float, nullable=False)
    remaining_capacity = Column(Float, nullable=False)

    # Status
    status = Column(Enum(TripStatus), default=TripStatus.PLANNED, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint('total_capacity >= 1', name='ck_trips_total_capacity_min'),
        CheckConstraint('remaining_capacity >= 0', name='ck_trips_remaining_non_negative'),
        CheckConstraint('remaining_capacity <= total_capacity', name='ck_trips_remaining_within_total'),
    )

    def __repr__(self):
        return f"<Trip(id={self.id}, org={self.organization_id}, status='{self.status.value}')>"
