"""
Booking data access.
"""

from tripfleet.app.models.booking import Booking
from tripfleet.app.repositories.base import BaseRepository


class BookingRepository(BaseRepository[Booking]):
    model = Booking
