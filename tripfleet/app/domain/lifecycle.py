"""
Trip state machine.

Every status change goes through ``ensure_transition``; there is no other
path to mutate ``Trip.status``.
"""

from typing import Dict, FrozenSet

from tripfleet.app.core.exceptions import InvalidStatusTransitionError
from tripfleet.app.models.trip_enums import TripStatus


TRIP_TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.PLANNED: frozenset({TripStatus.SCHEDULED, TripStatus.CANCELLED}),
    TripStatus.SCHEDULED: frozenset({TripStatus.IN_PROGRESS, TripStatus.DELAYED, TripStatus.CANCELLED}),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED, TripStatus.DELAYED, TripStatus.CANCELLED}),
    TripStatus.DELAYED: frozenset({TripStatus.IN_PROGRESS, TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})

# Statuses in which capacity can still be sold.
BOOKABLE_STATUSES = frozenset({TripStatus.PLANNED, TripStatus.SCHEDULED, TripStatus.DELAYED})


def can_transition(current: TripStatus, target: TripStatus) -> bool:
    return target in TRIP_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: TripStatus, target: TripStatus) -> None:
    """
    Raise InvalidStatusTransitionError unless ``current -> target`` is allowed.
    """
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(current.value, target.value)


def is_terminal(status: TripStatus) -> bool:
    return status in TERMINAL_STATUSES
