"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration (external tokens)."""
    PLANNED = "planned"  # Created, driver/vehicle not both assigned yet
    SCHEDULED = "scheduled"  # Driver and vehicle assigned, awaiting departure
    IN_PROGRESS = "in_progress"  # Departed
    COMPLETED = "completed"  # Arrived
    CANCELLED = "cancelled"
    DELAYED = "delayed"


class TripStopType(str, enum.Enum):
    """Trip stop type enumeration."""
    PICKUP = "pickup"
    DROPOFF = "dropoff"
    BOTH = "both"


class TripStopStatus(str, enum.Enum):
    """Trip stop status enumeration."""
    PENDING = "pending"  # Not yet visited
    COMPLETED = "completed"  # Stop completed
    SKIPPED = "skipped"  # Stop skipped


class TripAction(str, enum.Enum):
    """Actions accepted by the bulk trip update."""
    CANCEL = "cancel"
    COMPLETE = "complete"
    START = "start"
    DELAY = "delay"
    SCHEDULE = "schedule"
    UPDATE = "update"
