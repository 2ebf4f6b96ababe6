"""
Vehicle capacity validation.

Bounds per vehicle type, inclusive on both ends. Runs before any vehicle
row is written.
"""

import math
from typing import Dict, NamedTuple, Optional

from tripfleet.app.domain.mapping import VEHICLE_TYPES


class CapacityBounds(NamedTuple):
    min_weight: float
    max_weight: float
    min_packages: int
    max_packages: int


CAPACITY_BOUNDS: Dict[str, CapacityBounds] = {
    "VAN": CapacityBounds(50, 3000, 1, 15),
    "TRUCK": CapacityBounds(500, 15000, 10, 100),
    "BUS": CapacityBounds(100, 500, 5, 50),
    "MOTORCYCLE": CapacityBounds(10, 200, 1, 5),
    "CAR": CapacityBounds(20, 500, 1, 10),
}

# Average parcel weight used when no package count is given.
KG_PER_PACKAGE = 20


def _to_external_type(vehicle_type: str) -> str:
    if vehicle_type in CAPACITY_BOUNDS:
        return vehicle_type
    return VEHICLE_TYPES.to_external(vehicle_type)


def validate_vehicle_capacity(vehicle_type: str, weight: float, packages: int) -> Optional[str]:
    """
    Check a weight and package count against the bounds of a vehicle type.

    Args:
        vehicle_type: External token (``VAN``) or client token (``van``)
        weight: Maximum payload in kg
        packages: Maximum package count

    Returns:
        None when valid, otherwise a human-readable reason
    """
    external_type = _to_external_type(vehicle_type)
    bounds = CAPACITY_BOUNDS.get(external_type)
    if bounds is None:
        return f"Vehicle type '{vehicle_type}' is not supported"

    if weight < bounds.min_weight or weight > bounds.max_weight:
        return (
            f"Weight for {external_type} must be between "
            f"{bounds.min_weight}-{bounds.max_weight} kg"
        )

    if packages < bounds.min_packages or packages > bounds.max_packages:
        return (
            f"Packages for {external_type} must be between "
            f"{bounds.min_packages}-{bounds.max_packages}"
        )

    return None


def estimate_max_packages(weight_max: float, vehicle_type: Optional[str] = None) -> int:
    """
    Package count for a vehicle registered without one.

    With a known type the estimate is clamped into that type's package
    bounds, otherwise a van rated for 3000 kg would be refused for its own
    default of 150 packages.
    """
    estimate = int(math.floor(weight_max / KG_PER_PACKAGE))
    bounds = CAPACITY_BOUNDS.get(_to_external_type(vehicle_type)) if vehicle_type else None
    if bounds is None:
        return estimate
    return max(bounds.min_packages, min(estimate, bounds.max_packages))
