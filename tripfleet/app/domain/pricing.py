"""
Booking price and trip revenue figures.
"""

from typing import Dict, Iterable

INSURANCE_FEE = 3.5
TAX_RATE = 0.19


def estimate_price(trip, weight: float) -> Dict[str, float]:
    """
    Price a booking of ``weight`` kg on ``trip``.

    The minimum price is always charged; the per-kg rate applies on the full
    weight once it exceeds the trip's weight threshold. Insurance is added
    before tax.

    Returns:
        Breakdown with base, weight_cost, insurance, tax and total
    """
    weight_cost = weight * trip.price_per_kg if weight > trip.weight_threshold else 0.0
    amount = trip.minimum_price + weight_cost + INSURANCE_FEE
    tax = amount * TAX_RATE

    return {
        "base": trip.minimum_price,
        "weight_cost": round(weight_cost, 2),
        "insurance": INSURANCE_FEE,
        "tax": round(tax, 2),
        "total": round(amount + tax, 2),
    }


def potential_revenue(trip) -> float:
    """Revenue if the whole capacity sells at the per-kg rate."""
    return max(trip.base_price + trip.total_capacity * trip.price_per_kg, trip.minimum_price)


def booked_revenue(prices: Iterable[float]) -> float:
    return round(sum(prices), 2)


def capacity_utilization(total_capacity: float, remaining_capacity: float) -> int:
    """Percentage of capacity sold, rounded to the nearest integer."""
    if not total_capacity:
        return 0
    return round((total_capacity - remaining_capacity) / total_capacity * 100)
