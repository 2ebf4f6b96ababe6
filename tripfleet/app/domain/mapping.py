"""
Type/Status Mapping Layer.

Translates between the client-facing vocabulary used by the HTTP API
(``truck``, ``freight_forward``, ``active``) and the canonical tokens stored
in the database and exchanged with the fleet backend (``TRUCK``,
``FREIGHT_FORWARDER``, ``in_progress``). Also owns key casing, the
structured address codec and the fleet-backend trip payload.

Everything here is pure.
"""

import re
from dataclasses import dataclass
from datetime import datetime, date
from typing import Any, Dict, List, Optional


class EnumMapping:
    """
    Bidirectional translator between two token vocabularies.

    Unknown values fall back to the designated default of the target side.
    Without a default the value is returned unchanged.
    """

    def __init__(
        self,
        pairs: Dict[str, str],
        internal_default: Optional[str] = None,
        external_default: Optional[str] = None,
    ):
        self._to_external = dict(pairs)
        self._to_internal = {external: internal for internal, external in pairs.items()}
        self.internal_default = internal_default
        self.external_default = external_default

    def to_external(self, value: str) -> str:
        if value in self._to_external:
            return self._to_external[value]
        return self.external_default if self.external_default is not None else value

    def to_internal(self, value: str) -> str:
        if value in self._to_internal:
            return self._to_internal[value]
        return self.internal_default if self.internal_default is not None else value

    def internal_values(self) -> List[str]:
        return list(self._to_external.keys())


VEHICLE_TYPES = EnumMapping(
    {
        "truck": "TRUCK",
        "van": "VAN",
        "motorcycle": "MOTORCYCLE",
        "car": "CAR",
        "bus": "BUS",
        "other": "OTHER",
    },
    internal_default="other",
    external_default="OTHER",
)

ORGANIZATION_TYPES = EnumMapping(
    {
        "freight_forward": "FREIGHT_FORWARDER",
        "moving_company": "MOVING_COMPANY",
        "ecommerce": "ECOMMERCE",
        "corporate": "CORPORATE",
        "logistics_provider": "LOGISTICS_PROVIDER",
        "other": "OTHER",
    },
    internal_default="other",
    external_default="OTHER",
)

# No default: unknown statuses pass through.
TRIP_STATUSES = EnumMapping(
    {
        "planned": "planned",
        "scheduled": "scheduled",
        "active": "in_progress",
        "completed": "completed",
        "cancelled": "cancelled",
        "delayed": "delayed",
    }
)


# Key casing

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    """Pydantic alias generator: ``remaining_capacity`` -> ``remainingCapacity``."""
    head, *tail = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in tail)


def keys_to_snake(value: Any) -> Any:
    """
    Recursively rename dict keys to snake_case.

    Datetimes are serialised to ISO-8601 so the result is JSON-ready.
    """
    if isinstance(value, dict):
        return {camel_to_snake(k) if isinstance(k, str) else k: keys_to_snake(v) for k, v in value.items()}
    if isinstance(value, list):
        return [keys_to_snake(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def keys_to_camel(value: Any) -> Any:
    if isinstance(value, dict):
        return {snake_to_camel(k) if isinstance(k, str) else k: keys_to_camel(v) for k, v in value.items()}
    if isinstance(value, list):
        return [keys_to_camel(item) for item in value]
    return value


@dataclass(frozen=True)
class Address:
    """Structured location; the delimited form only exists on the wire."""
    address: str
    city: str
    country: str

    def encode(self) -> str:
        return f"{self.address}, {self.city}, {self.country}"

    @classmethod
    def decode(cls, text: str) -> "Address":
        """
        Parse ``"street, city, country"``.

        Splits from the right so commas inside the street part survive.
        Missing trailing parts decode as empty strings.
        """
        parts = [part.strip() for part in (text or "").rsplit(",", 2)]
        while len(parts) < 3:
            parts.append("")
        return cls(address=parts[0], city=parts[1], country=parts[2])


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def trip_to_wire(trip: Any, stops: Optional[List[Any]] = None) -> Dict[str, Any]:
    """
    Build the fleet-backend payload for a trip row.

    The trip status is stored in the external vocabulary already, so only
    the enum value is emitted.
    """
    origin = Address(trip.departure_address, trip.departure_city, trip.departure_country)
    destination = Address(trip.destination_address, trip.destination_city, trip.destination_country)
    status = trip.status.value if hasattr(trip.status, "value") else trip.status

    return {
        "id": trip.id,
        "organization_id": trip.organization_id,
        "driver_id": trip.driver_id,
        "vehicle_id": trip.vehicle_id,
        "origin": origin.encode(),
        "destination": destination.encode(),
        "departure_time": _iso(trip.departure_time),
        "arrival_time": _iso(trip.arrival_time),
        "price": {
            "base_price": trip.base_price,
            "price_per_kg": trip.price_per_kg,
            "minimum_price": trip.minimum_price,
            "currency": trip.currency,
        },
        "total_capacity": trip.total_capacity,
        "available_capacity": trip.remaining_capacity,
        "status": TRIP_STATUSES.to_external(status),
        "notes": trip.notes,
        "stops": [
            {
                "sequence": stop.sequence,
                "location": Address(stop.address, stop.city, stop.country).encode(),
                "latitude": stop.latitude,
                "longitude": stop.longitude,
                "estimated_arrival": _iso(stop.estimated_arrival),
                "stop_type": stop.stop_type.value if hasattr(stop.stop_type, "value") else stop.stop_type,
            }
            for stop in (stops or [])
        ],
    }


def trip_from_wire(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a fleet-backend trip payload into flat trip fields.

    Accepts camelCase or snake_case keys. The status is returned in the
    client vocabulary.
    """
    data = keys_to_snake(payload)
    origin = Address.decode(data.get("origin", ""))
    destination = Address.decode(data.get("destination", ""))
    price = data.get("price") or {}

    return {
        "id": data.get("id"),
        "organization_id": data.get("organization_id"),
        "driver_id": data.get("driver_id"),
        "vehicle_id": data.get("vehicle_id"),
        "departure_address": origin.address,
        "departure_city": origin.city,
        "departure_country": origin.country,
        "destination_address": destination.address,
        "destination_city": destination.city,
        "destination_country": destination.country,
        "departure_time": _parse_dt(data.get("departure_time")),
        "arrival_time": _parse_dt(data.get("arrival_time")),
        "base_price": price.get("base_price", 0.0),
        "price_per_kg": price.get("price_per_kg", 0.0),
        "minimum_price": price.get("minimum_price", 0.0),
        "currency": price.get("currency", "EUR"),
        "total_capacity": data.get("total_capacity"),
        "remaining_capacity": data.get("available_capacity", data.get("total_capacity")),
        "status": TRIP_STATUSES.to_internal(data.get("status", "planned")),
        "notes": data.get("notes"),
        "stops": [
            {
                "sequence": stop.get("sequence"),
                **vars(Address.decode(stop.get("location", ""))),
                "latitude": stop.get("latitude"),
                "longitude": stop.get("longitude"),
                "estimated_arrival": _parse_dt(stop.get("estimated_arrival")),
                "stop_type": stop.get("stop_type", "both"),
            }
            for stop in data.get("stops") or []
        ],
    }
