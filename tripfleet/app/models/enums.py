"""
Shared enumerations.

Persisted enums use the canonical external tokens (``TRUCK``,
``FREIGHT_FORWARDER``); the API speaks the internal vocabulary and converts
through ``tripfleet.app.domain.mapping``.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Platform-level administrator
        ORGANIZATION_ADMIN: Manages an organization's fleet and trips
        ORGANIZATION_DRIVER: Drives for an organization (read access)
        CUSTOMER: Books capacity on trips
    """
    ADMIN = "admin"
    ORGANIZATION_ADMIN = "organization_admin"
    ORGANIZATION_DRIVER = "organization_driver"
    CUSTOMER = "customer"


class VehicleType(str, enum.Enum):
    """Vehicle type (external tokens)."""
    TRUCK = "TRUCK"
    VAN = "VAN"
    MOTORCYCLE = "MOTORCYCLE"
    CAR = "CAR"
    BUS = "BUS"
    OTHER = "OTHER"


class VehicleStatus(str, enum.Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class DriverStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_TRIP = "on_trip"


class OrganizationType(str, enum.Enum):
    """Organization type (external tokens)."""
    FREIGHT_FORWARDER = "FREIGHT_FORWARDER"
    MOVING_COMPANY = "MOVING_COMPANY"
    ECOMMERCE = "ECOMMERCE"
    CORPORATE = "CORPORATE"
    LOGISTICS_PROVIDER = "LOGISTICS_PROVIDER"
    OTHER = "OTHER"


class VerificationStatus(str, enum.Enum):
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class AlertType(str, enum.Enum):
    MAINTENANCE_DUE = "maintenance_due"
    DOCUMENT_EXPIRY = "document_expiry"
    DRIVER_PERFORMANCE = "driver_performance"


class AlertSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
