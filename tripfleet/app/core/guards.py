"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints and a tenant guard for
per-record checks inside services.
"""

from typing import Iterable, List
from fastapi import Depends
from tripfleet.app.models.enums import UserRole
from tripfleet.app.core.dependencies import get_current_user
from tripfleet.app.core.exceptions import InsufficientPermissionsError
from tripfleet.app.schemas.auth import Identity


ORGANIZATION_READ_ROLES = [UserRole.ORGANIZATION_ADMIN, UserRole.ORGANIZATION_DRIVER]
ORGANIZATION_WRITE_ROLES = [UserRole.ORGANIZATION_ADMIN]


def ensure_role(identity: Identity, allowed_roles: Iterable[UserRole]) -> Identity:
    """
    Raise FORBIDDEN unless the identity holds one of ``allowed_roles``.

    Shared by the route dependencies and by services that enforce the same
    rule when called outside HTTP.
    """
    allowed = list(allowed_roles)
    if identity.role not in allowed:
        raise InsufficientPermissionsError(
            f"Access denied. Required role: {', '.join(r.value for r in allowed)}"
        )
    return identity


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/organizations/trips")
        async def create_trip(actor: Identity = Depends(require_role([UserRole.ORGANIZATION_ADMIN]))):
            ...

    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint

    Returns:
        FastAPI dependency function that validates user role

    Raises:
        InsufficientPermissionsError (403) if user role is not in allowed_roles
    """
    async def role_checker(current_user: Identity = Depends(get_current_user)) -> Identity:
        return ensure_role(current_user, allowed_roles)

    return role_checker


# Organization endpoints: reads for admins and drivers, writes for admins
require_org_access = require_role(ORGANIZATION_READ_ROLES)
require_org_admin = require_role(ORGANIZATION_WRITE_ROLES)


class OwnershipGuard:
    """
    Tenant guard: an organization user only touches its own organization's
    records. Platform admins pass every check.

    Usage:
        ownership_guard = OwnershipGuard()
        trip = await TripRepository.get(db, trip_id)
        ownership_guard.enforce(trip.organization_id, actor, "trip")
    """

    def is_allowed(self, resource_organization_id: int, current_user: Identity) -> bool:
        if current_user.is_platform_admin:
            return True
        return (
            current_user.organization_id is not None
            and current_user.organization_id == resource_organization_id
        )

    def enforce(self, resource_organization_id: int, current_user: Identity, resource_name: str = "resource"):
        """
        Raise 403 if the caller's organization does not own the resource.

        Raises:
            InsufficientPermissionsError
        """
        if not self.is_allowed(resource_organization_id, current_user):
            raise InsufficientPermissionsError(
                f"Access denied. You do not have permission to access this {resource_name}."
            )


ownership_guard = OwnershipGuard()
