"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

import logging
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError
from tripfleet.app.core.exceptions import AuthenticationError
from tripfleet.app.core.jwt import decode_access_token
from tripfleet.app.models.enums import UserRole
from tripfleet.app.schemas.auth import Identity

logger = logging.getLogger("tripfleet.auth")

# auto_error=False so a missing header reaches get_current_user and fails
# with the UNAUTHORIZED envelope instead of FastAPI's default 403.
security = HTTPBearer(auto_error=False)

ORGANIZATION_ROLES = (UserRole.ORGANIZATION_ADMIN, UserRole.ORGANIZATION_DRIVER)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """
    FastAPI dependency for JWT authentication.

    Checks:
    1. A Bearer token is present
    2. Signature and expiry are valid
    3. user_id, email and role claims are present and well-formed
    4. Organization roles carry an organization_id

    Returns:
        Identity built from the token claims

    Raises:
        AuthenticationError: 401 if any check fails
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    try:
        identity = Identity(
            user_id=payload.get("user_id"),
            email=payload.get("email"),
            role=payload.get("role"),
            organization_id=payload.get("organization_id"),
        )
    except ValidationError:
        logger.info("Rejected token with incomplete claims")
        raise AuthenticationError("Invalid token payload")

    if identity.role in ORGANIZATION_ROLES and identity.organization_id is None:
        raise AuthenticationError("Invalid token payload")

    return identity
