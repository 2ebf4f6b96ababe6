"""
Authentication schemas.

The caller identity resolved from a Bearer token.
"""

from typing import Optional
from pydantic import BaseModel, Field
from tripfleet.app.models.enums import UserRole


class Identity(BaseModel):
    """
    Authenticated caller.

    Built only from verified token claims; there is no anonymous or default
    identity.
    """
    user_id: int = Field(..., description="User ID")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(..., description="User role")
    organization_id: Optional[int] = Field(default=None, description="Organization the user acts for")

    @property
    def is_platform_admin(self) -> bool:
        return self.role == UserRole.ADMIN
