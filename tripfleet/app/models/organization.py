"""
Organization database model.

Registration happens elsewhere; the core only reads the id and type.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from tripfleet.app.db.session import Base
from tripfleet.app.models.enums import OrganizationType, VerificationStatus


class Organization(Base):
    __tablename__ = "organizations"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    legal_name = Column(String(255), nullable=False)
    organization_type = Column(Enum(OrganizationType), default=OrganizationType.OTHER, nullable=False)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    verification_status = Column(
        Enum(VerificationStatus),
        default=VerificationStatus.PENDING_VERIFICATION,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Organization(id={self.id}, name='{self.legal_name}')>"
