from datetime import datetime
from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, String, DateTime, Boolean, Uuid, UniqueConstraint
from carecoord.db.base import Base


class FamilyRole(str, Enum):
    ADMIN = "ADMIN"
    CAREGIVER = "CAREGIVER"
    VIEWER = "VIEWER"


class CareRecipient(Base):
    """
    Care recipients - owned by the family service.
    Synced locally by the family event consumer; read-only here.
    """
    __tablename__ = "care_recipients"
    __table_args__ = {'extend_existing': True}

    id = Column(Uuid, primary_key=True)
    family_id = Column(Uuid, nullable=False, index=True)
    full_name = Column(String(255), nullable=False, default="")
    preferred_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    @property
    def display_name(self) -> str:
        return self.preferred_name or self.full_name


class FamilyMembership(Base):
    """
    Family (care circle) membership - owned by the family service.
    Input to the access guard; never written by the shift or medication code.
    """
    __tablename__ = "family_members"
    __table_args__ = (
        UniqueConstraint("family_id", "user_id", name="uq_family_members_family_user"),
        {'extend_existing': True},
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    family_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, nullable=False, index=True)
    role = Column(String(20), nullable=False)  # ADMIN | CAREGIVER | VIEWER
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
