"""Authenticated principal"""
from typing import Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class Principal(BaseModel):
    """
    The caller of an operation, passed explicitly into every service call.

    ``roles`` are the identity provider's realm roles. Care-circle roles
    (ADMIN / CAREGIVER / VIEWER) are per family and resolved by the access
    guard, not carried in the token.
    """
    user_id: UUID = Field(..., alias="sub")
    roles: list[str] = []
    email: Optional[str] = None
    iat: Optional[datetime] = None
    exp: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)
