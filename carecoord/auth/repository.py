"""Read-only lookups behind the access guard"""
from typing import Optional
from uuid import UUID
from sqlalchemy import select, and_

from carecoord.db.models import CareRecipient, FamilyMembership
from carecoord.db.repository import BaseRepository


class FamilyAccessRepository(BaseRepository):
    """Resolves care recipients to families and principals to memberships"""

    async def get_care_recipient(self, care_recipient_id: UUID) -> Optional[CareRecipient]:
        stmt = select(CareRecipient).where(
            and_(
                CareRecipient.id == care_recipient_id,
                CareRecipient.deleted_at.is_(None),
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_membership(self, family_id: UUID, user_id: UUID) -> Optional[FamilyMembership]:
        stmt = select(FamilyMembership).where(
            and_(
                FamilyMembership.family_id == family_id,
                FamilyMembership.user_id == user_id,
                FamilyMembership.is_active.is_(True),
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
