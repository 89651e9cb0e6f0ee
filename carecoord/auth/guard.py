"""Access guard: may this principal do this to this care recipient's data?"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from carecoord import config
from carecoord.auth.models import Principal
from carecoord.auth.permissions_manager import PermissionsManager
from carecoord.auth.repository import FamilyAccessRepository
from carecoord.db.models import CareRecipient, FamilyMembership
from carecoord.exceptions import ForbiddenException, NotFoundException

logger = logging.getLogger(__name__)

permissions_manager = PermissionsManager(config.CAPABILITIES_FILE)


class Capability(str, Enum):
    SHIFT_READ = "shift:read"
    SHIFT_CREATE = "shift:create"
    SHIFT_CANCEL_ANY = "shift:cancel_any"
    SHIFT_MARK_NO_SHOW = "shift:mark_no_show"
    MEDICATION_READ = "medication:read"
    MEDICATION_MANAGE = "medication:manage"
    MEDICATION_LOG = "medication:log"
    MEDICATION_REFILL = "medication:refill"


class Denial(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"


@dataclass(frozen=True)
class AccessDecision:
    """Allow, or deny with a reason"""
    allowed: bool
    reason: Optional[str] = None
    denial: Optional[Denial] = None
    role: Optional[str] = None
    care_recipient: Optional[CareRecipient] = None
    membership: Optional[FamilyMembership] = None

    @classmethod
    def allow(cls, role: Optional[str] = None, care_recipient=None, membership=None) -> "AccessDecision":
        return cls(True, role=role, care_recipient=care_recipient, membership=membership)

    @classmethod
    def deny(cls, denial: Denial, reason: str, role: Optional[str] = None, care_recipient=None) -> "AccessDecision":
        return cls(False, reason=reason, denial=denial, role=role, care_recipient=care_recipient)

    def raise_if_denied(self, care_recipient_id=None) -> "AccessDecision":
        if self.allowed:
            return self
        if self.denial == Denial.NOT_FOUND:
            raise NotFoundException("Care recipient", care_recipient_id)
        raise ForbiddenException(self.reason, role=self.role)


def authorize_role(role: str, capability: Capability) -> AccessDecision:
    """Evaluate the capability table for a single care-circle role."""
    if permissions_manager.has_capability(role, capability.value):
        return AccessDecision.allow(role=role)
    return AccessDecision.deny(
        Denial.FORBIDDEN,
        permissions_manager.denial_reason(role, capability.value),
        role=role,
    )


class AccessGuard:
    """Resolves the owning family and the principal's active membership"""

    def __init__(self, db: AsyncSession):
        self.repository = FamilyAccessRepository(db)

    async def authorize(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        capability: Capability,
    ) -> AccessDecision:
        care_recipient = await self.repository.get_care_recipient(care_recipient_id)
        if not care_recipient:
            return AccessDecision.deny(Denial.NOT_FOUND, f"Care recipient {care_recipient_id} not found")

        membership = await self.repository.get_active_membership(care_recipient.family_id, principal.user_id)
        if not membership:
            return AccessDecision.deny(
                Denial.FORBIDDEN,
                "You do not have access to this care recipient",
                care_recipient=care_recipient,
            )

        decision = authorize_role(membership.role, capability)
        if not decision.allowed:
            logger.info(
                f"Denied {capability.value} on recipient {care_recipient_id} "
                f"to user {principal.user_id} (role {membership.role})"
            )
            return AccessDecision.deny(
                Denial.FORBIDDEN, decision.reason, role=membership.role, care_recipient=care_recipient
            )
        return AccessDecision.allow(role=membership.role, care_recipient=care_recipient, membership=membership)

    async def require(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        capability: Capability,
    ) -> AccessDecision:
        """authorize() that raises NotFound / Forbidden on denial"""
        decision = await self.authorize(principal, care_recipient_id, capability)
        return decision.raise_if_denied(care_recipient_id)
