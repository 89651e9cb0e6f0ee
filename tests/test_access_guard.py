import pytest
from datetime import datetime
from uuid import uuid4

from carecoord.auth.guard import AccessDecision, AccessGuard, Capability, Denial, authorize_role
from carecoord.auth.models import Principal
from carecoord.auth.repository import FamilyAccessRepository
from carecoord.exceptions import ForbiddenException, NotFoundException


@pytest.mark.parametrize("role,capability,allowed", [
    ("ADMIN", Capability.SHIFT_CANCEL_ANY, True),
    ("ADMIN", Capability.SHIFT_MARK_NO_SHOW, True),
    ("CAREGIVER", Capability.SHIFT_CREATE, True),
    ("CAREGIVER", Capability.MEDICATION_LOG, True),
    ("CAREGIVER", Capability.SHIFT_CANCEL_ANY, False),
    ("VIEWER", Capability.SHIFT_READ, True),
    ("VIEWER", Capability.MEDICATION_READ, True),
    ("VIEWER", Capability.SHIFT_CREATE, False),
    ("VIEWER", Capability.MEDICATION_LOG, False),
    ("STRANGER", Capability.SHIFT_READ, False),
])
def test_capability_table(role, capability, allowed):
    assert authorize_role(role, capability).allowed is allowed


def test_denial_carries_reason():
    decision = authorize_role("VIEWER", Capability.SHIFT_CREATE)

    assert decision.denial == Denial.FORBIDDEN
    assert decision.reason == "Viewers cannot create shifts"


def test_raise_if_denied():
    with pytest.raises(NotFoundException):
        AccessDecision.deny(Denial.NOT_FOUND, "gone").raise_if_denied(uuid4())
    with pytest.raises(ForbiddenException):
        AccessDecision.deny(Denial.FORBIDDEN, "no").raise_if_denied()

    allowed = AccessDecision.allow(role="ADMIN")
    assert allowed.raise_if_denied() is allowed


@pytest.mark.asyncio
async def test_member_is_allowed(db_session, family):
    guard = AccessGuard(db_session)

    decision = await guard.authorize(family.principals["caregiver"], family.recipient_id, Capability.SHIFT_CREATE)

    assert decision.allowed
    assert decision.role == "CAREGIVER"
    assert decision.care_recipient.family_id == family.id


@pytest.mark.asyncio
async def test_unknown_recipient_is_not_found(db_session, family):
    guard = AccessGuard(db_session)

    decision = await guard.authorize(family.principals["admin"], uuid4(), Capability.SHIFT_READ)

    assert decision.denial == Denial.NOT_FOUND


@pytest.mark.asyncio
async def test_non_member_is_forbidden(db_session, family):
    guard = AccessGuard(db_session)

    decision = await guard.authorize(family.principals["outsider"], family.recipient_id, Capability.SHIFT_READ)

    assert decision.denial == Denial.FORBIDDEN
    assert decision.reason == "You do not have access to this care recipient"


@pytest.mark.asyncio
async def test_inactive_membership_is_forbidden(db_session, family):
    membership = await FamilyAccessRepository(db_session).get_active_membership(family.id, family.users["caregiver"])
    membership.is_active = False
    await db_session.commit()

    with pytest.raises(ForbiddenException):
        await AccessGuard(db_session).require(
            family.principals["caregiver"], family.recipient_id, Capability.SHIFT_READ
        )


@pytest.mark.asyncio
async def test_deleted_recipient_is_not_found(db_session, family):
    family.recipient.deleted_at = datetime(2024, 3, 1)
    await db_session.commit()

    with pytest.raises(NotFoundException):
        await AccessGuard(db_session).require(
            family.principals["admin"], family.recipient_id, Capability.SHIFT_READ
        )


def test_principal_from_token_claims():
    user_id = uuid4()

    principal = Principal(sub=str(user_id), roles=["user"])

    assert principal.user_id == user_id
