from uuid import UUID
from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carecoord.auth.middleware import verify_token
from carecoord.auth.models import Principal
from carecoord.cache.service import CacheService, get_cache
from carecoord.db.postgres import get_db
from carecoord.notifications.outbox import get_notification_sink
from carecoord.notifications.sink import NotificationSink
from carecoord.shifts.schemas import (
    CheckOutRequest,
    CreateShiftRequest,
    ShiftListResponse,
    ShiftResponse,
)
from carecoord.shifts.service import ShiftService

recipient_router = APIRouter(
    prefix="/care-recipients/{care_recipient_id}/shifts",
    tags=["shifts"],
)

router = APIRouter(
    prefix="/shifts",
    tags=["shifts"],
)


def get_shift_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    sink: NotificationSink = Depends(get_notification_sink),
) -> ShiftService:
    return ShiftService(db, cache, sink)


def to_list(shifts) -> ShiftListResponse:
    return ShiftListResponse(shifts=shifts, count=len(shifts))


@recipient_router.post("", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
async def create_shift(
    care_recipient_id: UUID,
    request: CreateShiftRequest,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    """
    Schedule a caregiver for a care recipient.

    Fails with 409 when the caregiver already has an overlapping,
    non-cancelled shift. Viewers cannot create shifts.
    """
    shift = await service.create_shift(
        principal,
        care_recipient_id,
        caregiver_id=request.caregiver_id,
        start_time=request.start_time,
        end_time=request.end_time,
        notes=request.notes,
    )
    return ShiftResponse.model_validate(shift)


@recipient_router.get("", response_model=ShiftListResponse)
async def get_shifts_in_range(
    care_recipient_id: UUID,
    start: datetime,
    end: datetime,
    include_cancelled: bool = False,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    """Shifts overlapping [start, end)"""
    shifts = await service.get_shifts_in_range(principal, care_recipient_id, start, end, include_cancelled)
    return to_list(shifts)


@recipient_router.get("/current", response_model=Optional[ShiftResponse])
async def get_current_shift(
    care_recipient_id: UUID,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    """Who is on duty right now (null when nobody is)"""
    return await service.get_current_shift(principal, care_recipient_id)


@recipient_router.get("/upcoming", response_model=ShiftListResponse)
async def get_upcoming_shifts(
    care_recipient_id: UUID,
    days: int = Query(7, ge=1, le=90),
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    shifts = await service.get_upcoming_shifts(principal, care_recipient_id, days)
    return to_list(shifts)


@recipient_router.get("/day/{day}", response_model=ShiftListResponse)
async def get_shifts_for_day(
    care_recipient_id: UUID,
    day: date,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    shifts = await service.get_shifts_for_day(principal, care_recipient_id, day)
    return to_list(shifts)


@router.get("/mine", response_model=ShiftListResponse)
async def get_my_shifts(
    upcoming: bool = True,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    shifts = await service.get_my_shifts(principal, upcoming_only=upcoming)
    return to_list(shifts)


@router.get("/{shift_id}", response_model=ShiftResponse)
async def get_shift(
    shift_id: UUID,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    return await service.get_shift(principal, shift_id)


@router.post("/{shift_id}/confirm", response_model=ShiftResponse)
async def confirm_shift(
    shift_id: UUID,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    """Assigned caregiver accepts a scheduled shift"""
    shift = await service.confirm_shift(principal, shift_id)
    return ShiftResponse.model_validate(shift)


@router.post("/{shift_id}/check-in", response_model=ShiftResponse)
async def check_in(
    shift_id: UUID,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    """Assigned caregiver starts the shift (confirmation is optional)"""
    shift = await service.check_in(principal, shift_id)
    return ShiftResponse.model_validate(shift)


@router.post("/{shift_id}/check-out", response_model=ShiftResponse)
async def check_out(
    shift_id: UUID,
    request: CheckOutRequest,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    """
    Assigned caregiver ends an in-progress shift.

    The next rostered caregiver for the same care recipient receives a
    handoff notification carrying the handoff notes.
    """
    shift = await service.check_out(principal, shift_id, request.handoff_notes)
    return ShiftResponse.model_validate(shift)


@router.post("/{shift_id}/cancel", response_model=ShiftResponse)
async def cancel_shift(
    shift_id: UUID,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    shift = await service.cancel_shift(principal, shift_id)
    return ShiftResponse.model_validate(shift)


@router.post("/{shift_id}/no-show", response_model=ShiftResponse)
async def mark_no_show(
    shift_id: UUID,
    service: ShiftService = Depends(get_shift_service),
    principal: Principal = Depends(verify_token),
):
    """Family admin (or a scheduled job acting as one) records a missed check-in"""
    shift = await service.mark_no_show(principal, shift_id)
    return ShiftResponse.model_validate(shift)
