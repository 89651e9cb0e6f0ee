import logging
from uuid import UUID
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional
from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from carecoord.auth.guard import AccessGuard, Capability
from carecoord.auth.models import Principal
from carecoord.cache import keys as cache_keys
from carecoord.cache.service import CacheService
from carecoord.exceptions import InvalidTransitionException, ValidationException
from carecoord.notifications.sink import NotificationSink
from carecoord.shifts.event_publisher import ShiftEventPublisher
from carecoord.shifts.exceptions import (
    ShiftConflictException,
    ShiftNotFoundException,
    ShiftNotStartedException,
)
from carecoord.shifts.models import Shift
from carecoord.shifts.no_show import is_no_show_candidate
from carecoord.shifts.repository import ShiftRepository
from carecoord.shifts.schemas import ShiftResponse
from carecoord.shifts.state_machine import ShiftAction, ShiftStatus, sources_for, target_for
from carecoord.shifts.validators import (
    check_out_time,
    validate_caregiver_ownership,
    validate_transition,
    validate_window,
)
from carecoord.utils import timezone

logger = logging.getLogger(__name__)

SHIFT_ADAPTER = TypeAdapter(ShiftResponse)
SHIFT_LIST_ADAPTER = TypeAdapter(List[ShiftResponse])


class ShiftService:
    """Shift lifecycle: creation with conflict detection, status transitions, handoff"""

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheService,
        sink: NotificationSink,
        now_fn: Callable[[], datetime] = timezone.now,
    ):
        self.db = db
        self.cache = cache
        self.now = now_fn
        self.repository = ShiftRepository(db)
        self.guard = AccessGuard(db)
        self.events = ShiftEventPublisher(sink)

    async def create_shift(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        caregiver_id: UUID,
        start_time: datetime,
        end_time: datetime,
        notes: Optional[str] = None,
    ) -> Shift:
        """
        Schedule a caregiver.

        Steps:
        1. Authorize shift:create on the care recipient
        2. Validate start < end
        3. Under the caregiver's timeline lock, reject any overlap with their
           non-cancelled shifts, then insert
        4. Invalidate caches and emit shift.assigned
        """
        await self.guard.require(principal, care_recipient_id, Capability.SHIFT_CREATE)

        start_time = timezone.to_care_clock(start_time)
        end_time = timezone.to_care_clock(end_time)
        validate_window(start_time, end_time)

        await self.repository.lock_caregiver_timeline(caregiver_id)
        conflict = await self.repository.find_overlapping(caregiver_id, start_time, end_time)
        if conflict:
            await self.db.rollback()
            logger.info(f"Rejected shift for caregiver {caregiver_id}: overlaps {conflict.id}")
            raise ShiftConflictException(caregiver_id, conflict.id)

        shift = await self.repository.create(Shift(
            care_recipient_id=care_recipient_id,
            caregiver_id=caregiver_id,
            start_time=start_time,
            end_time=end_time,
            status=ShiftStatus.SCHEDULED.value,
            notes=notes,
            created_by_id=principal.user_id,
        ))
        logger.info(
            f"Shift {shift.id} scheduled for caregiver {caregiver_id} "
            f"({start_time.isoformat()} - {end_time.isoformat()})"
        )

        await self._invalidate(shift)
        self.events.publish_shift_assigned(shift)
        return shift

    async def confirm_shift(self, principal: Principal, shift_id: UUID) -> Shift:
        shift = await self._get_or_404(shift_id)
        validate_caregiver_ownership(shift, principal.user_id, ShiftAction.CONFIRM)
        return await self._apply(shift, ShiftAction.CONFIRM)

    async def check_in(self, principal: Principal, shift_id: UUID) -> Shift:
        shift = await self._get_or_404(shift_id)
        validate_caregiver_ownership(shift, principal.user_id, ShiftAction.CHECK_IN)
        return await self._apply(shift, ShiftAction.CHECK_IN, checked_in_at=self.now())

    async def check_out(
        self,
        principal: Principal,
        shift_id: UUID,
        handoff_notes: Optional[str] = None,
    ) -> Shift:
        """
        Complete a shift and hand off to the next rostered caregiver.

        The handoff lookup and notification happen after the completion is
        committed and cannot undo it.
        """
        shift = await self._get_or_404(shift_id)
        validate_caregiver_ownership(shift, principal.user_id, ShiftAction.CHECK_OUT)

        shift = await self._apply(
            shift,
            ShiftAction.CHECK_OUT,
            checked_out_at=check_out_time(shift, self.now()),
            handoff_notes=handoff_notes if handoff_notes is not None else shift.handoff_notes,
        )

        next_shift = await self.repository.get_next_after(shift)
        if next_shift:
            logger.info(f"Handoff from shift {shift.id} to shift {next_shift.id}")
            self.events.publish_shift_handoff(shift, next_shift, shift.handoff_notes)
        return shift

    async def cancel_shift(self, principal: Principal, shift_id: UUID) -> Shift:
        """Only the assigned caregiver or a family admin may cancel."""
        shift = await self._get_or_404(shift_id)
        if shift.caregiver_id != principal.user_id:
            await self.guard.require(principal, shift.care_recipient_id, Capability.SHIFT_CANCEL_ANY)

        shift = await self._apply(shift, ShiftAction.CANCEL)
        self.events.publish_shift_cancelled(shift, principal.user_id)
        return shift

    async def mark_no_show(self, principal: Principal, shift_id: UUID) -> Shift:
        """Entry point for an external job or an admin; never triggered here."""
        shift = await self._get_or_404(shift_id)
        await self.guard.require(principal, shift.care_recipient_id, Capability.SHIFT_MARK_NO_SHOW)
        validate_transition(shift, ShiftAction.MARK_NO_SHOW)
        if not is_no_show_candidate(shift, self.now()):
            raise ShiftNotStartedException(shift.id)
        return await self._apply(shift, ShiftAction.MARK_NO_SHOW)

    async def get_shift(self, principal: Principal, shift_id: UUID) -> ShiftResponse:
        shift = await self.cache.get_or_set(
            cache_keys.shift(shift_id),
            lambda: self._load(shift_id),
            cache_keys.SHIFT_TTL,
            SHIFT_ADAPTER,
        )
        if shift is None:
            raise ShiftNotFoundException(shift_id)
        if shift.caregiver_id != principal.user_id:
            await self.guard.require(principal, shift.care_recipient_id, Capability.SHIFT_READ)
        return shift

    async def get_current_shift(self, principal: Principal, care_recipient_id: UUID) -> Optional[ShiftResponse]:
        await self.guard.require(principal, care_recipient_id, Capability.SHIFT_READ)

        async def load():
            shift = await self.repository.get_current(care_recipient_id, self.now())
            return ShiftResponse.model_validate(shift) if shift else None

        return await self.cache.get_or_set(
            cache_keys.shift_current(care_recipient_id),
            load,
            cache_keys.SHIFT_CURRENT_TTL,
            SHIFT_ADAPTER,
        )

    async def get_upcoming_shifts(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        days: int = 7,
    ) -> List[ShiftResponse]:
        await self.guard.require(principal, care_recipient_id, Capability.SHIFT_READ)

        async def load():
            now = self.now()
            shifts = await self.repository.get_upcoming(care_recipient_id, now, now + timedelta(days=days))
            return [ShiftResponse.model_validate(s) for s in shifts]

        return await self.cache.get_or_set(
            cache_keys.shifts_upcoming(care_recipient_id, days),
            load,
            cache_keys.SHIFTS_UPCOMING_TTL,
            SHIFT_LIST_ADAPTER,
        )

    async def get_shifts_for_day(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        day: date,
    ) -> List[ShiftResponse]:
        await self.guard.require(principal, care_recipient_id, Capability.SHIFT_READ)

        async def load():
            start, end = timezone.day_bounds(day)
            shifts = await self.repository.get_in_window(care_recipient_id, start, end)
            return [ShiftResponse.model_validate(s) for s in shifts]

        return await self.cache.get_or_set(
            cache_keys.shifts_day(care_recipient_id, day),
            load,
            cache_keys.SHIFTS_DAY_TTL,
            SHIFT_LIST_ADAPTER,
        )

    async def get_shifts_in_range(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        start: datetime,
        end: datetime,
        include_cancelled: bool = False,
    ) -> List[ShiftResponse]:
        await self.guard.require(principal, care_recipient_id, Capability.SHIFT_READ)
        start = timezone.to_care_clock(start)
        end = timezone.to_care_clock(end)
        if not start < end:
            raise ValidationException("end", "must be after start")
        shifts = await self.repository.get_in_window(care_recipient_id, start, end, include_cancelled)
        return [ShiftResponse.model_validate(s) for s in shifts]

    async def get_my_shifts(self, principal: Principal, upcoming_only: bool = True) -> List[ShiftResponse]:
        """The principal's own non-cancelled shifts across all care recipients"""
        since = self.now() if upcoming_only else None
        shifts = await self.repository.get_by_caregiver(principal.user_id, since)
        return [ShiftResponse.model_validate(s) for s in shifts]

    async def _get_or_404(self, shift_id: UUID) -> Shift:
        shift = await self.repository.get_by_id(shift_id)
        if not shift:
            raise ShiftNotFoundException(shift_id)
        return shift

    async def _load(self, shift_id: UUID) -> Optional[ShiftResponse]:
        shift = await self.repository.get_by_id(shift_id)
        return ShiftResponse.model_validate(shift) if shift else None

    async def _apply(self, shift: Shift, action: ShiftAction, **values) -> Shift:
        """Guarded compare-and-set transition, then cache invalidation"""
        validate_transition(shift, action)
        previous = shift.status
        applied = await self.repository.transition(
            shift,
            sources_for(action),
            status=target_for(action).value,
            **values,
        )
        if not applied:
            # lost a race; shift has been refreshed with the winner's status
            raise InvalidTransitionException(shift.id, shift.status, action.value)

        logger.info(f"Shift {shift.id}: {previous} -> {shift.status} ({action.value})")
        await self._invalidate(shift)
        return shift

    async def _invalidate(self, shift: Shift):
        recipient_id = shift.care_recipient_id
        keys = [
            cache_keys.shift(shift.id),
            cache_keys.shift_current(recipient_id),
        ]
        keys.extend(
            cache_keys.shifts_day(recipient_id, day)
            for day in timezone.days_touched(shift.start_time, shift.end_time)
        )
        await self.cache.invalidate(
            keys,
            patterns=[
                cache_keys.shifts_upcoming_pattern(recipient_id),
                cache_keys.shifts_day_pattern(recipient_id),
            ],
        )
