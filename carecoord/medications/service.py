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
from carecoord.exceptions import ValidationException
from carecoord.medications.adherence import compute_adherence
from carecoord.medications.event_publisher import MedicationEventPublisher
from carecoord.medications.interactions import interaction_checker
from carecoord.medications.exceptions import MedicationNotFoundException
from carecoord.medications.models import Medication, MedicationLog, MedicationLogStatus
from carecoord.medications.repository import MedicationLogRepository, MedicationRepository
from carecoord.medications.schedule import materialize_day
from carecoord.medications.schemas import (
    AdherenceStatsResponse,
    CreateMedicationRequest,
    InteractionCheckResponse,
    MedicationResponse,
    NewMedicationInteractionResponse,
    ScheduleResponse,
    UpdateMedicationRequest,
)
from carecoord.medications.validators import (
    normalize_scheduled_times,
    validate_date_window,
    validate_non_negative,
    validate_refill_quantity,
)
from carecoord.notifications.sink import NotificationSink
from carecoord.utils import timezone

logger = logging.getLogger(__name__)

MEDICATION_LIST_ADAPTER = TypeAdapter(List[MedicationResponse])
SCHEDULE_ADAPTER = TypeAdapter(ScheduleResponse)

# Columns a partial update may change but never clear
REQUIRED_FIELDS = ("name", "dosage", "form", "frequency", "scheduled_times")


def plan_names(medications) -> List[str]:
    names = []
    for medication in medications:
        names.append(medication.name)
        if medication.generic_name:
            names.append(medication.generic_name)
    return names


class MedicationService:
    """Medication plans, dose logging with supply tracking, schedules and adherence"""

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
        self.repository = MedicationRepository(db)
        self.log_repository = MedicationLogRepository(db)
        self.guard = AccessGuard(db)
        self.events = MedicationEventPublisher(sink)

    async def create_medication(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        request: CreateMedicationRequest,
    ) -> Medication:
        await self.guard.require(principal, care_recipient_id, Capability.MEDICATION_MANAGE)

        scheduled_times = normalize_scheduled_times(request.scheduled_times)
        validate_date_window(request.start_date, request.end_date)
        validate_non_negative("current_supply", request.current_supply)
        validate_non_negative("refill_at", request.refill_at)

        medication = await self.repository.create(Medication(
            care_recipient_id=care_recipient_id,
            name=request.name,
            generic_name=request.generic_name,
            dosage=request.dosage,
            form=request.form.value,
            frequency=request.frequency.value,
            instructions=request.instructions,
            scheduled_times=scheduled_times,
            current_supply=request.current_supply,
            refill_at=request.refill_at,
            start_date=request.start_date or self.now().date(),
            end_date=request.end_date,
            notes=request.notes,
            created_by_id=principal.user_id,
        ))
        logger.info(f"Medication {medication.id} ({medication.name}) added for recipient {care_recipient_id}")

        await self._invalidate(care_recipient_id)
        return medication

    async def list_medications(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        active_only: bool = True,
    ) -> List[MedicationResponse]:
        await self.guard.require(principal, care_recipient_id, Capability.MEDICATION_READ)

        async def load():
            medications = await self.repository.list_by_recipient(care_recipient_id, active_only)
            return [MedicationResponse.model_validate(m) for m in medications]

        if not active_only:
            return await load()
        return await self.cache.get_or_set(
            cache_keys.medications(care_recipient_id),
            load,
            cache_keys.MEDICATIONS_TTL,
            MEDICATION_LIST_ADAPTER,
        )

    async def get_medication(self, principal: Principal, medication_id: UUID) -> Medication:
        medication = await self._get_or_404(medication_id)
        await self.guard.require(principal, medication.care_recipient_id, Capability.MEDICATION_READ)
        return medication

    async def update_medication(
        self,
        principal: Principal,
        medication_id: UUID,
        request: UpdateMedicationRequest,
    ) -> Medication:
        """Apply the fields present in the request"""
        medication = await self._get_or_404(medication_id)
        await self.guard.require(principal, medication.care_recipient_id, Capability.MEDICATION_MANAGE)

        changes = request.model_dump(exclude_unset=True)
        for field in REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                raise ValidationException(field, "must not be null")
        if "scheduled_times" in changes:
            changes["scheduled_times"] = normalize_scheduled_times(changes["scheduled_times"])
        for field in ("form", "frequency"):
            if changes.get(field) is not None:
                changes[field] = changes[field].value
        validate_non_negative("current_supply", changes.get("current_supply"))
        validate_non_negative("refill_at", changes.get("refill_at"))
        validate_date_window(
            changes.get("start_date", medication.start_date),
            changes.get("end_date", medication.end_date),
        )

        for field, value in changes.items():
            setattr(medication, field, value)
        medication = await self.repository.update(medication)
        logger.info(f"Medication {medication.id} updated: {', '.join(sorted(changes)) or 'no changes'}")

        await self._invalidate(medication.care_recipient_id)
        return medication

    async def deactivate_medication(self, principal: Principal, medication_id: UUID) -> Medication:
        """Soft delete; logs and history are kept"""
        medication = await self._get_or_404(medication_id)
        await self.guard.require(principal, medication.care_recipient_id, Capability.MEDICATION_MANAGE)

        medication.is_active = False
        medication = await self.repository.update(medication)
        logger.info(f"Medication {medication.id} deactivated")

        await self._invalidate(medication.care_recipient_id)
        return medication

    async def log_dose(
        self,
        principal: Principal,
        medication_id: UUID,
        status: MedicationLogStatus,
        scheduled_time: datetime,
        notes: Optional[str] = None,
        skip_reason: Optional[str] = None,
    ) -> MedicationLog:
        """
        Record an administration fact for a scheduled slot.

        Steps:
        1. Authorize medication:log on the owning care recipient
        2. In one transaction insert the log and, for a GIVEN dose with
           tracked supply, decrement the supply (floored at zero)
        3. After commit invalidate caches and raise a refill alert when the
           remaining supply is at or below the threshold
        """
        medication = await self._get_or_404(medication_id)
        decision = await self.guard.require(principal, medication.care_recipient_id, Capability.MEDICATION_LOG)

        status = MedicationLogStatus(status)
        log = self.log_repository.add(MedicationLog(
            medication_id=medication.id,
            status=status.value,
            scheduled_time=timezone.to_care_clock(scheduled_time),
            given_time=self.now() if status == MedicationLogStatus.GIVEN else None,
            logged_by_id=principal.user_id,
            skip_reason=skip_reason,
            notes=notes,
        ))

        supply = None
        if status == MedicationLogStatus.GIVEN:
            supply = await self.repository.decrement_supply(medication.id)

        await self.db.commit()
        await self.db.refresh(log)
        await self.db.refresh(medication)
        logger.info(f"Logged {status.value} for medication {medication.id} at {log.scheduled_time.isoformat()}")

        await self._invalidate(medication.care_recipient_id)

        if supply is not None:
            current_supply, refill_at = supply
            if refill_at is not None and current_supply <= refill_at:
                logger.info(f"Medication {medication.id} needs refill: {current_supply} left (threshold {refill_at})")
                self.events.publish_refill_needed(medication, decision.care_recipient, current_supply)
        return log

    async def get_logs(
        self,
        principal: Principal,
        medication_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[MedicationLog]:
        medication = await self._get_or_404(medication_id)
        await self.guard.require(principal, medication.care_recipient_id, Capability.MEDICATION_READ)
        return await self.log_repository.list_for_medication(
            medication.id,
            timezone.to_care_clock(start),
            timezone.to_care_clock(end),
            limit,
        )

    async def get_adherence_stats(
        self,
        principal: Principal,
        medication_id: UUID,
        days: int = 30,
    ) -> AdherenceStatsResponse:
        """Counts by status over logs scheduled in [now - days, now]"""
        medication = await self._get_or_404(medication_id)
        await self.guard.require(principal, medication.care_recipient_id, Capability.MEDICATION_READ)
        if days < 1:
            raise ValidationException("days", "must be at least 1")

        now = self.now()
        logs = await self.log_repository.list_in_window(medication.id, now - timedelta(days=days), now)
        return AdherenceStatsResponse(medication_id=medication.id, days=days, **compute_adherence(logs))

    async def get_low_supply_medications(self, principal: Principal, care_recipient_id: UUID) -> List[Medication]:
        await self.guard.require(principal, care_recipient_id, Capability.MEDICATION_READ)
        return await self.repository.find_low_supply(care_recipient_id)

    async def record_refill(self, principal: Principal, medication_id: UUID, quantity: int) -> Medication:
        medication = await self._get_or_404(medication_id)
        await self.guard.require(principal, medication.care_recipient_id, Capability.MEDICATION_REFILL)
        validate_refill_quantity(quantity)

        await self.repository.add_supply(medication.id, quantity)
        await self.db.commit()
        await self.db.refresh(medication)
        logger.info(f"Medication {medication.id} refilled by {quantity}; supply now {medication.current_supply}")

        await self._invalidate(medication.care_recipient_id)
        return medication

    async def get_schedule_for_day(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        day: date,
    ) -> ScheduleResponse:
        """Every expected dose of the day with its logged status, or PENDING"""
        await self.guard.require(principal, care_recipient_id, Capability.MEDICATION_READ)

        async def load():
            medications = await self.repository.list_by_recipient(care_recipient_id, active_only=True)
            start, end = timezone.day_bounds(day)
            logs = await self.log_repository.list_for_recipient(care_recipient_id, start, end)
            slots = materialize_day(medications, logs, day)
            return ScheduleResponse(care_recipient_id=care_recipient_id, day=day, slots=slots, count=len(slots))

        return await self.cache.get_or_set(
            cache_keys.medication_schedule(care_recipient_id, day),
            load,
            cache_keys.MEDICATION_SCHEDULE_TTL,
            SCHEDULE_ADAPTER,
        )

    async def get_today_schedule(self, principal: Principal, care_recipient_id: UUID) -> ScheduleResponse:
        return await self.get_schedule_for_day(principal, care_recipient_id, self.now().date())

    async def check_interactions(self, principal: Principal, care_recipient_id: UUID) -> InteractionCheckResponse:
        """Known interactions among the active plan, brand and generic names both checked"""
        await self.guard.require(principal, care_recipient_id, Capability.MEDICATION_READ)
        medications = await self.repository.list_by_recipient(care_recipient_id, active_only=True)
        return interaction_checker.check(plan_names(medications), self.now())

    async def check_new_medication(
        self,
        principal: Principal,
        care_recipient_id: UUID,
        name: str,
        generic_name: Optional[str] = None,
    ) -> NewMedicationInteractionResponse:
        """Would adding this medication interact with the active plan?"""
        await self.guard.require(principal, care_recipient_id, Capability.MEDICATION_READ)
        medications = await self.repository.list_by_recipient(care_recipient_id, active_only=True)

        names = [name] + ([generic_name] if generic_name else []) + plan_names(medications)
        result = interaction_checker.check(names, self.now())
        warnings = interaction_checker.warnings_for(result, name, generic_name)
        if warnings:
            logger.warning(f"{len(warnings)} serious interaction(s) for {name} with recipient {care_recipient_id}'s plan")
        return NewMedicationInteractionResponse(**result.model_dump(), warnings=warnings)

    async def _get_or_404(self, medication_id: UUID) -> Medication:
        medication = await self.repository.get_by_id(medication_id)
        if not medication:
            raise MedicationNotFoundException(medication_id)
        return medication

    async def _invalidate(self, care_recipient_id: UUID):
        await self.cache.invalidate(
            [cache_keys.medications(care_recipient_id)],
            patterns=[cache_keys.medication_schedule_pattern(care_recipient_id)],
        )
