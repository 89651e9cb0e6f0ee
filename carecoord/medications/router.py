from uuid import UUID
from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carecoord.auth.middleware import verify_token
from carecoord.auth.models import Principal
from carecoord.cache.service import CacheService, get_cache
from carecoord.db.postgres import get_db
from carecoord.medications.interactions import interaction_checker
from carecoord.medications.schemas import (
    AdherenceStatsResponse,
    CheckInteractionsRequest,
    CheckNewMedicationRequest,
    CreateMedicationRequest,
    InteractionCheckResponse,
    InteractionDetailsResponse,
    KnownInteractionsResponse,
    LogDoseRequest,
    MedicationListResponse,
    MedicationLogListResponse,
    MedicationLogResponse,
    MedicationResponse,
    NewMedicationInteractionResponse,
    RefillRequest,
    ScheduleResponse,
    UpdateMedicationRequest,
)
from carecoord.medications.service import MedicationService
from carecoord.notifications.outbox import get_notification_sink
from carecoord.notifications.sink import NotificationSink
from carecoord.utils import timezone

recipient_router = APIRouter(
    prefix="/care-recipients/{care_recipient_id}/medications",
    tags=["medications"],
)

router = APIRouter(
    prefix="/medications",
    tags=["medications"],
)


def get_medication_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    sink: NotificationSink = Depends(get_notification_sink),
) -> MedicationService:
    return MedicationService(db, cache, sink)


def to_list(medications) -> MedicationListResponse:
    items = [MedicationResponse.model_validate(m) for m in medications]
    return MedicationListResponse(medications=items, count=len(items))


@recipient_router.post("", response_model=MedicationResponse, status_code=status.HTTP_201_CREATED)
async def create_medication(
    care_recipient_id: UUID,
    request: CreateMedicationRequest,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    """
    Add a medication to a care recipient's plan.

    scheduled_times are daily HH:MM times; duplicates are rejected.
    """
    medication = await service.create_medication(principal, care_recipient_id, request)
    return MedicationResponse.model_validate(medication)


@recipient_router.get("", response_model=MedicationListResponse)
async def list_medications(
    care_recipient_id: UUID,
    active_only: bool = True,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    medications = await service.list_medications(principal, care_recipient_id, active_only)
    return to_list(medications)


@recipient_router.get("/schedule/today", response_model=ScheduleResponse)
async def get_today_schedule(
    care_recipient_id: UUID,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    """Today's expected doses with their logged status"""
    return await service.get_today_schedule(principal, care_recipient_id)


@recipient_router.get("/schedule/{day}", response_model=ScheduleResponse)
async def get_schedule_for_day(
    care_recipient_id: UUID,
    day: date,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    return await service.get_schedule_for_day(principal, care_recipient_id, day)


@recipient_router.get("/low-supply", response_model=MedicationListResponse)
async def get_low_supply_medications(
    care_recipient_id: UUID,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    """Active medications at or below their refill threshold"""
    medications = await service.get_low_supply_medications(principal, care_recipient_id)
    return to_list(medications)


@recipient_router.get("/interactions", response_model=InteractionCheckResponse)
async def check_interactions(
    care_recipient_id: UUID,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    """Known drug interactions among the active medications, grouped by severity"""
    return await service.check_interactions(principal, care_recipient_id)


@recipient_router.post("/interactions/check-new", response_model=NewMedicationInteractionResponse)
async def check_new_medication(
    care_recipient_id: UUID,
    request: CheckNewMedicationRequest,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    """Interactions a new medication would have with the active plan, with warnings for serious ones"""
    return await service.check_new_medication(principal, care_recipient_id, request.name, request.generic_name)


@router.post("/interactions/check", response_model=InteractionCheckResponse)
async def check_medication_list(
    request: CheckInteractionsRequest,
    principal: Principal = Depends(verify_token),
):
    return interaction_checker.check(request.medications, timezone.now())


@router.get("/interactions/details", response_model=InteractionDetailsResponse)
async def get_interaction_details(
    drug1: str = Query(..., min_length=1),
    drug2: str = Query(..., min_length=1),
    principal: Principal = Depends(verify_token),
):
    interaction = interaction_checker.details(drug1, drug2)
    if interaction is None:
        return InteractionDetailsResponse(found=False, message="No known interaction between these medications.")
    return InteractionDetailsResponse(found=True, interaction=interaction)


@router.get("/interactions/known", response_model=KnownInteractionsResponse)
async def list_known_interactions(principal: Principal = Depends(verify_token)):
    interactions = interaction_checker.known()
    return KnownInteractionsResponse(total=len(interactions), interactions=interactions)


@router.get("/{medication_id}", response_model=MedicationResponse)
async def get_medication(
    medication_id: UUID,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    medication = await service.get_medication(principal, medication_id)
    return MedicationResponse.model_validate(medication)


@router.patch("/{medication_id}", response_model=MedicationResponse)
async def update_medication(
    medication_id: UUID,
    request: UpdateMedicationRequest,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    medication = await service.update_medication(principal, medication_id, request)
    return MedicationResponse.model_validate(medication)


@router.post("/{medication_id}/deactivate", response_model=MedicationResponse)
async def deactivate_medication(
    medication_id: UUID,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    medication = await service.deactivate_medication(principal, medication_id)
    return MedicationResponse.model_validate(medication)


@router.post("/{medication_id}/logs", response_model=MedicationLogResponse, status_code=status.HTTP_201_CREATED)
async def log_dose(
    medication_id: UUID,
    request: LogDoseRequest,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    """
    Record a dose as GIVEN, SKIPPED or MISSED.

    A GIVEN dose decrements tracked supply; the family is alerted when the
    supply reaches the refill threshold.
    """
    log = await service.log_dose(
        principal,
        medication_id,
        status=request.status,
        scheduled_time=request.scheduled_time,
        notes=request.notes,
        skip_reason=request.skip_reason,
    )
    return MedicationLogResponse.model_validate(log)


@router.get("/{medication_id}/logs", response_model=MedicationLogListResponse)
async def get_logs(
    medication_id: UUID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=500),
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    """Administration history, newest first"""
    logs = await service.get_logs(principal, medication_id, start, end, limit)
    items = [MedicationLogResponse.model_validate(log) for log in logs]
    return MedicationLogListResponse(logs=items, count=len(items))


@router.get("/{medication_id}/adherence", response_model=AdherenceStatsResponse)
async def get_adherence_stats(
    medication_id: UUID,
    days: int = Query(30, ge=1, le=365),
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    return await service.get_adherence_stats(principal, medication_id, days)


@router.post("/{medication_id}/refill", response_model=MedicationResponse)
async def record_refill(
    medication_id: UUID,
    request: RefillRequest,
    service: MedicationService = Depends(get_medication_service),
    principal: Principal = Depends(verify_token),
):
    medication = await service.record_refill(principal, medication_id, request.quantity)
    return MedicationResponse.model_validate(medication)
