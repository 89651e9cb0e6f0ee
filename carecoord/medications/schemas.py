"""Medication Pydantic schemas"""
from uuid import UUID
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from carecoord.medications.models import MedicationForm, MedicationFrequency, MedicationLogStatus


class CreateMedicationRequest(BaseModel):
    """Request to add a medication to a care recipient's plan"""
    name: str = Field(..., min_length=1, max_length=255)
    generic_name: Optional[str] = Field(None, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)
    form: MedicationForm = MedicationForm.TABLET
    frequency: MedicationFrequency = MedicationFrequency.ONCE_DAILY
    instructions: Optional[str] = None
    scheduled_times: List[str] = Field(default_factory=list, description="Daily times, HH:MM")
    current_supply: Optional[int] = Field(None, ge=0)
    refill_at: Optional[int] = Field(None, ge=0, description="Supply count that triggers a refill alert")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None


class UpdateMedicationRequest(BaseModel):
    """Partial update; omitted fields are left unchanged"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    generic_name: Optional[str] = Field(None, max_length=255)
    dosage: Optional[str] = Field(None, min_length=1, max_length=100)
    form: Optional[MedicationForm] = None
    frequency: Optional[MedicationFrequency] = None
    instructions: Optional[str] = None
    scheduled_times: Optional[List[str]] = None
    current_supply: Optional[int] = Field(None, ge=0)
    refill_at: Optional[int] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None


class LogDoseRequest(BaseModel):
    """Record what happened at a scheduled slot"""
    status: MedicationLogStatus
    scheduled_time: datetime
    skip_reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class RefillRequest(BaseModel):
    quantity: int = Field(..., ge=1)


class MedicationResponse(BaseModel):
    id: UUID
    care_recipient_id: UUID
    name: str
    generic_name: Optional[str] = None
    dosage: str
    form: str
    frequency: str
    instructions: Optional[str] = None
    scheduled_times: List[str]
    current_supply: Optional[int] = None
    refill_at: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool
    needs_refill: bool = False
    notes: Optional[str] = None
    created_by_id: UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MedicationListResponse(BaseModel):
    medications: List[MedicationResponse]
    count: int


class MedicationLogResponse(BaseModel):
    id: UUID
    medication_id: UUID
    status: MedicationLogStatus
    scheduled_time: datetime
    given_time: Optional[datetime] = None
    logged_by_id: UUID
    skip_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MedicationLogListResponse(BaseModel):
    logs: List[MedicationLogResponse]
    count: int


class AdherenceStatsResponse(BaseModel):
    medication_id: UUID
    days: int
    given: int
    skipped: int
    missed: int
    total: int
    adherence_rate: float  # 0-100


class SlotStatus(str, Enum):
    PENDING = "PENDING"
    GIVEN = "GIVEN"
    SKIPPED = "SKIPPED"
    MISSED = "MISSED"


class MedicationSummary(BaseModel):
    id: UUID
    name: str
    dosage: str
    form: str
    instructions: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ScheduleSlot(BaseModel):
    """One expected dose: (medication, date, time), with its log status or PENDING"""
    medication: MedicationSummary
    day: date
    time: str
    scheduled_time: datetime
    status: SlotStatus
    log_id: Optional[UUID] = None
    given_time: Optional[datetime] = None
    logged_by_id: Optional[UUID] = None
    skip_reason: Optional[str] = None


class ScheduleResponse(BaseModel):
    care_recipient_id: UUID
    day: date
    slots: List[ScheduleSlot]
    count: int


class InteractionSeverity(str, Enum):
    CONTRAINDICATED = "contraindicated"
    MAJOR = "major"
    MODERATE = "moderate"
    MINOR = "minor"


class DrugInteraction(BaseModel):
    drug1: str
    drug2: str
    severity: InteractionSeverity
    description: str
    mechanism: Optional[str] = None
    clinical_effects: Optional[str] = None
    management: Optional[str] = None


class InteractionsBySeverity(BaseModel):
    contraindicated: List[DrugInteraction] = []
    major: List[DrugInteraction] = []
    moderate: List[DrugInteraction] = []
    minor: List[DrugInteraction] = []


class InteractionCheckResponse(BaseModel):
    """Known interactions among a set of medication names, grouped by severity"""
    has_interactions: bool
    total_interactions: int
    by_severity: InteractionsBySeverity
    checked_medications: List[str]
    checked_at: datetime


class NewMedicationInteractionResponse(InteractionCheckResponse):
    warnings: List[str] = []


class CheckInteractionsRequest(BaseModel):
    medications: List[str] = Field(..., min_length=1)


class CheckNewMedicationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    generic_name: Optional[str] = Field(None, max_length=255)


class InteractionDetailsResponse(BaseModel):
    found: bool
    interaction: Optional[DrugInteraction] = None
    message: Optional[str] = None


class KnownInteractionsResponse(BaseModel):
    total: int
    interactions: List[DrugInteraction]
