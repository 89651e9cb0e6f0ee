from uuid import UUID
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from carecoord.shifts.state_machine import ShiftStatus


class CreateShiftRequest(BaseModel):
    """Request to schedule a caregiver shift"""
    caregiver_id: UUID
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None


class CheckOutRequest(BaseModel):
    """Request to check out of a shift"""
    handoff_notes: Optional[str] = Field(None, description="Notes for the next caregiver")


class ShiftResponse(BaseModel):
    """Shift response"""
    id: UUID
    care_recipient_id: UUID
    caregiver_id: UUID
    start_time: datetime
    end_time: datetime
    status: ShiftStatus
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    notes: Optional[str] = None
    handoff_notes: Optional[str] = None
    created_by_id: UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ShiftListResponse(BaseModel):
    """List of shifts"""
    shifts: list[ShiftResponse]
    count: int
