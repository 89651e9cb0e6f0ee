"""Domain events handed to the notification sink"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict
from uuid import UUID, uuid4
from pydantic import BaseModel, Field


class EventKind(str, Enum):
    SHIFT_ASSIGNED = "shift.assigned"
    SHIFT_HANDOFF = "shift.handoff"
    SHIFT_CANCELLED = "shift.cancelled"
    MEDICATION_REFILL_NEEDED = "medication.refillNeeded"
    EMERGENCY_ALERT = "emergency.alert"


class DomainEvent(BaseModel):
    """Envelope queued in the outbox and published to the broker"""
    id: UUID = Field(default_factory=uuid4)
    kind: EventKind
    payload: Dict[str, Any]
    occurred_at: datetime = Field(default_factory=datetime.utcnow)

    def to_message(self) -> Dict[str, Any]:
        return {
            "event": self.kind.value,
            "event_id": str(self.id),
            "occurred_at": self.occurred_at.isoformat(),
            "data": self.payload,
        }
