from datetime import datetime, date
from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, String, DateTime, Date, Text, Integer, Boolean, Uuid, JSON, ForeignKey, Index
from carecoord.db.base import Base


class MedicationLogStatus(str, Enum):
    GIVEN = "GIVEN"
    SKIPPED = "SKIPPED"
    MISSED = "MISSED"


class MedicationForm(str, Enum):
    TABLET = "tablet"
    CAPSULE = "capsule"
    LIQUID = "liquid"
    INJECTION = "injection"
    PATCH = "patch"
    CREAM = "cream"
    INHALER = "inhaler"
    DROPS = "drops"
    SUPPOSITORY = "suppository"
    OTHER = "other"


class MedicationFrequency(str, Enum):
    ONCE_DAILY = "once_daily"
    TWICE_DAILY = "twice_daily"
    THREE_TIMES_DAILY = "three_times_daily"
    FOUR_TIMES_DAILY = "four_times_daily"
    EVERY_OTHER_DAY = "every_other_day"
    WEEKLY = "weekly"
    AS_NEEDED = "as_needed"
    CUSTOM = "custom"


class Medication(Base):
    """Recurring daily dosing plan for a care recipient"""
    __tablename__ = "medications"
    __table_args__ = (
        Index("ix_medications_recipient_active", "care_recipient_id", "is_active"),
        {'extend_existing': True},
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    care_recipient_id = Column(Uuid, nullable=False)
    name = Column(String(255), nullable=False)
    generic_name = Column(String(255), nullable=True)
    dosage = Column(String(100), nullable=False)
    form = Column(String(30), nullable=False, default=MedicationForm.TABLET.value)
    frequency = Column(String(30), nullable=False, default=MedicationFrequency.ONCE_DAILY.value)
    instructions = Column(Text, nullable=True)
    scheduled_times = Column(JSON, nullable=False, default=list)  # ["08:00", "20:00"]
    current_supply = Column(Integer, nullable=True)
    refill_at = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=True, default=date.today)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(Uuid, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def needs_refill(self) -> bool:
        return (
            self.current_supply is not None
            and self.refill_at is not None
            and self.current_supply <= self.refill_at
        )

    def is_scheduled_on(self, day: date) -> bool:
        """Active and inside [start_date, end_date]; missing bounds are open."""
        if not self.is_active:
            return False
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True


class MedicationLog(Base):
    """One administration fact answering a scheduled slot"""
    __tablename__ = "medication_logs"
    __table_args__ = (
        Index("ix_medication_logs_medication_scheduled", "medication_id", "scheduled_time"),
        {'extend_existing': True},
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    medication_id = Column(Uuid, ForeignKey("medications.id"), nullable=False)
    status = Column(String(20), nullable=False)  # GIVEN | SKIPPED | MISSED
    scheduled_time = Column(DateTime, nullable=False)
    given_time = Column(DateTime, nullable=True)
    logged_by_id = Column(Uuid, nullable=False)
    skip_reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
