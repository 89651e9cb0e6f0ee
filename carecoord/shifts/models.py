from datetime import datetime
from uuid import uuid4
from sqlalchemy import Column, String, DateTime, Text, Uuid, Index
from carecoord.db.base import Base


class Shift(Base):
    """Caregiver shift for a care recipient, half-open window [start_time, end_time)"""
    __tablename__ = "caregiver_shifts"
    __table_args__ = (
        Index("ix_caregiver_shifts_recipient_start", "care_recipient_id", "start_time"),
        Index("ix_caregiver_shifts_caregiver_start", "caregiver_id", "start_time"),
        {'extend_existing': True},
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    care_recipient_id = Column(Uuid, nullable=False)
    caregiver_id = Column(Uuid, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), default="SCHEDULED", nullable=False, index=True)
    checked_in_at = Column(DateTime, nullable=True)
    checked_out_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    handoff_notes = Column(Text, nullable=True)
    created_by_id = Column(Uuid, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
