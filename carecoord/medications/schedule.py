"""Daily medication schedule materialization.

Expands each medication's recurring daily times into concrete slots for one
calendar day and joins them against the sparse administration logs. Pure:
nothing here reads or writes storage.
"""
from datetime import date, datetime
from typing import Dict, Iterable, List, Tuple
from uuid import UUID

from carecoord.medications.models import Medication, MedicationLog
from carecoord.medications.schemas import MedicationSummary, ScheduleSlot, SlotStatus
from carecoord.utils.timezone import combine


def index_logs(logs: Iterable[MedicationLog]) -> Dict[Tuple[UUID, object], MedicationLog]:
    """(medication_id, scheduled_time) -> log; the most recently written log wins."""
    index: Dict[Tuple[UUID, object], MedicationLog] = {}
    for log in sorted(logs, key=lambda l: l.created_at or datetime.min):
        index[(log.medication_id, log.scheduled_time)] = log
    return index


def materialize_day(
    medications: Iterable[Medication],
    logs: Iterable[MedicationLog],
    day: date,
) -> List[ScheduleSlot]:
    logs_by_slot = index_logs(logs)
    slots: List[ScheduleSlot] = []

    for medication in medications:
        if not medication.is_scheduled_on(day):
            continue
        summary = MedicationSummary.model_validate(medication)
        for time_of_day in medication.scheduled_times or []:
            scheduled_time = combine(day, time_of_day)
            log = logs_by_slot.get((medication.id, scheduled_time))
            slots.append(ScheduleSlot(
                medication=summary,
                day=day,
                time=time_of_day,
                scheduled_time=scheduled_time,
                status=SlotStatus(log.status) if log else SlotStatus.PENDING,
                log_id=log.id if log else None,
                given_time=log.given_time if log else None,
                logged_by_id=log.logged_by_id if log else None,
                skip_reason=log.skip_reason if log else None,
            ))

    slots.sort(key=lambda s: (s.scheduled_time, s.medication.name, str(s.medication.id)))
    return slots
