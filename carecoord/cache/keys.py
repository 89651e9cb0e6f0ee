"""Cache key patterns and TTLs.

Key naming convention: {domain}:{entity}:{id}
"""
from datetime import date
from uuid import UUID


def shift(shift_id: UUID) -> str:
    return f"shift:{shift_id}"


def shift_current(care_recipient_id: UUID) -> str:
    return f"recipient:shifts:current:{care_recipient_id}"


def shifts_upcoming(care_recipient_id: UUID, days: int) -> str:
    return f"recipient:shifts:upcoming:{care_recipient_id}:{days}"


def shifts_upcoming_pattern(care_recipient_id: UUID) -> str:
    return f"recipient:shifts:upcoming:{care_recipient_id}:*"


def shifts_day(care_recipient_id: UUID, day: date) -> str:
    return f"recipient:shifts:{care_recipient_id}:{day.isoformat()}"


def shifts_day_pattern(care_recipient_id: UUID) -> str:
    return f"recipient:shifts:{care_recipient_id}:*"


def medications(care_recipient_id: UUID) -> str:
    return f"recipient:medications:{care_recipient_id}"


def medication_schedule(care_recipient_id: UUID, day: date) -> str:
    return f"recipient:schedule:{care_recipient_id}:{day.isoformat()}"


def medication_schedule_pattern(care_recipient_id: UUID) -> str:
    return f"recipient:schedule:{care_recipient_id}:*"


# TTL values in seconds
SHIFT_TTL = 60
SHIFT_CURRENT_TTL = 60           # real-time
SHIFTS_UPCOMING_TTL = 120
SHIFTS_DAY_TTL = 180
MEDICATIONS_TTL = 120
MEDICATION_SCHEDULE_TTL = 120
