"""Validation logic for shifts"""
from datetime import datetime
from uuid import UUID

from carecoord.exceptions import InvalidTransitionException
from carecoord.shifts.exceptions import (
    InvalidShiftWindowException,
    NotAssignedCaregiverException,
)
from carecoord.shifts.models import Shift
from carecoord.shifts.state_machine import ShiftAction, can_transition


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """
    Half-open intervals [start_a, end_a) and [start_b, end_b) overlap.

    Covers starting inside, ending inside and full containment; touching
    windows (end_a == start_b) do not overlap.
    """
    return start_a < end_b and start_b < end_a


def validate_window(start_time: datetime, end_time: datetime) -> None:
    if not start_time < end_time:
        raise InvalidShiftWindowException()


def validate_transition(shift: Shift, action: ShiftAction) -> None:
    if not can_transition(shift.status, action):
        raise InvalidTransitionException(shift.id, shift.status, action.value)


def validate_caregiver_ownership(shift: Shift, user_id: UUID, action: ShiftAction) -> None:
    if shift.caregiver_id != user_id:
        raise NotAssignedCaregiverException(action.value)


def check_out_time(shift: Shift, now: datetime) -> datetime:
    """Check-out stamp that never precedes check-in"""
    if shift.checked_in_at and now < shift.checked_in_at:
        return shift.checked_in_at
    return now
