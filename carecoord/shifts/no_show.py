"""No-show detection for shifts nobody checked into"""
from datetime import datetime, timedelta

from carecoord import config
from carecoord.shifts.models import Shift
from carecoord.shifts.state_machine import ShiftAction, can_transition


def no_show_cutoff(shift: Shift, grace_minutes: int = config.NO_SHOW_GRACE_MINUTES) -> datetime:
    return shift.start_time + timedelta(minutes=grace_minutes)


def is_no_show_candidate(
    shift: Shift,
    now: datetime,
    grace_minutes: int = config.NO_SHOW_GRACE_MINUTES,
) -> bool:
    """Never checked in, still on the roster, and past start plus grace."""
    if not can_transition(shift.status, ShiftAction.MARK_NO_SHOW):
        return False
    return now >= no_show_cutoff(shift, grace_minutes)
