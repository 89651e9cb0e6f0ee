"""Shift status state machine"""
from enum import Enum
from typing import Dict, FrozenSet


class ShiftStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class ShiftAction(str, Enum):
    CONFIRM = "confirm"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    CANCEL = "cancel"
    MARK_NO_SHOW = "mark_no_show"


TERMINAL_STATUSES: FrozenSet[ShiftStatus] = frozenset({
    ShiftStatus.COMPLETED,
    ShiftStatus.CANCELLED,
    ShiftStatus.NO_SHOW,
})

# Statuses that still count as "on the roster"
ACTIVE_STATUSES: FrozenSet[ShiftStatus] = frozenset({
    ShiftStatus.SCHEDULED,
    ShiftStatus.CONFIRMED,
    ShiftStatus.IN_PROGRESS,
})

# action -> (allowed source statuses, target status)
TRANSITIONS: Dict[ShiftAction, tuple] = {
    ShiftAction.CONFIRM: (frozenset({ShiftStatus.SCHEDULED}), ShiftStatus.CONFIRMED),
    ShiftAction.CHECK_IN: (
        frozenset({ShiftStatus.SCHEDULED, ShiftStatus.CONFIRMED}),
        ShiftStatus.IN_PROGRESS,
    ),
    ShiftAction.CHECK_OUT: (frozenset({ShiftStatus.IN_PROGRESS}), ShiftStatus.COMPLETED),
    ShiftAction.CANCEL: (ACTIVE_STATUSES, ShiftStatus.CANCELLED),
    ShiftAction.MARK_NO_SHOW: (
        frozenset({ShiftStatus.SCHEDULED, ShiftStatus.CONFIRMED}),
        ShiftStatus.NO_SHOW,
    ),
}

# Position along the forward graph; a status never moves to a lower rank
STATUS_RANK: Dict[ShiftStatus, int] = {
    ShiftStatus.SCHEDULED: 0,
    ShiftStatus.CONFIRMED: 1,
    ShiftStatus.IN_PROGRESS: 2,
    ShiftStatus.COMPLETED: 3,
    ShiftStatus.CANCELLED: 3,
    ShiftStatus.NO_SHOW: 3,
}


def sources_for(action: ShiftAction) -> FrozenSet[ShiftStatus]:
    return TRANSITIONS[action][0]


def target_for(action: ShiftAction) -> ShiftStatus:
    return TRANSITIONS[action][1]


def can_transition(current: ShiftStatus, action: ShiftAction) -> bool:
    return ShiftStatus(current) in sources_for(action)


def is_terminal(status: ShiftStatus) -> bool:
    return ShiftStatus(status) in TERMINAL_STATUSES
