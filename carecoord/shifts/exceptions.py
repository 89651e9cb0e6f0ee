"""Custom exceptions for shifts"""
from carecoord.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)


class ShiftNotFoundException(NotFoundException):
    """Raised when a shift is not found"""
    def __init__(self, shift_id=None):
        super().__init__("Shift", shift_id)


class ShiftConflictException(ConflictException):
    """Raised when a new shift overlaps an existing shift of the same caregiver"""
    def __init__(self, caregiver_id, conflicting_shift_id):
        self.caregiver_id = caregiver_id
        self.conflicting_shift_id = conflicting_shift_id
        super().__init__(
            f"Shift overlaps existing shift {conflicting_shift_id} for caregiver {caregiver_id}",
            entity_id=conflicting_shift_id,
        )


class InvalidShiftWindowException(ValidationException):
    """Raised when end_time is not after start_time"""
    def __init__(self):
        super().__init__("end_time", "must be after start_time")


class NotAssignedCaregiverException(ForbiddenException):
    """Raised when someone other than the assigned caregiver acts on a shift"""
    def __init__(self, action: str):
        super().__init__(f"Only the assigned caregiver can {action.replace('_', ' ')} this shift")


class ShiftNotStartedException(ValidationException):
    """Raised when a shift is marked no-show before its grace period has elapsed"""
    def __init__(self, shift_id):
        super().__init__("start_time", f"shift {shift_id} has not passed its check-in grace period")
