"""Medication custom exceptions"""
from carecoord.exceptions import NotFoundException, ValidationException


class MedicationNotFoundException(NotFoundException):
    """Raised when a medication is not found"""
    def __init__(self, medication_id=None):
        super().__init__("Medication", medication_id)


class InvalidScheduledTimesException(ValidationException):
    """Raised when scheduled_times holds malformed or duplicate entries"""
    def __init__(self, message: str):
        super().__init__("scheduled_times", message)


class InvalidDateWindowException(ValidationException):
    """Raised when end_date precedes start_date"""
    def __init__(self):
        super().__init__("end_date", "must not be before start_date")


class InvalidQuantityException(ValidationException):
    def __init__(self, field: str, message: str = "must be a non-negative integer"):
        super().__init__(field, message)
