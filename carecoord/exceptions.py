"""Error taxonomy shared by the shift and medication modules"""
from typing import Optional
from fastapi import HTTPException, status


class NotFoundException(HTTPException):
    """Raised when a referenced entity does not exist"""
    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        detail = f"{entity} not found"
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ForbiddenException(HTTPException):
    """Raised on authorization failures: missing membership, wrong role, not the assignee"""
    def __init__(self, reason: str, role: Optional[str] = None):
        self.reason = reason
        self.role = role
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=reason)


class ConflictException(HTTPException):
    """Raised when a write collides with existing state"""
    def __init__(self, detail: str, entity_id=None):
        self.entity_id = entity_id
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidTransitionException(HTTPException):
    """Raised when a shift state machine guard is violated"""
    def __init__(self, shift_id, current_status: str, action: str):
        self.shift_id = shift_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot {action.replace('_', ' ')} shift {shift_id} with status: {current_status}",
        )


class ValidationException(HTTPException):
    """Raised for malformed input"""
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {field}: {message}",
        )
