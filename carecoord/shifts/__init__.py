from carecoord.shifts.models import Shift
from carecoord.shifts.repository import ShiftRepository
from carecoord.shifts.service import ShiftService
from carecoord.shifts.state_machine import ShiftStatus

__all__ = ["Shift", "ShiftRepository", "ShiftService", "ShiftStatus"]
