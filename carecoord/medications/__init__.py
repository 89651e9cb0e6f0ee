from carecoord.medications.models import Medication, MedicationLog, MedicationLogStatus
from carecoord.medications.repository import MedicationLogRepository, MedicationRepository
from carecoord.medications.service import MedicationService

__all__ = [
    "Medication",
    "MedicationLog",
    "MedicationLogStatus",
    "MedicationLogRepository",
    "MedicationRepository",
    "MedicationService",
]
