"""Event publisher for medications"""
from carecoord.db.models import CareRecipient
from carecoord.medications.models import Medication
from carecoord.notifications.events import EventKind
from carecoord.notifications.sink import NotificationSink


class MedicationEventPublisher:
    """Builds medication event payloads and hands them to the notification sink"""

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    def publish_refill_needed(self, medication: Medication, care_recipient: CareRecipient, current_supply: int):
        """Tell the whole family a medication is at or below its refill threshold"""
        self.sink.notify(EventKind.MEDICATION_REFILL_NEEDED, {
            "medication_id": str(medication.id),
            "medication_name": medication.name,
            "care_recipient_id": str(care_recipient.id),
            "care_recipient_name": care_recipient.display_name,
            "family_id": str(care_recipient.family_id),
            "current_supply": current_supply,
            "refill_at": medication.refill_at,
        })
