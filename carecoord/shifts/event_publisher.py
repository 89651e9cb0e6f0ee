"""Event publisher for shifts"""
from typing import Optional

from carecoord.notifications.events import EventKind
from carecoord.notifications.sink import NotificationSink
from carecoord.shifts.models import Shift


class ShiftEventPublisher:
    """Builds shift event payloads and hands them to the notification sink"""

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    def _shift_data(self, shift: Shift) -> dict:
        return {
            "shift_id": str(shift.id),
            "care_recipient_id": str(shift.care_recipient_id),
            "caregiver_id": str(shift.caregiver_id),
            "start_time": shift.start_time.isoformat(),
            "end_time": shift.end_time.isoformat(),
            "status": shift.status,
        }

    def publish_shift_assigned(self, shift: Shift):
        """Tell the caregiver they were put on the roster"""
        self.sink.notify(EventKind.SHIFT_ASSIGNED, {
            **self._shift_data(shift),
            "recipient_user_id": str(shift.caregiver_id),
            "assigned_by_id": str(shift.created_by_id),
        })

    def publish_shift_handoff(self, outgoing: Shift, incoming: Shift, handoff_notes: Optional[str]):
        """Tell the next caregiver the previous shift has ended"""
        self.sink.notify(EventKind.SHIFT_HANDOFF, {
            "care_recipient_id": str(outgoing.care_recipient_id),
            "from_caregiver_id": str(outgoing.caregiver_id),
            "to_caregiver_id": str(incoming.caregiver_id),
            "from_shift_id": str(outgoing.id),
            "to_shift_id": str(incoming.id),
            "handoff_notes": handoff_notes,
            "recipient_user_id": str(incoming.caregiver_id),
        })

    def publish_shift_cancelled(self, shift: Shift, cancelled_by_id):
        self.sink.notify(EventKind.SHIFT_CANCELLED, {
            **self._shift_data(shift),
            "cancelled_by_id": str(cancelled_by_id),
            "recipient_user_id": str(shift.caregiver_id),
        })
