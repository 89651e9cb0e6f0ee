from datetime import date, datetime
from uuid import uuid4

from carecoord.medications.adherence import compute_adherence
from carecoord.medications.models import Medication, MedicationLog
from carecoord.medications.schedule import materialize_day
from carecoord.medications.schemas import SlotStatus

DAY = date(2024, 3, 15)


def medication(name, times, **kwargs):
    fields = {
        "id": uuid4(),
        "care_recipient_id": uuid4(),
        "name": name,
        "dosage": "10mg",
        "form": "tablet",
        "scheduled_times": times,
        "is_active": True,
        "start_date": date(2024, 1, 1),
        "end_date": None,
    }
    fields.update(kwargs)
    return Medication(**fields)


def log(med, scheduled_time, status="GIVEN", created_at=None):
    return MedicationLog(
        id=uuid4(),
        medication_id=med.id,
        status=status,
        scheduled_time=scheduled_time,
        given_time=scheduled_time if status == "GIVEN" else None,
        logged_by_id=uuid4(),
        created_at=created_at or datetime(2024, 3, 15, 12),
    )


def test_every_scheduled_time_becomes_a_slot():
    m1 = medication("Metformin", ["08:00", "20:00"])
    m2 = medication("Aspirin", ["12:00"])

    slots = materialize_day([m1, m2], [], DAY)

    assert [(s.medication.name, s.scheduled_time) for s in slots] == [
        ("Metformin", datetime(2024, 3, 15, 8)),
        ("Aspirin", datetime(2024, 3, 15, 12)),
        ("Metformin", datetime(2024, 3, 15, 20)),
    ]
    assert all(s.status == SlotStatus.PENDING for s in slots)
    assert all(s.day == DAY for s in slots)


def test_ties_are_ordered_by_name():
    slots = materialize_day([medication("Zinc", ["08:00"]), medication("Aspirin", ["08:00"])], [], DAY)

    assert [s.medication.name for s in slots] == ["Aspirin", "Zinc"]


def test_logs_attach_to_exact_slot_only():
    m = medication("Metformin", ["08:00", "20:00"])
    logs = [
        log(m, datetime(2024, 3, 15, 8)),
        log(m, datetime(2024, 3, 15, 20, 5), status="SKIPPED"),
        log(m, datetime(2024, 3, 14, 20), status="MISSED"),
    ]

    slots = materialize_day([m], logs, DAY)

    assert [s.status for s in slots] == [SlotStatus.GIVEN, SlotStatus.PENDING]
    assert slots[0].log_id == logs[0].id
    assert slots[0].given_time == datetime(2024, 3, 15, 8)


def test_latest_duplicate_log_wins():
    m = medication("Metformin", ["08:00"])
    older = log(m, datetime(2024, 3, 15, 8), status="MISSED", created_at=datetime(2024, 3, 15, 9))
    newer = log(m, datetime(2024, 3, 15, 8), status="GIVEN", created_at=datetime(2024, 3, 15, 10))

    slots = materialize_day([m], [newer, older], DAY)

    assert slots[0].status == SlotStatus.GIVEN
    assert slots[0].log_id == newer.id


def test_inactive_and_out_of_window_medications_are_skipped():
    meds = [
        medication("Stopped", ["08:00"], is_active=False),
        medication("Future", ["08:00"], start_date=date(2024, 3, 16)),
        medication("Finished", ["08:00"], end_date=date(2024, 3, 14)),
        medication("Last day", ["08:00"], end_date=DAY),
        medication("Open", ["08:00"], start_date=None),
    ]

    slots = materialize_day(meds, [], DAY)

    assert [s.medication.name for s in slots] == ["Last day", "Open"]


def test_medication_without_times_has_no_slots():
    assert materialize_day([medication("As needed", [])], [], DAY) == []


def test_adherence_counts():
    m = medication("Metformin", ["08:00"])
    logs = [
        log(m, datetime(2024, 3, 1, 8)),
        log(m, datetime(2024, 3, 2, 8)),
        log(m, datetime(2024, 3, 3, 8), status="SKIPPED"),
        log(m, datetime(2024, 3, 4, 8), status="MISSED"),
    ]

    stats = compute_adherence(logs)

    assert stats == {"given": 2, "skipped": 1, "missed": 1, "total": 4, "adherence_rate": 50.0}


def test_adherence_of_nothing():
    assert compute_adherence([])["adherence_rate"] == 0.0
