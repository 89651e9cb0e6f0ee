import pytest
from datetime import date, datetime
from uuid import uuid4

from carecoord.exceptions import ForbiddenException, NotFoundException, ValidationException
from carecoord.medications.models import MedicationLogStatus
from carecoord.medications.schemas import CreateMedicationRequest, SlotStatus, UpdateMedicationRequest
from carecoord.notifications.events import EventKind

TODAY = date(2024, 3, 15)


def at(hour: int, minute: int = 0, day: int = 15) -> datetime:
    return datetime(2024, 3, day, hour, minute)


async def add_medication(service, family, by="caregiver", **overrides):
    fields = {"name": "Metformin", "dosage": "500mg", "scheduled_times": ["08:00", "20:00"]}
    fields.update(overrides)
    return await service.create_medication(
        family.principals[by], family.recipient_id, CreateMedicationRequest(**fields)
    )


async def give(service, family, medication, when, status=MedicationLogStatus.GIVEN, by="caregiver", **kwargs):
    return await service.log_dose(family.principals[by], medication.id, status, when, **kwargs)


@pytest.mark.asyncio
async def test_refill_alert_fires_on_every_dose_below_threshold(medication_service, family, sink):
    metformin = await add_medication(medication_service, family, current_supply=2, refill_at=5)

    await give(medication_service, family, metformin, at(8))
    assert metformin.current_supply == 1

    await give(medication_service, family, metformin, at(20))
    assert metformin.current_supply == 0

    alerts = sink.of_kind(EventKind.MEDICATION_REFILL_NEEDED)
    assert [a["current_supply"] for a in alerts] == [1, 0]
    assert alerts[0]["medication_id"] == str(metformin.id)
    assert alerts[0]["family_id"] == str(family.id)
    assert alerts[0]["refill_at"] == 5


@pytest.mark.asyncio
async def test_supply_never_goes_negative(medication_service, family):
    medication = await add_medication(medication_service, family, current_supply=1, refill_at=0)

    for day in (15, 16, 17):
        await give(medication_service, family, medication, at(8, day=day))

    assert medication.current_supply == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [MedicationLogStatus.SKIPPED, MedicationLogStatus.MISSED])
async def test_only_given_doses_consume_supply(medication_service, family, sink, status):
    medication = await add_medication(medication_service, family, current_supply=3, refill_at=5)

    log = await give(medication_service, family, medication, at(8), status=status, skip_reason="Asleep")

    assert medication.current_supply == 3
    assert log.given_time is None
    assert log.skip_reason == "Asleep"
    assert sink.of_kind(EventKind.MEDICATION_REFILL_NEEDED) == []


@pytest.mark.asyncio
async def test_given_dose_records_given_time(medication_service, family, clock):
    medication = await add_medication(medication_service, family)
    clock.current = at(8, 7)

    log = await give(medication_service, family, medication, at(8))

    assert log.status == MedicationLogStatus.GIVEN.value
    assert log.given_time == at(8, 7)
    assert log.logged_by_id == family.users["caregiver"]


@pytest.mark.asyncio
async def test_untracked_supply_is_left_alone(medication_service, family, sink):
    medication = await add_medication(medication_service, family, refill_at=5)

    await give(medication_service, family, medication, at(8))

    assert medication.current_supply is None
    assert sink.of_kind(EventKind.MEDICATION_REFILL_NEEDED) == []


@pytest.mark.asyncio
async def test_no_alert_above_threshold_or_without_threshold(medication_service, family, sink):
    plenty = await add_medication(medication_service, family, name="Lisinopril", current_supply=30, refill_at=5)
    no_threshold = await add_medication(medication_service, family, name="Aspirin", current_supply=1)

    await give(medication_service, family, plenty, at(8))
    await give(medication_service, family, no_threshold, at(8))

    assert plenty.current_supply == 29
    assert no_threshold.current_supply == 0
    assert sink.of_kind(EventKind.MEDICATION_REFILL_NEEDED) == []


@pytest.mark.asyncio
async def test_viewer_cannot_log_dose(medication_service, family):
    medication = await add_medication(medication_service, family)

    with pytest.raises(ForbiddenException) as exc_info:
        await give(medication_service, family, medication, at(8), by="viewer")

    assert exc_info.value.reason == "Viewers cannot log medications"


@pytest.mark.asyncio
async def test_logging_unknown_medication_is_not_found(medication_service, family):
    with pytest.raises(NotFoundException):
        await medication_service.log_dose(
            family.principals["caregiver"], uuid4(), MedicationLogStatus.GIVEN, at(8)
        )


@pytest.mark.asyncio
async def test_schedule_lists_every_expected_dose(medication_service, family):
    metformin = await add_medication(medication_service, family)
    aspirin = await add_medication(medication_service, family, name="Aspirin", scheduled_times=["12:00"])
    await give(medication_service, family, metformin, at(8))

    schedule = await medication_service.get_schedule_for_day(family.principals["viewer"], family.recipient_id, TODAY)

    assert schedule.count == 3
    assert [(s.medication.id, s.time) for s in schedule.slots] == [
        (metformin.id, "08:00"),
        (aspirin.id, "12:00"),
        (metformin.id, "20:00"),
    ]
    assert [s.status for s in schedule.slots] == [SlotStatus.GIVEN, SlotStatus.PENDING, SlotStatus.PENDING]
    assert schedule.slots[0].logged_by_id == family.users["caregiver"]


@pytest.mark.asyncio
async def test_schedule_reflects_new_log_immediately(medication_service, family):
    medication = await add_medication(medication_service, family)
    viewer = family.principals["viewer"]

    before = await medication_service.get_schedule_for_day(viewer, family.recipient_id, TODAY)
    assert {s.status for s in before.slots} == {SlotStatus.PENDING}

    await give(medication_service, family, medication, at(20), status=MedicationLogStatus.MISSED)

    after = await medication_service.get_schedule_for_day(viewer, family.recipient_id, TODAY)
    assert [s.status for s in after.slots] == [SlotStatus.PENDING, SlotStatus.MISSED]


@pytest.mark.asyncio
async def test_schedule_respects_date_window_and_active_flag(medication_service, family):
    await add_medication(medication_service, family, name="Course", start_date=date(2024, 3, 16), end_date=date(2024, 3, 18))
    stopped = await add_medication(medication_service, family, name="Stopped", scheduled_times=["09:00"])
    await medication_service.deactivate_medication(family.principals["admin"], stopped.id)
    viewer = family.principals["viewer"]

    today = await medication_service.get_schedule_for_day(viewer, family.recipient_id, TODAY)
    during = await medication_service.get_schedule_for_day(viewer, family.recipient_id, date(2024, 3, 18))
    after = await medication_service.get_schedule_for_day(viewer, family.recipient_id, date(2024, 3, 19))

    assert today.count == 0
    assert during.count == 2
    assert after.count == 0


@pytest.mark.asyncio
async def test_today_schedule_uses_the_clock(medication_service, family, clock):
    await add_medication(medication_service, family)
    clock.current = at(23, 59)

    schedule = await medication_service.get_today_schedule(family.principals["viewer"], family.recipient_id)

    assert schedule.day == TODAY
    assert schedule.count == 2


@pytest.mark.asyncio
async def test_adherence_stats(medication_service, family, clock):
    medication = await add_medication(medication_service, family, start_date=date(2023, 12, 1))
    await give(medication_service, family, medication, at(8, day=14))
    await give(medication_service, family, medication, at(20, day=14), status=MedicationLogStatus.SKIPPED)
    await give(medication_service, family, medication, at(8, day=13), status=MedicationLogStatus.MISSED)
    await give(medication_service, family, medication, datetime(2024, 1, 1, 8, 0))
    clock.current = at(8)

    stats = await medication_service.get_adherence_stats(family.principals["viewer"], medication.id, days=30)

    assert stats.given == 1
    assert stats.skipped == 1
    assert stats.missed == 1
    assert stats.total == stats.given + stats.skipped + stats.missed == 3
    assert stats.adherence_rate == 33.33


@pytest.mark.asyncio
async def test_adherence_without_logs(medication_service, family):
    medication = await add_medication(medication_service, family)

    stats = await medication_service.get_adherence_stats(family.principals["viewer"], medication.id)

    assert stats.total == 0
    assert stats.adherence_rate == 0.0


@pytest.mark.asyncio
async def test_logs_newest_first(medication_service, family):
    medication = await add_medication(medication_service, family)
    for day in (13, 14, 15):
        await give(medication_service, family, medication, at(8, day=day))

    logs = await medication_service.get_logs(family.principals["viewer"], medication.id, limit=2)

    assert [log.scheduled_time for log in logs] == [at(8, day=15), at(8, day=14)]


@pytest.mark.asyncio
async def test_low_supply_medications(medication_service, family):
    low = await add_medication(medication_service, family, name="Low", current_supply=2, refill_at=5)
    await add_medication(medication_service, family, name="Plenty", current_supply=20, refill_at=5)
    await add_medication(medication_service, family, name="Untracked")

    result = await medication_service.get_low_supply_medications(family.principals["viewer"], family.recipient_id)

    assert [m.id for m in result] == [low.id]


@pytest.mark.asyncio
async def test_record_refill(medication_service, family):
    medication = await add_medication(medication_service, family, current_supply=1, refill_at=5)

    medication = await medication_service.record_refill(family.principals["caregiver"], medication.id, 30)

    assert medication.current_supply == 31
    low = await medication_service.get_low_supply_medications(family.principals["viewer"], family.recipient_id)
    assert low == []


@pytest.mark.asyncio
async def test_refill_starts_tracking_supply(medication_service, family):
    medication = await add_medication(medication_service, family)

    medication = await medication_service.record_refill(family.principals["caregiver"], medication.id, 10)

    assert medication.current_supply == 10


@pytest.mark.asyncio
async def test_refill_quantity_must_be_positive(medication_service, family):
    medication = await add_medication(medication_service, family, current_supply=1)

    with pytest.raises(ValidationException) as exc_info:
        await medication_service.record_refill(family.principals["caregiver"], medication.id, 0)

    assert exc_info.value.field == "quantity"


@pytest.mark.asyncio
async def test_viewer_cannot_refill(medication_service, family):
    medication = await add_medication(medication_service, family, current_supply=1)

    with pytest.raises(ForbiddenException):
        await medication_service.record_refill(family.principals["viewer"], medication.id, 5)


@pytest.mark.asyncio
async def test_create_sorts_scheduled_times(medication_service, family):
    medication = await add_medication(medication_service, family, scheduled_times=["20:00", "08:00", "13:30"])

    assert medication.scheduled_times == ["08:00", "13:30", "20:00"]
    assert medication.start_date == TODAY
    assert medication.is_active is True


@pytest.mark.asyncio
@pytest.mark.parametrize("times", [["08:00", "08:00"], ["8am"], ["24:00"]])
async def test_create_rejects_bad_scheduled_times(medication_service, family, times):
    with pytest.raises(ValidationException) as exc_info:
        await add_medication(medication_service, family, scheduled_times=times)

    assert exc_info.value.field == "scheduled_times"


@pytest.mark.asyncio
async def test_create_rejects_inverted_date_window(medication_service, family):
    with pytest.raises(ValidationException) as exc_info:
        await add_medication(medication_service, family, start_date=date(2024, 3, 20), end_date=date(2024, 3, 10))

    assert exc_info.value.field == "end_date"


@pytest.mark.asyncio
async def test_viewer_cannot_create_medication(medication_service, family):
    with pytest.raises(ForbiddenException):
        await add_medication(medication_service, family, by="viewer")


@pytest.mark.asyncio
async def test_update_medication(medication_service, family):
    medication = await add_medication(medication_service, family)

    updated = await medication_service.update_medication(
        family.principals["caregiver"],
        medication.id,
        UpdateMedicationRequest(dosage="850mg", scheduled_times=["21:00", "07:00"]),
    )

    assert updated.dosage == "850mg"
    assert updated.scheduled_times == ["07:00", "21:00"]
    assert updated.name == "Metformin"


@pytest.mark.asyncio
async def test_update_checks_window_against_stored_dates(medication_service, family):
    medication = await add_medication(medication_service, family)

    with pytest.raises(ValidationException):
        await medication_service.update_medication(
            family.principals["caregiver"],
            medication.id,
            UpdateMedicationRequest(end_date=date(2024, 3, 1)),
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "dosage", "form", "frequency", "scheduled_times"])
async def test_update_rejects_null_for_required_fields(medication_service, family, field):
    medication = await add_medication(medication_service, family)

    with pytest.raises(ValidationException) as exc_info:
        await medication_service.update_medication(
            family.principals["caregiver"],
            medication.id,
            UpdateMedicationRequest(**{field: None}),
        )

    assert exc_info.value.field == field
    assert exc_info.value.status_code == 400
    unchanged = await medication_service.get_medication(family.principals["viewer"], medication.id)
    assert unchanged.name == "Metformin"
    assert unchanged.scheduled_times == ["08:00", "20:00"]


@pytest.mark.asyncio
async def test_update_may_clear_optional_fields(medication_service, family):
    medication = await add_medication(medication_service, family, instructions="With food", end_date=date(2024, 4, 1))

    updated = await medication_service.update_medication(
        family.principals["caregiver"],
        medication.id,
        UpdateMedicationRequest(instructions=None, end_date=None),
    )

    assert updated.instructions is None
    assert updated.end_date is None


@pytest.mark.asyncio
async def test_medication_list_is_invalidated_by_writes(medication_service, family):
    viewer = family.principals["viewer"]
    first = await add_medication(medication_service, family)
    assert [m.id for m in await medication_service.list_medications(viewer, family.recipient_id)] == [first.id]

    second = await add_medication(medication_service, family, name="Aspirin")
    listed = await medication_service.list_medications(viewer, family.recipient_id)
    assert {m.id for m in listed} == {first.id, second.id}

    await medication_service.deactivate_medication(family.principals["caregiver"], first.id)
    listed = await medication_service.list_medications(viewer, family.recipient_id)
    assert [m.id for m in listed] == [second.id]

    everything = await medication_service.list_medications(viewer, family.recipient_id, active_only=False)
    assert {m.id for m in everything} == {first.id, second.id}


@pytest.mark.asyncio
async def test_outsider_cannot_read_medication(medication_service, family):
    medication = await add_medication(medication_service, family)

    with pytest.raises(ForbiddenException):
        await medication_service.get_medication(family.principals["outsider"], medication.id)
