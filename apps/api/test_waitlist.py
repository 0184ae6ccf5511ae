"""
Waitlist queue order, offers, conversion and expiry
"""
from datetime import timedelta

import pytest
from sqlalchemy import update

from conftest import MONDAY, NOW, appointment_request
from exceptions import ConflictError, StateError, ValidationError
from models import Priority, WaitlistEntry, WaitlistStatus
from schemas import WaitlistConvert, WaitlistCreate, WaitlistUpdate


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


def enqueue(scheduling, doctor, patient, minutes_after=0, **fields):
    data = WaitlistCreate(doctor_id=doctor.id, patient_id=patient.id, **fields)
    return scheduling.waitlist.add(data, NOW + timedelta(minutes=minutes_after))


def test_candidates_are_ordered_by_priority_then_age(scheduling, doctor, make_patient):
    first = enqueue(scheduling, doctor, make_patient("Ana"), 0)
    urgent = enqueue(scheduling, doctor, make_patient("Ben"), 5, priority=Priority.URGENT)
    high = enqueue(scheduling, doctor, make_patient("Caro"), 10, priority=Priority.HIGH)
    second = enqueue(scheduling, doctor, make_patient("Dev"), 15)

    candidates = scheduling.waitlist.find_candidates(doctor.id, MONDAY, "10:00")

    assert [c.id for c in candidates] == [urgent.id, high.id, first.id, second.id]


def test_candidates_respect_preferences(scheduling, doctor, make_patient):
    anytime = enqueue(scheduling, doctor, make_patient("Ana"))
    that_day = enqueue(scheduling, doctor, make_patient("Ben"), 1, preferred_date=MONDAY)
    exact = enqueue(scheduling, doctor, make_patient("Caro"), 2, preferred_date=MONDAY, preferred_time="10:00")
    enqueue(scheduling, doctor, make_patient("Dev"), 3, preferred_date=MONDAY + timedelta(days=1))
    enqueue(scheduling, doctor, make_patient("Eli"), 4, preferred_time="15:00")

    candidates = scheduling.waitlist.find_candidates(doctor.id, MONDAY, "10:00")

    assert [c.id for c in candidates] == [anytime.id, that_day.id, exact.id]


def test_only_waiting_entries_are_candidates(scheduling, doctor, make_patient):
    entry = enqueue(scheduling, doctor, make_patient())
    scheduling.waitlist.notify(entry.id, NOW)

    assert scheduling.waitlist.find_candidates(doctor.id, MONDAY, "10:00") == []


def test_duplicate_waiting_entry_is_rejected(scheduling, doctor, make_patient):
    patient = make_patient()
    enqueue(scheduling, doctor, patient)

    with pytest.raises(ConflictError):
        enqueue(scheduling, doctor, patient, 1)


def test_bad_preferred_time_is_rejected(scheduling, doctor, make_patient):
    with pytest.raises(ValidationError):
        enqueue(scheduling, doctor, make_patient(), preferred_time="10am")


def test_notify_sends_an_offer(scheduling, doctor, make_patient, notifications):
    patient = make_patient(phone="+15550123")
    entry = enqueue(scheduling, doctor, patient, preferred_date=MONDAY, preferred_time="10:00")

    notified = scheduling.waitlist.notify(entry.id, NOW)

    assert notified.status == WaitlistStatus.NOTIFIED.value
    assert notified.is_notified is True
    assert notified.notified_at == NOW
    assert len(notifications.sent) == 1
    phone, message = notifications.sent[0]
    assert phone == "+15550123"
    assert "Dr. Lee" in message and "2026-03-02" in message

    with pytest.raises(StateError):
        scheduling.waitlist.notify(entry.id, NOW)


def test_convert_books_through_the_normal_path(scheduling, doctor, make_patient):
    patient = make_patient()
    entry = enqueue(scheduling, doctor, patient, preferred_date=MONDAY, preferred_time="10:00",
                    priority=Priority.HIGH, reason="Recurring migraines")
    scheduling.waitlist.notify(entry.id, NOW)

    converted, result = scheduling.waitlist.convert(entry.id, WaitlistConvert(), NOW)

    assert converted.status == WaitlistStatus.SCHEDULED.value
    appointment = result.appointment
    assert appointment.appointment_date == MONDAY
    assert appointment.appointment_time == "10:00"
    assert appointment.priority == Priority.HIGH.value
    assert appointment.reason == "Recurring migraines"

    with pytest.raises(StateError):
        scheduling.waitlist.convert(entry.id, WaitlistConvert(), NOW)


def test_convert_into_a_taken_slot_leaves_the_entry_open(scheduling, doctor, make_patient, session):
    booked = make_patient("Ana")
    waiting = make_patient("Ben")
    scheduling.booking.book(appointment_request(doctor, booked, time="10:00"), NOW)
    entry = enqueue(scheduling, doctor, waiting, preferred_date=MONDAY, preferred_time="10:00")

    with pytest.raises(ConflictError):
        scheduling.waitlist.convert(entry.id, WaitlistConvert(), NOW)

    session.refresh(entry)
    assert entry.status == WaitlistStatus.WAITING.value


def test_convert_needs_a_date_and_time(scheduling, doctor, make_patient):
    entry = enqueue(scheduling, doctor, make_patient())

    with pytest.raises(ValidationError):
        scheduling.waitlist.convert(entry.id, WaitlistConvert(), NOW)

    _, result = scheduling.waitlist.convert(
        entry.id, WaitlistConvert(appointment_date=MONDAY, appointment_time="11:30"), NOW
    )
    assert result.appointment.appointment_time == "11:30"


def test_expire_stale_entries(scheduling, doctor, make_patient):
    stale = enqueue(scheduling, doctor, make_patient("Ana"), preferred_date=NOW.date() - timedelta(days=1))
    current = enqueue(scheduling, doctor, make_patient("Ben"), preferred_date=MONDAY)
    open_ended = enqueue(scheduling, doctor, make_patient("Caro"))

    expired = scheduling.waitlist.expire_stale(NOW.date(), NOW)

    assert expired == 1
    assert scheduling.waitlist.get(stale.id).status == WaitlistStatus.EXPIRED.value
    assert scheduling.waitlist.get(current.id).status == WaitlistStatus.WAITING.value
    assert scheduling.waitlist.get(open_ended.id).status == WaitlistStatus.WAITING.value


def test_update_and_remove(scheduling, doctor, make_patient):
    entry = enqueue(scheduling, doctor, make_patient())

    updated = scheduling.waitlist.update(entry.id, WaitlistUpdate(priority=Priority.URGENT, reason="Worse"), NOW)
    assert updated.priority == Priority.URGENT.value
    assert updated.reason == "Worse"

    scheduling.waitlist.remove(entry.id)
    assert scheduling.waitlist.list(doctor_id=doctor.id) == []


def test_update_only_cancels(scheduling, doctor, make_patient):
    entry = enqueue(scheduling, doctor, make_patient())

    for status in (WaitlistStatus.NOTIFIED, WaitlistStatus.SCHEDULED):
        with pytest.raises(ValidationError):
            scheduling.waitlist.update(entry.id, WaitlistUpdate(status=status), NOW)
    assert scheduling.waitlist.get(entry.id).status == WaitlistStatus.WAITING.value

    cancelled = scheduling.waitlist.update(entry.id, WaitlistUpdate(status=WaitlistStatus.CANCELLED), NOW)
    assert cancelled.status == WaitlistStatus.CANCELLED.value

    with pytest.raises(StateError):
        scheduling.waitlist.update(entry.id, WaitlistUpdate(status=WaitlistStatus.CANCELLED), NOW)


def test_convert_and_entry_update_commit_together(scheduling, doctor, make_patient, session, monkeypatch):
    entry = enqueue(scheduling, doctor, make_patient(), preferred_date=MONDAY, preferred_time="10:00")
    entry_id = entry.id
    lock_doctor = scheduling.directory.lock_doctor

    def lock_after_another_convert(doctor_id):
        # A competing request converts the entry while this one waits for the doctor lock
        session.connection().execute(
            update(WaitlistEntry).where(WaitlistEntry.id == entry_id).values(status=WaitlistStatus.SCHEDULED.value)
        )
        session.commit()
        return lock_doctor(doctor_id)

    monkeypatch.setattr(scheduling.directory, "lock_doctor", lock_after_another_convert)

    with pytest.raises(StateError):
        scheduling.waitlist.convert(entry_id, WaitlistConvert(), NOW)

    assert scheduling.appointments.active_on(doctor.id, MONDAY) == []
    assert scheduling.waitlist.get(entry_id).status == WaitlistStatus.SCHEDULED.value
