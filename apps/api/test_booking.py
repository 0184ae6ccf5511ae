"""
Booking validation, double-booking detection and rescheduling
"""
import threading
import time
from datetime import timedelta

import pytest
from sqlmodel import Session

from conftest import MONDAY, NOW, SUNDAY, RecordingNotifications, appointment_request, wire_services
from exceptions import AvailabilityError, ConflictError, NotFoundError, StateError, ValidationError
from models import Appointment, AppointmentStatus
from schemas import AppointmentCreate, AppointmentUpdate
from services.conflicts import ConflictChecker


# ==================== Booking ====================

def test_booking_defaults(scheduling, make_doctor, make_patient):
    doctor = make_doctor()
    patient = make_patient()

    result = scheduling.booking.book(appointment_request(doctor, patient), NOW)

    appointment = result.appointment
    assert appointment.id is not None
    assert appointment.status == AppointmentStatus.SCHEDULED.value
    assert appointment.duration == 30
    assert appointment.reschedule_count == 0
    assert result.recurrence is None


def test_overlapping_intervals_conflict(scheduling, make_doctor, make_patient):
    doctor = make_doctor()
    patient = make_patient()
    scheduling.booking.book(appointment_request(doctor, patient, time="09:00", duration=60), NOW)

    with pytest.raises(ConflictError):
        scheduling.booking.book(appointment_request(doctor, patient, time="09:30"), NOW)

    # Back-to-back is fine
    result = scheduling.booking.book(appointment_request(doctor, patient, time="10:00"), NOW)
    assert result.appointment.appointment_time == "10:00"


def test_other_doctors_do_not_conflict(scheduling, make_doctor, make_patient):
    lee = make_doctor()
    patel = make_doctor(name="Dr. Patel")
    patient = make_patient()

    scheduling.booking.book(appointment_request(lee, patient), NOW)
    scheduling.booking.book(appointment_request(patel, patient), NOW)

    assert len(scheduling.appointments.list(on_date=MONDAY)) == 2


def test_booking_outside_hours_is_rejected(scheduling, make_doctor, make_patient):
    doctor = make_doctor(hours={"monday": ("09:00", "12:00")})
    patient = make_patient()

    with pytest.raises(AvailabilityError) as exc:
        scheduling.booking.book(appointment_request(doctor, patient, time="12:00"), NOW)
    assert exc.value.detail == "Doctor is only available from 09:00 to 12:00"

    with pytest.raises(AvailabilityError):
        scheduling.booking.book(appointment_request(doctor, patient, time="08:30"), NOW)

    # Starts inside the window but would run past noon
    with pytest.raises(AvailabilityError):
        scheduling.booking.book(appointment_request(doctor, patient, time="11:45"), NOW)


def test_booking_on_a_day_off_is_rejected(scheduling, make_doctor, make_patient):
    doctor = make_doctor(unavailable=("sunday",))
    patient = make_patient()

    with pytest.raises(AvailabilityError) as exc:
        scheduling.booking.book(appointment_request(doctor, patient, day=SUNDAY), NOW)
    assert exc.value.detail == "Doctor is not available on this day"


@pytest.mark.parametrize("time", ["9:00", "24:00", "10:60", "noon"])
def test_malformed_time_is_rejected(scheduling, make_doctor, make_patient, time):
    doctor = make_doctor()
    patient = make_patient()

    with pytest.raises(ValidationError):
        scheduling.booking.book(appointment_request(doctor, patient, time=time), NOW)


def test_booking_in_the_past_is_rejected(scheduling, make_doctor, make_patient):
    doctor = make_doctor()
    patient = make_patient()

    with pytest.raises(ValidationError) as exc:
        scheduling.booking.book(appointment_request(doctor, patient, day=MONDAY - timedelta(days=7)), NOW)
    assert exc.value.detail == "Cannot schedule appointments in the past"


def test_duration_limits(scheduling, make_doctor, make_patient):
    doctor = make_doctor()
    patient = make_patient()

    with pytest.raises(ValidationError):
        scheduling.booking.book(appointment_request(doctor, patient, duration=2), NOW)
    with pytest.raises(ValidationError):
        scheduling.booking.book(appointment_request(doctor, patient, duration=300), NOW)


def test_unknown_doctor_or_patient(scheduling, make_doctor, make_patient):
    doctor = make_doctor()
    patient = make_patient()

    with pytest.raises(NotFoundError) as exc:
        scheduling.booking.book(
            AppointmentCreate(doctor_id=doctor.id, patient_id=999, appointment_date=MONDAY, appointment_time="10:00"),
            NOW
        )
    assert exc.value.status_code == 404

    with pytest.raises(NotFoundError):
        scheduling.booking.book(
            AppointmentCreate(doctor_id=999, patient_id=patient.id, appointment_date=MONDAY, appointment_time="10:00"),
            NOW
        )


def test_cancelled_slot_can_be_rebooked(scheduling, make_doctor, make_patient, session):
    doctor = make_doctor()
    patient = make_patient()
    first = scheduling.booking.book(appointment_request(doctor, patient), NOW).appointment
    scheduling.lifecycle.cancel(first, NOW)
    session.commit()

    second = scheduling.booking.book(appointment_request(doctor, patient), NOW).appointment

    assert second.id != first.id
    assert [a.status for a in scheduling.appointments.list(doctor_id=doctor.id)] == ["cancelled", "scheduled"]


def test_store_rejects_a_slot_taken_after_the_check(scheduling, make_doctor, make_patient, monkeypatch):
    """Two requests pass the conflict check at the same time; only one insert survives"""
    doctor = make_doctor()
    patient = make_patient()
    scheduling.booking.book(appointment_request(doctor, patient), NOW)

    # Simulate the losing request: its conflict check ran before the winner committed
    monkeypatch.setattr(scheduling.conflicts, "find_conflict", lambda *args, **kwargs: None)

    with pytest.raises(ConflictError):
        scheduling.booking.book(appointment_request(doctor, patient), NOW)

    assert len(scheduling.appointments.active_on(doctor.id, MONDAY)) == 1


# ==================== Rescheduling ====================

def test_reschedule_moves_and_counts(scheduling, make_doctor, make_patient):
    doctor = make_doctor()
    patient = make_patient()
    appointment = scheduling.booking.book(appointment_request(doctor, patient), NOW).appointment

    moved = scheduling.booking.reschedule(
        appointment.id, AppointmentUpdate(appointment_time="14:00", notes="Moved by phone"), NOW
    )

    assert moved.appointment_time == "14:00"
    assert moved.notes == "Moved by phone"
    assert moved.reschedule_count == 1
    assert "10:00" in scheduling.availability.slots(doctor.id, MONDAY)


def test_reschedule_ignores_its_own_slot(scheduling, make_doctor, make_patient):
    doctor = make_doctor()
    patient = make_patient()
    appointment = scheduling.booking.book(appointment_request(doctor, patient), NOW).appointment

    # Extending in place overlaps only itself
    extended = scheduling.booking.reschedule(appointment.id, AppointmentUpdate(duration=60), NOW)

    assert extended.duration == 60
    assert extended.reschedule_count == 1


def test_reschedule_into_a_conflict_is_rejected(scheduling, make_doctor, make_patient, session):
    doctor = make_doctor()
    patient = make_patient()
    scheduling.booking.book(appointment_request(doctor, patient, time="09:00"), NOW)
    appointment = scheduling.booking.book(appointment_request(doctor, patient, time="11:00"), NOW).appointment

    with pytest.raises(ConflictError):
        scheduling.booking.reschedule(appointment.id, AppointmentUpdate(appointment_time="09:00"), NOW)

    session.refresh(appointment)
    assert appointment.appointment_time == "11:00"
    assert appointment.reschedule_count == 0


def test_text_edits_do_not_count_as_reschedules(scheduling, make_doctor, make_patient):
    doctor = make_doctor()
    patient = make_patient()
    appointment = scheduling.booking.book(appointment_request(doctor, patient), NOW).appointment

    edited = scheduling.booking.reschedule(
        appointment.id, AppointmentUpdate(appointment_time="10:00", reason="Follow-up on labs"), NOW
    )

    assert edited.reason == "Follow-up on labs"
    assert edited.reschedule_count == 0


def test_cancelled_appointment_cannot_be_edited(scheduling, make_doctor, make_patient, session):
    doctor = make_doctor()
    patient = make_patient()
    appointment = scheduling.booking.book(appointment_request(doctor, patient), NOW).appointment
    scheduling.lifecycle.cancel(appointment, NOW)
    session.commit()

    with pytest.raises(StateError):
        scheduling.booking.reschedule(appointment.id, AppointmentUpdate(notes="too late"), NOW)


def test_past_appointment_keeps_its_time_but_takes_notes(scheduling, make_doctor, make_patient, session):
    doctor = make_doctor()
    patient = make_patient()
    earlier = Appointment(
        doctor_id=doctor.id,
        patient_id=patient.id,
        appointment_date=NOW.date() - timedelta(days=4),
        appointment_time="10:00",
        status=AppointmentStatus.COMPLETED.value,
    )
    session.add(earlier)
    session.commit()

    with pytest.raises(StateError):
        scheduling.booking.reschedule(earlier.id, AppointmentUpdate(appointment_date=MONDAY), NOW)

    updated = scheduling.booking.reschedule(earlier.id, AppointmentUpdate(diagnosis="Seasonal allergies"), NOW)
    assert updated.diagnosis == "Seasonal allergies"


def test_reschedule_unknown_appointment(scheduling):
    with pytest.raises(NotFoundError):
        scheduling.booking.reschedule(404, AppointmentUpdate(notes="x"), NOW)


# ==================== Parallel requests ====================

class SlowConflictChecker(ConflictChecker):
    """Holds the overlap check open long enough for a second request to arrive"""

    def find_conflict(self, *args, **kwargs):
        found = super().find_conflict(*args, **kwargs)
        time.sleep(0.3)
        return found


def run_in_parallel(db, *actions):
    """Run each action in its own Session on its own thread; outcomes come back in order"""
    outcomes = [None] * len(actions)
    start = threading.Barrier(len(actions))

    def worker(index, action):
        with Session(db.engine) as session:
            services = wire_services(session, RecordingNotifications(), SlowConflictChecker)
            start.wait()
            try:
                action(services)
                outcomes[index] = "committed"
            except ConflictError:
                outcomes[index] = "conflict"

    threads = [threading.Thread(target=worker, args=(i, action)) for i, action in enumerate(actions)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


def booking_at(db, start, duration):
    request = AppointmentCreate(doctor_id=db.doctor_id, patient_id=db.patient_id,
                                appointment_date=MONDAY, appointment_time=start, duration=duration)
    return lambda services: services.booking.book(request, NOW)


def active_slots(db):
    with Session(db.engine) as session:
        return [(a.appointment_time, a.duration)
                for a in wire_services(session, None).appointments.active_on(db.doctor_id, MONDAY)]


def test_parallel_overlapping_bookings_commit_once(locking_file_db):
    outcomes = run_in_parallel(
        locking_file_db,
        booking_at(locking_file_db, "09:00", 60),
        booking_at(locking_file_db, "09:30", 30),
    )

    assert sorted(outcomes, key=str) == ["committed", "conflict"]
    assert active_slots(locking_file_db) in ([("09:00", 60)], [("09:30", 30)])


def test_parallel_reschedule_and_booking_commit_once(locking_file_db):
    db = locking_file_db
    with Session(db.engine) as session:
        booked = wire_services(session, None).booking.book(AppointmentCreate(
            doctor_id=db.doctor_id, patient_id=db.patient_id, appointment_date=MONDAY, appointment_time="11:00"
        ), NOW).appointment
        appointment_id = booked.id

    outcomes = run_in_parallel(
        db,
        lambda services: services.booking.reschedule(
            appointment_id, AppointmentUpdate(appointment_time="09:00", duration=60), NOW
        ),
        booking_at(db, "09:30", 30),
    )

    assert sorted(outcomes, key=str) == ["committed", "conflict"]
    assert active_slots(db) in ([("09:00", 60)], [("09:30", 30), ("11:00", 30)])
