"""Double-booking detection"""
import logging
from datetime import date
from typing import Iterable, Optional

from exceptions import ConflictError
from models import Appointment
from repositories.appointment_repository import AppointmentRepository
from repositories.schedule_repository import ScheduleRepository
from validators.appointment_validator import validate_doctor_availability
from validators.time_validator import intervals_overlap, to_minutes

logger = logging.getLogger(__name__)


class ConflictChecker:
    """
    Decides whether a booking would collide with an active appointment.

    Two appointments for the same doctor and day conflict when their
    ``[time, time + duration)`` intervals intersect. Cancelled and no-show
    appointments never hold a slot.
    """

    def __init__(self, appointments: AppointmentRepository, schedules: ScheduleRepository):
        self.appointments = appointments
        self.schedules = schedules

    def find_conflict(
        self,
        doctor_id: int,
        on_date: date,
        appointment_time: str,
        duration: int,
        exclude_id: Optional[int] = None,
        existing: Optional[Iterable[Appointment]] = None,
    ) -> Optional[Appointment]:
        """First active appointment overlapping the requested interval, if any.

        ``existing`` lets callers that test many candidates on one day reuse a
        single read of that day's appointments.
        """
        if existing is None:
            existing = self.appointments.active_on(doctor_id, on_date, exclude_id=exclude_id)

        start = to_minutes(appointment_time)
        for other in existing:
            if exclude_id is not None and other.id == exclude_id:
                continue
            if intervals_overlap(start, duration, to_minutes(other.appointment_time), other.duration):
                return other
        return None

    def has_conflict(
        self,
        doctor_id: int,
        on_date: date,
        appointment_time: str,
        duration: int,
        exclude_id: Optional[int] = None,
    ) -> bool:
        return self.find_conflict(doctor_id, on_date, appointment_time, duration, exclude_id) is not None

    def ensure_bookable(
        self,
        doctor_id: int,
        on_date: date,
        appointment_time: str,
        duration: int,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Final check before a write: schedule first, then existing bookings"""
        schedule = self.schedules.get_day_for_date(doctor_id, on_date)
        validate_doctor_availability(schedule, appointment_time, duration)

        conflicting = self.find_conflict(doctor_id, on_date, appointment_time, duration, exclude_id)
        if conflicting:
            logger.warning(
                f"Rejected booking for doctor {doctor_id} on {on_date} {appointment_time}: "
                f"overlaps appointment {conflicting.id} at {conflicting.appointment_time}"
            )
            raise ConflictError("This time slot is already booked")
