"""Appointment validation logic"""
from datetime import date, datetime
from typing import Optional
from exceptions import AvailabilityError, ValidationError
from models import DoctorSchedule, RecurringPattern
from validators.time_validator import (
    validate_time_format,
    combine_date_time,
    to_minutes,
)
from validators.business_rules import get_scheduling_rules


def validate_appointment_time_not_past(appointment_date: date, appointment_time: str, now: datetime) -> None:
    """Validate appointment is not in the past"""
    if combine_date_time(appointment_date, appointment_time) <= now:
        raise ValidationError("Cannot schedule appointments in the past")


def validate_appointment_duration(duration: int) -> None:
    """Validate appointment duration is within limits"""
    rules = get_scheduling_rules()

    if duration < rules.MIN_APPOINTMENT_DURATION_MINUTES:
        raise ValidationError(
            f"Appointment must be at least {rules.MIN_APPOINTMENT_DURATION_MINUTES} minutes"
        )

    if duration > rules.MAX_APPOINTMENT_DURATION_MINUTES:
        raise ValidationError(
            f"Appointment cannot exceed {rules.MAX_APPOINTMENT_DURATION_MINUTES} minutes"
        )


def validate_recurrence(
    is_recurring: bool,
    pattern: Optional[RecurringPattern],
    end_date: Optional[date],
    seed_date: date
) -> None:
    """A recurring booking needs a pattern and an end date on or after the first visit"""
    if not is_recurring:
        return

    if pattern is None or end_date is None:
        raise ValidationError("Recurring appointments require a recurring pattern and an end date")

    if end_date < seed_date:
        raise ValidationError(
            f"Recurring end date ({end_date}) must not be before the first appointment ({seed_date})"
        )


def validate_doctor_availability(
    schedule: Optional[DoctorSchedule],
    appointment_time: str,
    duration: int
) -> None:
    """Validate doctor is scheduled and the appointment fits inside their hours"""
    validate_time_format(appointment_time)

    if schedule is None or not schedule.is_available:
        raise AvailabilityError("Doctor is not available on this day")

    start = to_minutes(appointment_time)
    if (start < to_minutes(schedule.start_time)
            or start >= to_minutes(schedule.end_time)
            or start + duration > to_minutes(schedule.end_time)):
        raise AvailabilityError(
            f"Doctor is only available from {schedule.start_time} to {schedule.end_time}"
        )
