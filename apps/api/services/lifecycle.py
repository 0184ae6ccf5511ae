"""
Appointment lifecycle state machine.

    SCHEDULED -> CONFIRMED -> CHECKED_IN -> IN_PROGRESS -> COMPLETED

CANCELLED and NO_SHOW can be reached from any non-terminal state. COMPLETED,
CANCELLED and NO_SHOW are terminal. Every transition checks its guard before
touching the record, so a rejected transition leaves the appointment as it was.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from exceptions import StateError
from models import Appointment, AppointmentStatus, TERMINAL_STATUSES
from validators.business_rules import get_scheduling_rules
from validators.time_validator import combine_date_time

logger = logging.getLogger(__name__)

CHECK_IN_FROM = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)
CHECK_OUT_FROM = (AppointmentStatus.CHECKED_IN, AppointmentStatus.IN_PROGRESS)


def appointment_start(appointment: Appointment) -> datetime:
    return combine_date_time(appointment.appointment_date, appointment.appointment_time)


def status_of(appointment: Appointment) -> AppointmentStatus:
    return AppointmentStatus(appointment.status)


def is_terminal(appointment: Appointment) -> bool:
    return status_of(appointment) in TERMINAL_STATUSES


class AppointmentLifecycle:
    """Guarded status transitions. Callers commit the session afterwards."""

    def confirm(self, appointment: Appointment, now: datetime) -> Appointment:
        if status_of(appointment) != AppointmentStatus.SCHEDULED:
            raise StateError(f"Only scheduled appointments can be confirmed (status is {appointment.status})")
        return self._move(appointment, AppointmentStatus.CONFIRMED, now)

    def check_in(self, appointment: Appointment, now: datetime) -> Appointment:
        rules = get_scheduling_rules()

        if appointment.checked_in_at is not None:
            raise StateError("Appointment is already checked in")
        if status_of(appointment) not in CHECK_IN_FROM:
            raise StateError(f"Cannot check in an appointment with status {appointment.status}")

        start = appointment_start(appointment)
        opens = start - timedelta(minutes=rules.CHECK_IN_EARLY_MINUTES)
        closes = start + timedelta(minutes=rules.CHECK_IN_LATE_MINUTES)
        if now < opens:
            raise StateError(
                f"Check-in opens {rules.CHECK_IN_EARLY_MINUTES} minutes before the appointment "
                f"(from {opens.strftime('%H:%M')})"
            )
        if now > closes:
            raise StateError(
                f"Check-in window closed {rules.CHECK_IN_LATE_MINUTES} minutes after the appointment start "
                f"(at {closes.strftime('%H:%M')})"
            )

        appointment.checked_in_at = now
        return self._move(appointment, AppointmentStatus.CHECKED_IN, now)

    def start(self, appointment: Appointment, now: datetime) -> Appointment:
        if status_of(appointment) != AppointmentStatus.CHECKED_IN:
            raise StateError(f"Only checked-in appointments can be started (status is {appointment.status})")
        return self._move(appointment, AppointmentStatus.IN_PROGRESS, now)

    def check_out(self, appointment: Appointment, now: datetime) -> Appointment:
        if status_of(appointment) not in CHECK_OUT_FROM:
            raise StateError(
                f"Only checked-in or in-progress appointments can be checked out (status is {appointment.status})"
            )
        appointment.checked_out_at = now
        return self._move(appointment, AppointmentStatus.COMPLETED, now)

    def cancel(
        self,
        appointment: Appointment,
        now: datetime,
        cancelled_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Appointment:
        """Cancel one appointment. Other members of its series are untouched."""
        status = status_of(appointment)
        if status == AppointmentStatus.CANCELLED:
            raise StateError("Appointment is already cancelled")
        if status in TERMINAL_STATUSES:
            raise StateError(f"Cannot cancel an appointment with status {appointment.status}")

        appointment.cancelled_at = now
        appointment.cancelled_by = cancelled_by
        appointment.cancellation_reason = reason
        return self._move(appointment, AppointmentStatus.CANCELLED, now)

    def mark_no_show(self, appointment: Appointment, now: datetime) -> Appointment:
        if is_terminal(appointment):
            raise StateError(f"Cannot mark an appointment with status {appointment.status} as no-show")
        if now < appointment_start(appointment):
            raise StateError("Cannot mark an appointment as no-show before it starts")
        return self._move(appointment, AppointmentStatus.NO_SHOW, now)

    def ensure_reschedulable(self, appointment: Appointment, now: datetime) -> None:
        """Date, time and duration may only change on upcoming, open appointments"""
        if is_terminal(appointment):
            raise StateError(f"Cannot reschedule an appointment with status {appointment.status}")
        if appointment_start(appointment) <= now:
            raise StateError("Only upcoming appointments can be rescheduled")

    def ensure_editable(self, appointment: Appointment) -> None:
        if status_of(appointment) == AppointmentStatus.CANCELLED:
            raise StateError("Cannot edit a cancelled appointment")

    def _move(self, appointment: Appointment, target: AppointmentStatus, now: datetime) -> Appointment:
        previous = appointment.status
        appointment.status = target.value
        appointment.updated_at = now
        logger.info(f"Appointment {appointment.id}: {previous} -> {target.value}")
        return appointment
