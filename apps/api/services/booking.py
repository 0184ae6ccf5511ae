"""Booking and rescheduling"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from exceptions import ConflictError, NotFoundError, SchedulingError
from models import Appointment, AppointmentStatus, RecurringPattern
from repositories.appointment_repository import AppointmentRepository
from repositories.directory_repository import DirectoryRepository
from schemas import AppointmentCreate, AppointmentUpdate, RecurrenceSummary, SkippedOccurrence
from services.conflicts import ConflictChecker
from services.lifecycle import AppointmentLifecycle
from services.recurring import ExpansionResult, RecurringExpander
from validators.appointment_validator import (
    validate_appointment_duration,
    validate_appointment_time_not_past,
    validate_recurrence,
)
from validators.business_rules import get_scheduling_rules
from validators.time_validator import validate_time_format

logger = logging.getLogger(__name__)

RESCHEDULE_FIELDS = ("appointment_date", "appointment_time", "duration")


@dataclass
class BookingResult:
    appointment: Appointment
    recurrence: Optional[RecurrenceSummary] = None


def summarize(seed: Appointment, expansion: ExpansionResult) -> RecurrenceSummary:
    return RecurrenceSummary(
        pattern=RecurringPattern(seed.recurring_pattern),
        end_date=seed.recurring_end_date,
        created_count=len(expansion.children),
        skipped_count=len(expansion.skipped),
        created_dates=expansion.created_dates,
        skipped=[SkippedOccurrence(appointment_date=day, reason=reason) for day, reason in expansion.skipped],
    )


class BookingService:
    """Validates and writes bookings.

    The slot check and the inserts for a seed and its series share one
    transaction, opened by locking the doctor's row so overlapping bookings
    for that doctor run one after the other. If the store still rejects the
    write, the transaction is rolled back and the whole booking is
    re-validated, up to ``BOOKING_MAX_ATTEMPTS`` times.
    """

    def __init__(
        self,
        session: Session,
        appointments: AppointmentRepository,
        directory: DirectoryRepository,
        conflicts: ConflictChecker,
        expander: RecurringExpander,
        lifecycle: AppointmentLifecycle,
    ):
        self.session = session
        self.appointments = appointments
        self.directory = directory
        self.conflicts = conflicts
        self.expander = expander
        self.lifecycle = lifecycle

    def book(
        self,
        data: AppointmentCreate,
        now: datetime,
        before_commit: Optional[Callable[[BookingResult], None]] = None,
    ) -> BookingResult:
        """Book an appointment and, for a recurring request, its series.

        ``before_commit`` runs inside the booking transaction after the rows
        are staged, so callers can write related changes that must commit
        (or fail) together with the booking.
        """
        rules = get_scheduling_rules()
        duration = data.duration or rules.DEFAULT_APPOINTMENT_DURATION_MINUTES

        validate_time_format(data.appointment_time)
        validate_appointment_duration(duration)
        validate_appointment_time_not_past(data.appointment_date, data.appointment_time, now)
        validate_recurrence(data.is_recurring, data.recurring_pattern, data.recurring_end_date, data.appointment_date)
        self.directory.require_doctor(data.doctor_id)
        self.directory.require_patient(data.patient_id)

        for attempt in range(1, rules.BOOKING_MAX_ATTEMPTS + 1):
            try:
                result = self._stage(data, duration, now)
                if before_commit:
                    before_commit(result)
                self.session.commit()
            except SchedulingError:
                self.session.rollback()
                raise
            except IntegrityError:
                self.session.rollback()
                logger.warning(
                    f"Booking write for doctor {data.doctor_id} on {data.appointment_date} "
                    f"{data.appointment_time} lost a race (attempt {attempt}/{rules.BOOKING_MAX_ATTEMPTS})"
                )
                continue

            self.session.refresh(result.appointment)
            logger.info(
                f"Booked appointment {result.appointment.id} for patient {data.patient_id} "
                f"with doctor {data.doctor_id} on {data.appointment_date} {data.appointment_time}"
            )
            return result

        raise ConflictError("This time slot is already booked")

    def _stage(self, data: AppointmentCreate, duration: int, now: datetime) -> BookingResult:
        self.directory.lock_doctor(data.doctor_id)
        self.conflicts.ensure_bookable(data.doctor_id, data.appointment_date, data.appointment_time, duration)

        seed = Appointment(
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            duration=duration,
            status=AppointmentStatus.SCHEDULED.value,
            type=data.type.value,
            priority=data.priority.value,
            reason=data.reason,
            symptoms=data.symptoms,
            notes=data.notes,
            is_recurring=data.is_recurring,
            recurring_pattern=data.recurring_pattern.value if data.is_recurring else None,
            recurring_end_date=data.recurring_end_date if data.is_recurring else None,
            created_at=now,
            updated_at=now,
        )
        self.appointments.add(seed)

        if not seed.is_recurring:
            return BookingResult(appointment=seed)

        expansion = self.expander.expand(seed)
        return BookingResult(appointment=seed, recurrence=summarize(seed, expansion))

    def reschedule(self, appointment_id: int, data: AppointmentUpdate, now: datetime) -> Appointment:
        """Apply an edit. Date/time/duration changes are re-validated like a new booking."""
        appointment = self.appointments.get(appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        self.lifecycle.ensure_editable(appointment)

        moving = {key: changes[key] for key in RESCHEDULE_FIELDS if key in changes}
        moving = {key: value for key, value in moving.items() if getattr(appointment, key) != value}
        if moving:
            self.lifecycle.ensure_reschedulable(appointment, now)
            new_date = moving.get("appointment_date", appointment.appointment_date)
            new_time = moving.get("appointment_time", appointment.appointment_time)
            new_duration = moving.get("duration", appointment.duration)

            validate_time_format(new_time)
            validate_appointment_duration(new_duration)
            validate_appointment_time_not_past(new_date, new_time, now)
            self.directory.lock_doctor(appointment.doctor_id)
            try:
                self.conflicts.ensure_bookable(
                    appointment.doctor_id, new_date, new_time, new_duration, exclude_id=appointment.id
                )
            except SchedulingError:
                self.session.rollback()
                raise
            appointment.reschedule_count += 1

        for key, value in changes.items():
            setattr(appointment, key, value.value if hasattr(value, "value") else value)
        appointment.updated_at = now

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("This time slot is already booked")

        self.session.refresh(appointment)
        if moving:
            logger.info(f"Rescheduled appointment {appointment.id} to {appointment.appointment_date} "
                        f"{appointment.appointment_time}")
        return appointment
