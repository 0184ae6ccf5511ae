"""Recurring series expansion"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List

from exceptions import AvailabilityError
from models import Appointment, AppointmentStatus, RecurringPattern
from repositories.appointment_repository import AppointmentRepository
from repositories.schedule_repository import ScheduleRepository
from services.conflicts import ConflictChecker
from validators.appointment_validator import validate_doctor_availability
from validators.business_rules import get_scheduling_rules
from validators.time_validator import add_months

logger = logging.getLogger(__name__)

SKIP_DOCTOR_UNAVAILABLE = "doctor_unavailable"
SKIP_OUTSIDE_HOURS = "outside_hours"
SKIP_CONFLICT = "conflict"

_DAY_STEPS = {
    RecurringPattern.DAILY: 1,
    RecurringPattern.WEEKLY: 7,
    RecurringPattern.BIWEEKLY: 14,
}


@dataclass
class ExpansionResult:
    children: List[Appointment] = field(default_factory=list)
    skipped: List[tuple] = field(default_factory=list)  # (date, reason)

    @property
    def created_dates(self) -> List[date]:
        return [child.appointment_date for child in self.children]


def candidate_dates(start: date, pattern: RecurringPattern, end: date) -> List[date]:
    """Occurrence dates after ``start`` up to and including ``end``.

    Monthly steps are taken from the seed date each time, so a series that
    starts on the 31st lands on the last day of shorter months and returns to
    the 31st when the month allows it.
    """
    limit = get_scheduling_rules().MAX_RECURRING_INSTANCES
    dates = []
    step = 1
    while len(dates) < limit:
        if pattern == RecurringPattern.MONTHLY:
            current = add_months(start, step)
        else:
            current = start + timedelta(days=_DAY_STEPS[pattern] * step)
        if current > end:
            break
        dates.append(current)
        step += 1
    return dates


class RecurringExpander:
    """Generates and stages the children of a recurring seed appointment"""

    def __init__(
        self,
        appointments: AppointmentRepository,
        schedules: ScheduleRepository,
        conflicts: ConflictChecker,
    ):
        self.appointments = appointments
        self.schedules = schedules
        self.conflicts = conflicts

    def build_children(self, seed: Appointment) -> ExpansionResult:
        """Check every candidate date and build children for the bookable ones"""
        result = ExpansionResult()
        pattern = RecurringPattern(seed.recurring_pattern)

        for occurrence in candidate_dates(seed.appointment_date, pattern, seed.recurring_end_date):
            schedule = self.schedules.get_day_for_date(seed.doctor_id, occurrence)
            if schedule is None or not schedule.is_available:
                result.skipped.append((occurrence, SKIP_DOCTOR_UNAVAILABLE))
                continue

            try:
                validate_doctor_availability(schedule, seed.appointment_time, seed.duration)
            except AvailabilityError:
                result.skipped.append((occurrence, SKIP_OUTSIDE_HOURS))
                continue

            if self.conflicts.has_conflict(seed.doctor_id, occurrence, seed.appointment_time, seed.duration):
                result.skipped.append((occurrence, SKIP_CONFLICT))
                continue

            result.children.append(Appointment(
                patient_id=seed.patient_id,
                doctor_id=seed.doctor_id,
                appointment_date=occurrence,
                appointment_time=seed.appointment_time,
                duration=seed.duration,
                status=AppointmentStatus.SCHEDULED.value,
                type=seed.type,
                priority=seed.priority,
                reason=seed.reason,
                symptoms=seed.symptoms,
                is_recurring=True,
                recurring_pattern=pattern.value,
                recurring_end_date=seed.recurring_end_date,
                parent_appointment_id=seed.id,
                created_at=seed.created_at,
                updated_at=seed.updated_at,
            ))

        return result

    def expand(self, seed: Appointment) -> ExpansionResult:
        """Build the series and stage it as one batch in the caller's transaction"""
        result = self.build_children(seed)
        self.appointments.add_many(result.children)
        logger.info(
            f"Expanded {seed.recurring_pattern} series from appointment {seed.id}: "
            f"{len(result.children)} created, {len(result.skipped)} skipped"
        )
        return result
