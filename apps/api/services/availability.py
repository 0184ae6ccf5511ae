"""Bookable slot resolution from the weekly schedule template"""
from datetime import date
from typing import List, Optional

from models import DoctorSchedule
from repositories.appointment_repository import AppointmentRepository
from repositories.schedule_repository import ScheduleRepository
from services.conflicts import ConflictChecker
from validators.business_rules import get_scheduling_rules
from validators.time_validator import format_minutes, to_minutes


class AvailabilityResolver:
    """Ordered free start times for a doctor on a given day.

    Nothing is cached here: each call reads the current appointments so the
    result always reflects the latest bookings.
    """

    def __init__(
        self,
        schedules: ScheduleRepository,
        appointments: AppointmentRepository,
        conflicts: ConflictChecker,
    ):
        self.schedules = schedules
        self.appointments = appointments
        self.conflicts = conflicts

    def day_schedule(self, doctor_id: int, on_date: date) -> Optional[DoctorSchedule]:
        """The template row that applies to ``on_date``, if the doctor works that day"""
        schedule = self.schedules.get_day_for_date(doctor_id, on_date)
        if schedule is None or not schedule.is_available:
            return None
        return schedule

    def slots(self, doctor_id: int, on_date: date, duration: Optional[int] = None) -> List[str]:
        schedule = self.day_schedule(doctor_id, on_date)
        if schedule is None:
            return []

        step = get_scheduling_rules().SLOT_DURATION_MINUTES
        length = duration or step
        start = to_minutes(schedule.start_time)
        end = to_minutes(schedule.end_time)
        booked = self.appointments.active_on(doctor_id, on_date)

        free = []
        current = start
        while current < end:
            if current + length <= end:
                candidate = format_minutes(current)
                if not self.conflicts.find_conflict(doctor_id, on_date, candidate, length, existing=booked):
                    free.append(candidate)
            current += step
        return free
