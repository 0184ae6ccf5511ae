"""Scheduling rule configuration"""
import os
from typing import List
from pydantic import BaseModel


class DefaultScheduleDay(BaseModel):
    day_of_week: str
    start_time: str
    end_time: str
    is_available: bool = True


DEFAULT_WEEKLY_TEMPLATE = [
    DefaultScheduleDay(day_of_week="monday", start_time="09:00", end_time="17:00"),
    DefaultScheduleDay(day_of_week="tuesday", start_time="09:00", end_time="17:00"),
    DefaultScheduleDay(day_of_week="wednesday", start_time="09:00", end_time="17:00"),
    DefaultScheduleDay(day_of_week="thursday", start_time="09:00", end_time="17:00"),
    DefaultScheduleDay(day_of_week="friday", start_time="09:00", end_time="17:00"),
    DefaultScheduleDay(day_of_week="saturday", start_time="09:00", end_time="13:00"),
    DefaultScheduleDay(day_of_week="sunday", start_time="09:00", end_time="17:00", is_available=False),
]


class SchedulingRules(BaseModel):
    """Scheduling rules configuration"""
    # Slot resolution
    SLOT_DURATION_MINUTES: int = 30
    DEFAULT_APPOINTMENT_DURATION_MINUTES: int = 30
    MIN_APPOINTMENT_DURATION_MINUTES: int = 5
    MAX_APPOINTMENT_DURATION_MINUTES: int = 240

    # Check-in window around the appointment start
    CHECK_IN_EARLY_MINUTES: int = 15
    CHECK_IN_LATE_MINUTES: int = 30

    # Recurring series
    MAX_RECURRING_INSTANCES: int = 366

    # Optimistic retries when the store rejects a booking write
    BOOKING_MAX_ATTEMPTS: int = 3

    # Reminders go out this many days ahead
    REMINDER_LEAD_DAYS: int = 1

    DEFAULT_WEEKLY_TEMPLATE: List[DefaultScheduleDay] = DEFAULT_WEEKLY_TEMPLATE


# Global instance - overridable from the environment
scheduling_rules = SchedulingRules(
    SLOT_DURATION_MINUTES=int(os.getenv("SLOT_DURATION_MINUTES", "30")),
    CHECK_IN_EARLY_MINUTES=int(os.getenv("CHECK_IN_EARLY_MINUTES", "15")),
    CHECK_IN_LATE_MINUTES=int(os.getenv("CHECK_IN_LATE_MINUTES", "30")),
)


def get_scheduling_rules() -> SchedulingRules:
    """Get current scheduling rules"""
    return scheduling_rules

