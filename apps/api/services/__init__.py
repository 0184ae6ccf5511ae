"""
Services package for the clinic scheduling API
Contains the booking, availability, lifecycle and waitlist logic
"""

from .conflicts import ConflictChecker
from .availability import AvailabilityResolver
from .recurring import RecurringExpander, ExpansionResult
from .lifecycle import AppointmentLifecycle
from .booking import BookingService, BookingResult
from .waitlist import WaitlistMatcher
from .reminders import ReminderService

__all__ = [
    'ConflictChecker',
    'AvailabilityResolver',
    'RecurringExpander',
    'ExpansionResult',
    'AppointmentLifecycle',
    'BookingService',
    'BookingResult',
    'WaitlistMatcher',
    'ReminderService',
]
