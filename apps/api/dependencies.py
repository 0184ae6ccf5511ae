from datetime import datetime
from fastapi import Depends
from sqlmodel import Session
from database import get_session
from repositories.appointment_repository import AppointmentRepository
from repositories.directory_repository import DirectoryRepository
from repositories.schedule_repository import ScheduleRepository
from repositories.waitlist_repository import WaitlistRepository
from services.availability import AvailabilityResolver
from services.booking import BookingService
from services.conflicts import ConflictChecker
from services.lifecycle import AppointmentLifecycle
from services.recurring import RecurringExpander
from services.reminders import ReminderService
from services.waitlist import WaitlistMatcher
from utils.notification_service import NotificationService, get_notification_service


def get_now() -> datetime:
    """Clinic wall-clock time. Overridden in tests to pin the clock."""
    return datetime.now()


def get_appointment_repository(session: Session = Depends(get_session)) -> AppointmentRepository:
    return AppointmentRepository(session)


def get_schedule_repository(session: Session = Depends(get_session)) -> ScheduleRepository:
    return ScheduleRepository(session)


def get_directory_repository(session: Session = Depends(get_session)) -> DirectoryRepository:
    return DirectoryRepository(session)


def get_waitlist_repository(session: Session = Depends(get_session)) -> WaitlistRepository:
    return WaitlistRepository(session)


def get_conflict_checker(
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    schedules: ScheduleRepository = Depends(get_schedule_repository)
) -> ConflictChecker:
    return ConflictChecker(appointments, schedules)


def get_availability_resolver(
    schedules: ScheduleRepository = Depends(get_schedule_repository),
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    conflicts: ConflictChecker = Depends(get_conflict_checker)
) -> AvailabilityResolver:
    return AvailabilityResolver(schedules, appointments, conflicts)


def get_lifecycle() -> AppointmentLifecycle:
    return AppointmentLifecycle()


def get_booking_service(
    session: Session = Depends(get_session),
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    directory: DirectoryRepository = Depends(get_directory_repository),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
    conflicts: ConflictChecker = Depends(get_conflict_checker),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle)
) -> BookingService:
    expander = RecurringExpander(appointments, schedules, conflicts)
    return BookingService(session, appointments, directory, conflicts, expander, lifecycle)


def get_notifications() -> NotificationService:
    return get_notification_service()


def get_waitlist_matcher(
    session: Session = Depends(get_session),
    waitlist: WaitlistRepository = Depends(get_waitlist_repository),
    directory: DirectoryRepository = Depends(get_directory_repository),
    booking: BookingService = Depends(get_booking_service),
    notifications: NotificationService = Depends(get_notifications)
) -> WaitlistMatcher:
    return WaitlistMatcher(session, waitlist, directory, booking, notifications)


def get_reminder_service(
    session: Session = Depends(get_session),
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    directory: DirectoryRepository = Depends(get_directory_repository),
    notifications: NotificationService = Depends(get_notifications)
) -> ReminderService:
    return ReminderService(session, appointments, directory, notifications)
