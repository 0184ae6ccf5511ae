from fastapi import APIRouter, Depends, Query, status, Request
from sqlmodel import Session
from database import get_session
from models import Appointment, AppointmentStatus, AppointmentType
from schemas import (
    AppointmentCreate, AppointmentUpdate, AppointmentCancel, AppointmentResponse,
    AvailableSlotsResponse, BookingResponse, CancellationResponse, ReminderResponse,
    ScheduleWindow, WaitlistResponse
)
from dependencies import (
    get_now, get_appointment_repository, get_directory_repository, get_availability_resolver,
    get_booking_service, get_lifecycle, get_waitlist_matcher, get_reminder_service
)
from exceptions import NotFoundError
from rate_limit import limiter, BOOKING_RATE_LIMIT
from repositories.appointment_repository import AppointmentRepository
from repositories.directory_repository import DirectoryRepository
from services.availability import AvailabilityResolver
from services.booking import BookingService
from services.lifecycle import AppointmentLifecycle
from services.reminders import ReminderService
from services.waitlist import WaitlistMatcher
from datetime import datetime, date
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])


def get_appointment_or_404(appointments: AppointmentRepository, appointment_id: int) -> Appointment:
    appointment = appointments.get(appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def commit_transition(session: Session, appointment: Appointment) -> Appointment:
    session.commit()
    session.refresh(appointment)
    return appointment


@router.get("", response_model=List[AppointmentResponse])
def list_appointments(
    doctor_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    appointment_status: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    on_date: Optional[date] = Query(default=None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    appointment_type: Optional[AppointmentType] = Query(default=None, alias="type"),
    appointments: AppointmentRepository = Depends(get_appointment_repository)
):
    """List appointments ordered by date then time"""
    return appointments.list(
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=appointment_status.value if appointment_status else None,
        on_date=on_date,
        start_date=start_date,
        end_date=end_date,
        appointment_type=appointment_type.value if appointment_type else None
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(BOOKING_RATE_LIMIT)
def create_appointment(
    request: Request,
    appointment_data: AppointmentCreate,
    booking: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now)
):
    """Book an appointment. Recurring bookings also create the rest of the series."""
    result = booking.book(appointment_data, now)
    response = BookingResponse.model_validate(result.appointment)
    response.recurrence = result.recurrence
    return response


@router.get("/available-slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    doctor_id: int,
    on_date: date = Query(alias="date"),
    duration: Optional[int] = Query(default=None, gt=0),
    directory: DirectoryRepository = Depends(get_directory_repository),
    availability: AvailabilityResolver = Depends(get_availability_resolver)
):
    """Free start times for a doctor on a day"""
    directory.require_doctor(doctor_id)

    schedule = availability.day_schedule(doctor_id, on_date)
    if schedule is None:
        return AvailableSlotsResponse(
            doctor_id=doctor_id,
            appointment_date=on_date,
            slots=[],
            message="Doctor is not available on this day"
        )

    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        appointment_date=on_date,
        slots=availability.slots(doctor_id, on_date, duration),
        schedule=ScheduleWindow(start_time=schedule.start_time, end_time=schedule.end_time)
    )


@router.post("/send-reminders", response_model=ReminderResponse)
def send_reminders(
    reminders: ReminderService = Depends(get_reminder_service),
    now: datetime = Depends(get_now)
):
    """Send SMS reminders for tomorrow's open appointments"""
    items = reminders.send_reminders(now.date(), now)
    return ReminderResponse(
        sent=len(items),
        message=f"Sent {len(items)} appointment reminders",
        appointments=items
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository)
):
    return get_appointment_or_404(appointments, appointment_id)


@router.get("/{appointment_id}/series", response_model=List[AppointmentResponse])
def get_appointment_series(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository)
):
    """The seed of a recurring series and all of its children"""
    appointment = get_appointment_or_404(appointments, appointment_id)
    seed_id = appointment.parent_appointment_id or appointment.id
    return appointments.series(seed_id)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    appointment_update: AppointmentUpdate,
    booking: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now)
):
    """Edit an appointment. Date, time or duration changes are checked like a new booking."""
    return booking.reschedule(appointment_id, appointment_update, now)


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    appointment = get_appointment_or_404(appointments, appointment_id)
    lifecycle.confirm(appointment, now)
    return commit_transition(session, appointment)


@router.post("/{appointment_id}/checkin", response_model=AppointmentResponse)
def check_in_appointment(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    """Check a patient in (from 15 minutes before until 30 minutes after the start)"""
    appointment = get_appointment_or_404(appointments, appointment_id)
    lifecycle.check_in(appointment, now)
    return commit_transition(session, appointment)


@router.post("/{appointment_id}/start", response_model=AppointmentResponse)
def start_appointment(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    appointment = get_appointment_or_404(appointments, appointment_id)
    lifecycle.start(appointment, now)
    return commit_transition(session, appointment)


@router.post("/{appointment_id}/checkout", response_model=AppointmentResponse)
def check_out_appointment(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    appointment = get_appointment_or_404(appointments, appointment_id)
    lifecycle.check_out(appointment, now)
    return commit_transition(session, appointment)


@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: int,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    appointment = get_appointment_or_404(appointments, appointment_id)
    lifecycle.mark_no_show(appointment, now)
    return commit_transition(session, appointment)


@router.post("/{appointment_id}/cancel", response_model=CancellationResponse)
def cancel_appointment(
    appointment_id: int,
    cancel_data: Optional[AppointmentCancel] = None,
    appointments: AppointmentRepository = Depends(get_appointment_repository),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    """
    Cancel one appointment. The record is kept with its cancellation details
    and the freed slot is matched against the waitlist; nobody is notified
    automatically.
    """
    cancel_data = cancel_data or AppointmentCancel()
    appointment = get_appointment_or_404(appointments, appointment_id)
    lifecycle.cancel(appointment, now, cancel_data.cancelled_by, cancel_data.cancellation_reason)
    commit_transition(session, appointment)

    candidates = waitlist.find_candidates(
        appointment.doctor_id, appointment.appointment_date, appointment.appointment_time
    )
    if candidates:
        logger.info(f"Cancelled appointment {appointment.id} matches {len(candidates)} waitlist entries")

    return CancellationResponse(
        appointment=AppointmentResponse.model_validate(appointment),
        waitlist_candidates=[WaitlistResponse.model_validate(entry) for entry in candidates]
    )
