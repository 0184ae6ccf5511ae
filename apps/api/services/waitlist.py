"""Waitlist matching, offers and conversion into appointments"""
import logging
from datetime import date, datetime
from typing import List, Optional

from sqlmodel import Session

from exceptions import ConflictError, NotFoundError, StateError, ValidationError
from models import Priority, WaitlistEntry, WaitlistStatus
from repositories.directory_repository import DirectoryRepository
from repositories.waitlist_repository import WaitlistRepository
from schemas import AppointmentCreate, WaitlistConvert, WaitlistCreate, WaitlistUpdate
from services.booking import BookingResult, BookingService
from utils.notification_service import NotificationService
from validators.time_validator import validate_time_format

logger = logging.getLogger(__name__)

CONVERTIBLE = (WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED)


def queue_order(entry: WaitlistEntry):
    """Highest priority first, then first come first served"""
    return (-Priority(entry.priority).rank, entry.created_at, entry.id)


class WaitlistMatcher:
    """Finds patients waiting for an opening and moves them through the waitlist.

    Matching is on demand only: nothing here runs automatically when a slot
    frees up.
    """

    def __init__(
        self,
        session: Session,
        waitlist: WaitlistRepository,
        directory: DirectoryRepository,
        booking: BookingService,
        notifications: NotificationService,
    ):
        self.session = session
        self.waitlist = waitlist
        self.directory = directory
        self.booking = booking
        self.notifications = notifications

    def get(self, entry_id: int) -> WaitlistEntry:
        entry = self.waitlist.get(entry_id)
        if not entry:
            raise NotFoundError("Waitlist entry not found")
        return entry

    def list(
        self,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[WaitlistEntry]:
        return sorted(self.waitlist.list(doctor_id, patient_id, status), key=queue_order)

    def find_candidates(self, doctor_id: int, on_date: date, appointment_time: str) -> List[WaitlistEntry]:
        """Waiting entries compatible with an opening, in queue order"""
        validate_time_format(appointment_time)
        entries = self.waitlist.list(doctor_id=doctor_id, status=WaitlistStatus.WAITING.value)
        matches = [
            entry for entry in entries
            if (entry.preferred_date is None or entry.preferred_date == on_date)
            and (entry.preferred_time is None or entry.preferred_time == appointment_time)
        ]
        return sorted(matches, key=queue_order)

    def add(self, data: WaitlistCreate, now: datetime) -> WaitlistEntry:
        self.directory.require_doctor(data.doctor_id)
        self.directory.require_patient(data.patient_id)
        if data.preferred_time:
            validate_time_format(data.preferred_time)

        if self.waitlist.find_waiting(data.patient_id, data.doctor_id):
            raise ConflictError("Patient is already on the waitlist for this doctor")

        entry = WaitlistEntry(
            doctor_id=data.doctor_id,
            patient_id=data.patient_id,
            preferred_date=data.preferred_date,
            preferred_time=data.preferred_time,
            reason=data.reason,
            priority=data.priority.value,
            status=WaitlistStatus.WAITING.value,
            created_at=now,
            updated_at=now,
        )
        self.waitlist.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        logger.info(f"Patient {entry.patient_id} added to waitlist for doctor {entry.doctor_id} (entry {entry.id})")
        return entry

    def update(self, entry_id: int, data: WaitlistUpdate, now: datetime) -> WaitlistEntry:
        entry = self.get(entry_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if changes.get("preferred_time"):
            validate_time_format(changes["preferred_time"])
        if "status" in changes:
            if changes["status"] != WaitlistStatus.CANCELLED:
                raise ValidationError("A waitlist entry can only be cancelled by an update")
            if WaitlistStatus(entry.status) not in CONVERTIBLE:
                raise StateError(f"Cannot cancel a waitlist entry with status {entry.status}")

        for key, value in changes.items():
            setattr(entry, key, value.value if hasattr(value, "value") else value)
        entry.updated_at = now

        self.session.commit()
        self.session.refresh(entry)
        return entry

    def remove(self, entry_id: int) -> None:
        entry = self.get(entry_id)
        self.waitlist.delete(entry)
        self.session.commit()
        logger.info(f"Removed waitlist entry {entry_id}")

    def notify(self, entry_id: int, now: datetime) -> WaitlistEntry:
        """Offer an opening to a waiting patient"""
        entry = self.get(entry_id)
        if WaitlistStatus(entry.status) != WaitlistStatus.WAITING:
            raise StateError(f"Only waiting entries can be notified (status is {entry.status})")

        patient = self.directory.require_patient(entry.patient_id)
        doctor = self.directory.require_doctor(entry.doctor_id)
        delivered, _ = self.notifications.send_waitlist_offer(
            patient.phone,
            patient.first_name,
            doctor.name,
            entry.preferred_date.isoformat() if entry.preferred_date else None,
            entry.preferred_time,
        )

        entry.status = WaitlistStatus.NOTIFIED.value
        entry.is_notified = True
        entry.notified_at = now
        entry.updated_at = now
        self.session.commit()
        self.session.refresh(entry)
        logger.info(f"Waitlist entry {entry.id} notified (sms delivered: {delivered})")
        return entry

    def convert(self, entry_id: int, data: WaitlistConvert, now: datetime) -> tuple:
        """Book a real appointment for a waitlisted patient through the normal booking path"""
        entry = self.get(entry_id)
        if WaitlistStatus(entry.status) not in CONVERTIBLE:
            raise StateError(f"Cannot convert a waitlist entry with status {entry.status}")

        appointment_date = data.appointment_date or entry.preferred_date
        appointment_time = data.appointment_time or entry.preferred_time
        if appointment_date is None or appointment_time is None:
            raise ValidationError("An appointment date and time are required to convert this waitlist entry")

        def mark_scheduled(result: BookingResult):
            # Re-read under lock: another request may have converted or cancelled the entry
            self.session.refresh(entry, with_for_update=True)
            if WaitlistStatus(entry.status) not in CONVERTIBLE:
                raise StateError(f"Cannot convert a waitlist entry with status {entry.status}")
            entry.status = WaitlistStatus.SCHEDULED.value
            entry.updated_at = now
            self.session.add(entry)

        result: BookingResult = self.booking.book(
            AppointmentCreate(
                patient_id=entry.patient_id,
                doctor_id=entry.doctor_id,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                duration=data.duration,
                type=data.type,
                priority=Priority(entry.priority),
                reason=entry.reason,
                symptoms=data.symptoms,
                notes=data.notes,
            ),
            now,
            before_commit=mark_scheduled,
        )

        self.session.refresh(entry)
        logger.info(f"Waitlist entry {entry.id} converted into appointment {result.appointment.id}")
        return entry, result

    def expire_stale(self, today: date, now: datetime) -> int:
        """Expire open entries whose preferred date has passed"""
        stale = self.waitlist.stale(today)
        for entry in stale:
            entry.status = WaitlistStatus.EXPIRED.value
            entry.updated_at = now
        self.session.commit()
        if stale:
            logger.info(f"Expired {len(stale)} waitlist entries preferring dates before {today}")
        return len(stale)
