"""Day-ahead appointment reminders"""
import logging
from datetime import date, datetime, timedelta
from typing import List

from sqlmodel import Session

from repositories.appointment_repository import AppointmentRepository
from repositories.directory_repository import DirectoryRepository
from schemas import ReminderItem
from utils.notification_service import NotificationService
from validators.business_rules import get_scheduling_rules

logger = logging.getLogger(__name__)


class ReminderService:
    def __init__(
        self,
        session: Session,
        appointments: AppointmentRepository,
        directory: DirectoryRepository,
        notifications: NotificationService,
    ):
        self.session = session
        self.appointments = appointments
        self.directory = directory
        self.notifications = notifications

    def send_reminders(self, today: date, now: datetime) -> List[ReminderItem]:
        """
        Text every patient with an open appointment ``REMINDER_LEAD_DAYS`` ahead.

        Appointments are flagged as reminded even when the SMS could not be
        delivered (no phone on file, provider error), so a second run the same
        day does not message anyone twice.
        """
        target = today + timedelta(days=get_scheduling_rules().REMINDER_LEAD_DAYS)
        due = self.appointments.due_for_reminder(target)

        items = []
        for appointment in due:
            patient = self.directory.require_patient(appointment.patient_id)
            doctor = self.directory.require_doctor(appointment.doctor_id)
            delivered, _ = self.notifications.send_appointment_reminder(
                patient.phone,
                patient.first_name,
                doctor.name,
                appointment.appointment_date.isoformat(),
                appointment.appointment_time,
            )
            appointment.reminder_sent = True
            appointment.reminder_sent_at = now
            items.append(ReminderItem(
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                doctor_id=appointment.doctor_id,
                appointment_date=appointment.appointment_date,
                appointment_time=appointment.appointment_time,
                delivered=delivered,
            ))

        self.session.commit()
        logger.info(f"Processed {len(items)} reminders for appointments on {target}")
        return items
