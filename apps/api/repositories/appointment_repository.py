"""Appointment persistence"""
from datetime import date
from typing import List, Optional, Sequence

from sqlmodel import Session, select, or_

from models import Appointment, AppointmentStatus, INACTIVE_STATUSES


class AppointmentRepository:
    """Reads and writes Appointment rows. Callers own the transaction."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, appointment_id: int) -> Optional[Appointment]:
        return self.session.get(Appointment, appointment_id)

    def list(
        self,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
        on_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        appointment_type: Optional[str] = None,
    ) -> List[Appointment]:
        """Filtered listing ordered by date then time"""
        query = select(Appointment)
        if doctor_id is not None:
            query = query.where(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.where(Appointment.patient_id == patient_id)
        if status:
            query = query.where(Appointment.status == status)
        if on_date:
            query = query.where(Appointment.appointment_date == on_date)
        if start_date:
            query = query.where(Appointment.appointment_date >= start_date)
        if end_date:
            query = query.where(Appointment.appointment_date <= end_date)
        if appointment_type:
            query = query.where(Appointment.type == appointment_type)

        query = query.order_by(Appointment.appointment_date, Appointment.appointment_time, Appointment.id)
        return list(self.session.exec(query).all())

    def active_on(self, doctor_id: int, on_date: date, exclude_id: Optional[int] = None) -> List[Appointment]:
        """Appointments still holding their slot for one doctor and day"""
        query = select(Appointment).where(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == on_date,
            Appointment.status.not_in([s.value for s in INACTIVE_STATUSES]),
        )
        if exclude_id is not None:
            query = query.where(Appointment.id != exclude_id)
        return list(self.session.exec(query.order_by(Appointment.appointment_time)).all())

    def series(self, seed_id: int) -> List[Appointment]:
        """The seed and every child generated from it"""
        query = select(Appointment).where(
            or_(Appointment.id == seed_id, Appointment.parent_appointment_id == seed_id)
        ).order_by(Appointment.appointment_date, Appointment.appointment_time)
        return list(self.session.exec(query).all())

    def due_for_reminder(self, on_date: date) -> List[Appointment]:
        query = select(Appointment).where(
            Appointment.appointment_date == on_date,
            Appointment.status.in_([AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value]),
            Appointment.reminder_sent == False,
        ).order_by(Appointment.appointment_time)
        return list(self.session.exec(query).all())

    def add(self, appointment: Appointment) -> Appointment:
        """Stage one row and flush so it receives an id"""
        self.session.add(appointment)
        self.session.flush()
        return appointment

    def add_many(self, appointments: Sequence[Appointment]) -> None:
        """Stage a batch of rows in a single flush"""
        if not appointments:
            return
        self.session.add_all(list(appointments))
        self.session.flush()
