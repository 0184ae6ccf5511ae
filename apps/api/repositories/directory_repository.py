"""Doctor and patient records referenced by the scheduling engine"""
from typing import List, Optional

from sqlmodel import Session, select

from exceptions import NotFoundError
from models import Doctor, Patient


class DirectoryRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return self.session.get(Doctor, doctor_id)

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        return self.session.get(Patient, patient_id)

    def require_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.get_doctor(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        return doctor

    def require_patient(self, patient_id: int) -> Patient:
        patient = self.get_patient(patient_id)
        if not patient:
            raise NotFoundError("Patient not found")
        return patient

    def lock_doctor(self, doctor_id: int) -> Doctor:
        """Row-lock the doctor until the transaction ends; bookings for one doctor queue behind it"""
        doctor = self.session.exec(
            select(Doctor).where(Doctor.id == doctor_id).with_for_update()
        ).first()
        if not doctor:
            raise NotFoundError("Doctor not found")
        return doctor

    def list_doctors(self, active_only: bool = False) -> List[Doctor]:
        query = select(Doctor)
        if active_only:
            query = query.where(Doctor.is_active == True)
        return list(self.session.exec(query.order_by(Doctor.name)).all())

    def list_patients(self) -> List[Patient]:
        return list(self.session.exec(select(Patient).order_by(Patient.last_name, Patient.first_name)).all())

    def add(self, record):
        self.session.add(record)
        self.session.flush()
        return record
