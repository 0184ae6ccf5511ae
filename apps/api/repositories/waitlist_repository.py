"""Waitlist persistence"""
from datetime import date
from typing import List, Optional

from sqlmodel import Session, select

from models import WaitlistEntry, WaitlistStatus


class WaitlistRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, entry_id: int) -> Optional[WaitlistEntry]:
        return self.session.get(WaitlistEntry, entry_id)

    def list(
        self,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[WaitlistEntry]:
        query = select(WaitlistEntry)
        if doctor_id is not None:
            query = query.where(WaitlistEntry.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.where(WaitlistEntry.patient_id == patient_id)
        if status:
            query = query.where(WaitlistEntry.status == status)
        return list(self.session.exec(query.order_by(WaitlistEntry.created_at, WaitlistEntry.id)).all())

    def find_waiting(self, patient_id: int, doctor_id: int) -> Optional[WaitlistEntry]:
        return self.session.exec(
            select(WaitlistEntry).where(
                WaitlistEntry.patient_id == patient_id,
                WaitlistEntry.doctor_id == doctor_id,
                WaitlistEntry.status == WaitlistStatus.WAITING.value,
            )
        ).first()

    def stale(self, today: date) -> List[WaitlistEntry]:
        """Open entries whose preferred date has already passed"""
        return list(self.session.exec(
            select(WaitlistEntry).where(
                WaitlistEntry.status.in_([WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value]),
                WaitlistEntry.preferred_date != None,
                WaitlistEntry.preferred_date < today,
            )
        ).all())

    def add(self, entry: WaitlistEntry) -> WaitlistEntry:
        self.session.add(entry)
        self.session.flush()
        return entry

    def delete(self, entry: WaitlistEntry) -> None:
        self.session.delete(entry)
        self.session.flush()
