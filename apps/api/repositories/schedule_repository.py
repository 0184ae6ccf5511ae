"""Weekly schedule templates and shift overrides"""
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import event
from sqlmodel import Session, select

from models import DayOfWeek, Doctor, DoctorSchedule, Shift
from utils.cache import ScheduleCache
from validators.business_rules import get_scheduling_rules

logger = logging.getLogger(__name__)

_CACHED_FIELDS = ("id", "doctor_id", "day_of_week", "start_time", "end_time", "is_available")

# Session.info key holding doctor ids whose cached template goes stale on commit
STALE_TEMPLATES = "stale_schedule_templates"


@event.listens_for(Session, "after_commit")
def _drop_committed_templates(session):
    for doctor_id in session.info.pop(STALE_TEMPLATES, ()):
        ScheduleCache.invalidate_template(doctor_id)


@event.listens_for(Session, "after_rollback")
def _forget_stale_templates(session):
    session.info.pop(STALE_TEMPLATES, None)


class ScheduleRepository:
    """Reads and writes DoctorSchedule and Shift rows"""

    def __init__(self, session: Session):
        self.session = session

    def _mark_stale(self, doctor_id: int) -> None:
        """Drop the cached template once this transaction commits"""
        self.session.info.setdefault(STALE_TEMPLATES, set()).add(doctor_id)

    def get_template(self, doctor_id: int) -> List[DoctorSchedule]:
        """All template rows for a doctor, Monday first"""
        rows = self.session.exec(
            select(DoctorSchedule).where(DoctorSchedule.doctor_id == doctor_id)
        ).all()
        order = list(DayOfWeek)
        return sorted(rows, key=lambda row: order.index(DayOfWeek(row.day_of_week)))

    def get_day(self, doctor_id: int, day: DayOfWeek) -> Optional[DoctorSchedule]:
        """Template row for one weekday, or None when the day is not scheduled"""
        # Uncommitted edits from this session are read directly and never cached
        editing = doctor_id in self.session.info.get(STALE_TEMPLATES, ())
        cached = None if editing else ScheduleCache.get_template(doctor_id)
        if cached is None:
            rows = self.get_template(doctor_id)
            cached = [{field: getattr(row, field) for field in _CACHED_FIELDS} for row in rows]
            if not editing:
                ScheduleCache.set_template(doctor_id, cached)
        else:
            logger.debug(f"Schedule template for doctor {doctor_id} served from cache")

        for row in cached:
            if row["day_of_week"] == day.value:
                return DoctorSchedule(**row)
        return None

    def get_day_for_date(self, doctor_id: int, day: date) -> Optional[DoctorSchedule]:
        return self.get_day(doctor_id, DayOfWeek.from_date(day))

    def upsert_template(self, doctor_id: int, entries: Iterable[dict]) -> List[DoctorSchedule]:
        """Create or update one row per supplied weekday; other days are left alone"""
        existing = {row.day_of_week: row for row in self.get_template(doctor_id)}
        now = datetime.utcnow()

        for entry in entries:
            day = DayOfWeek(entry["day_of_week"]).value
            row = existing.get(day)
            if row is None:
                row = DoctorSchedule(doctor_id=doctor_id, day_of_week=day, start_time=entry["start_time"],
                                     end_time=entry["end_time"], is_available=entry.get("is_available", True))
                existing[day] = row
            else:
                row.start_time = entry["start_time"]
                row.end_time = entry["end_time"]
                row.is_available = entry.get("is_available", True)
                row.updated_at = now
            self.session.add(row)

        self.session.flush()
        self._mark_stale(doctor_id)
        return self.get_template(doctor_id)

    def ensure_default_template(self, doctor_id: int) -> int:
        """Fill in default rows for weekdays that have none; returns rows created"""
        present = {row.day_of_week for row in self.get_template(doctor_id)}
        created = 0
        for day in get_scheduling_rules().DEFAULT_WEEKLY_TEMPLATE:
            if day.day_of_week in present:
                continue
            self.session.add(DoctorSchedule(doctor_id=doctor_id, **day.model_dump()))
            created += 1

        if created:
            self.session.flush()
            self._mark_stale(doctor_id)
        return created

    def active_doctor_ids(self) -> List[int]:
        return list(self.session.exec(select(Doctor.id).where(Doctor.is_active == True)).all())

    def list_shifts(self, doctor_id: int, start: Optional[date] = None, end: Optional[date] = None) -> List[Shift]:
        query = select(Shift).where(Shift.doctor_id == doctor_id)
        if start:
            query = query.where(Shift.shift_date >= start)
        if end:
            query = query.where(Shift.shift_date <= end)
        return list(self.session.exec(query.order_by(Shift.shift_date, Shift.start_time)).all())

    def add_shift(self, shift: Shift) -> Shift:
        self.session.add(shift)
        self.session.flush()
        return shift
