"""Shared fixtures: in-memory database, pinned clock and service wiring"""
import os

# Must be set before the app modules read their configuration
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["USE_SQLITE"] = "true"
for key in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_SMS_FROM"):
    os.environ.pop(key, None)

from datetime import date, datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from database import get_session, use_immediate_transactions
from dependencies import get_now, get_notifications
from main import app
from models import Doctor, DoctorSchedule, Patient
from schemas import AppointmentCreate
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
from utils.notification_service import NotificationService

# Sunday 1 March 2026, 08:00. The next day is a Monday.
NOW = datetime(2026, 3, 1, 8, 0)
MONDAY = date(2026, 3, 2)
SUNDAY = date(2026, 3, 8)

WEEKDAY_HOURS = {
    "monday": ("09:00", "17:00"),
    "tuesday": ("09:00", "17:00"),
    "wednesday": ("09:00", "17:00"),
    "thursday": ("09:00", "17:00"),
    "friday": ("09:00", "17:00"),
}


class RecordingNotifications(NotificationService):
    """Simulated Twilio sender that remembers every message"""

    def __init__(self):
        super().__init__()
        self.sent = []

    def send_sms(self, to_phone, message):
        result = super().send_sms(to_phone, message)
        self.sent.append((to_phone, message))
        return result


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def seeded_file_database(path, immediate=False):
    """File-backed SQLite with one doctor (Mondays 09:00-17:00) and one patient.

    Each Session gets its own connection, so tests can interleave requests.
    """
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
    if immediate:
        use_immediate_transactions(engine)
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        doctor = Doctor(name="Dr. Lee", specialization="General Practice")
        patient = Patient(first_name="Ana", last_name="Silva")
        session.add(doctor)
        session.add(patient)
        session.flush()
        session.add(DoctorSchedule(doctor_id=doctor.id, day_of_week="monday", start_time="09:00", end_time="17:00"))
        db = SimpleNamespace(engine=engine, doctor_id=doctor.id, patient_id=patient.id)
        session.commit()
    return db


@pytest.fixture
def file_db(tmp_path):
    db = seeded_file_database(tmp_path / "clinic.db")
    yield db
    db.engine.dispose()


@pytest.fixture
def locking_file_db(tmp_path):
    """Like file_db, with the same BEGIN IMMEDIATE transactions as the dev engine"""
    db = seeded_file_database(tmp_path / "clinic.db", immediate=True)
    yield db
    db.engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def notifications():
    return RecordingNotifications()


def wire_services(session, notifications, checker_class=ConflictChecker):
    """Services wired the same way the request dependencies wire them"""
    appointments = AppointmentRepository(session)
    schedules = ScheduleRepository(session)
    directory = DirectoryRepository(session)
    waitlist = WaitlistRepository(session)
    conflicts = checker_class(appointments, schedules)
    lifecycle = AppointmentLifecycle()
    expander = RecurringExpander(appointments, schedules, conflicts)
    booking = BookingService(session, appointments, directory, conflicts, expander, lifecycle)

    return SimpleNamespace(
        appointments=appointments,
        schedules=schedules,
        directory=directory,
        conflicts=conflicts,
        lifecycle=lifecycle,
        expander=expander,
        booking=booking,
        availability=AvailabilityResolver(schedules, appointments, conflicts),
        waitlist=WaitlistMatcher(session, waitlist, directory, booking, notifications),
        reminders=ReminderService(session, appointments, directory, notifications),
    )


@pytest.fixture
def scheduling(session, notifications):
    return wire_services(session, notifications)


@pytest.fixture
def make_doctor(session):
    """Create a doctor with one template row per entry in ``hours``"""
    def _make(name="Dr. Lee", hours=None, unavailable=()):
        doctor = Doctor(name=name, specialization="General Practice", phone="+15550100")
        session.add(doctor)
        session.flush()

        for day, (start, end) in (WEEKDAY_HOURS if hours is None else hours).items():
            session.add(DoctorSchedule(doctor_id=doctor.id, day_of_week=day, start_time=start, end_time=end))
        for day in unavailable:
            session.add(DoctorSchedule(doctor_id=doctor.id, day_of_week=day, start_time="09:00",
                                       end_time="17:00", is_available=False))

        session.commit()
        session.refresh(doctor)
        return doctor
    return _make


@pytest.fixture
def make_patient(session):
    def _make(first_name="Ana", last_name="Silva", phone="+15550199"):
        patient = Patient(first_name=first_name, last_name=last_name, phone=phone)
        session.add(patient)
        session.commit()
        session.refresh(patient)
        return patient
    return _make


@pytest.fixture
def client(session, notifications):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_now] = lambda: NOW
    app.dependency_overrides[get_notifications] = lambda: notifications
    yield TestClient(app)
    app.dependency_overrides.clear()


def appointment_request(doctor, patient, day=MONDAY, time="10:00", **extra):
    """Booking payload for ``doctor`` and ``patient``"""
    return AppointmentCreate(
        doctor_id=doctor.id,
        patient_id=patient.id,
        appointment_date=day,
        appointment_time=time,
        **extra
    )
