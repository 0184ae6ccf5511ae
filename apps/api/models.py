from typing import Optional, List
from datetime import datetime, date
from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, String, Index, UniqueConstraint, text
from enum import Enum

class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, day: date) -> "DayOfWeek":
        return list(cls)[day.weekday()]

class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

# Statuses that no longer hold their slot
INACTIVE_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)
TERMINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)

class AppointmentType(str, Enum):
    IN_PERSON = "in_person"
    VIDEO_CALL = "video_call"
    PHONE_CALL = "phone_call"
    FOLLOW_UP = "follow_up"
    CONSULTATION = "consultation"
    EMERGENCY = "emergency"

class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)

class RecurringPattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

class WaitlistStatus(str, Enum):
    WAITING = "waiting"
    NOTIFIED = "notified"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

class ShiftType(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"
    ON_CALL = "on_call"

class ShiftStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class Doctor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    specialization: str
    email: Optional[str] = Field(default=None, index=True)
    phone: Optional[str] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    schedules: List["DoctorSchedule"] = Relationship(back_populates="doctor")

class Patient(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: Optional[str] = Field(default=None, index=True)
    phone: Optional[str] = None  # E.164, used for SMS reminders
    created_at: datetime = Field(default_factory=datetime.utcnow)

class DoctorSchedule(SQLModel, table=True):
    """Weekly availability template, one row per doctor and day"""
    __tablename__ = "doctor_schedule"
    __table_args__ = (UniqueConstraint("doctor_id", "day_of_week", name="uq_doctor_schedule_day"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    doctor_id: int = Field(foreign_key="doctor.id", index=True)
    day_of_week: str = Field(sa_column=Column(String(10), nullable=False))
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    is_available: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    doctor: Optional[Doctor] = Relationship(back_populates="schedules")

class Shift(SQLModel, table=True):
    """Date-specific shift; informational, not used for slot resolution"""
    id: Optional[int] = Field(default=None, primary_key=True)
    doctor_id: int = Field(foreign_key="doctor.id", index=True)
    shift_date: date = Field(index=True)
    start_time: str
    end_time: str
    shift_type: str = Field(default=ShiftType.MORNING.value, sa_column=Column(String(20)))
    status: str = Field(default=ShiftStatus.SCHEDULED.value, sa_column=Column(String(20)))
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Appointment(SQLModel, table=True):
    __table_args__ = (
        # At most one active booking per doctor/date/time
        Index(
            "uq_appointment_active_slot",
            "doctor_id", "appointment_date", "appointment_time",
            unique=True,
            sqlite_where=text("status NOT IN ('cancelled', 'no_show')"),
            postgresql_where=text("status NOT IN ('cancelled', 'no_show')"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patient.id", index=True)
    doctor_id: int = Field(foreign_key="doctor.id", index=True)
    appointment_date: date = Field(index=True)
    appointment_time: str  # Format: "HH:MM"
    duration: int = Field(default=30)  # Minutes
    status: str = Field(default=AppointmentStatus.SCHEDULED.value, sa_column=Column(String(20), nullable=False))
    type: str = Field(default=AppointmentType.CONSULTATION.value, sa_column=Column(String(20)))
    priority: str = Field(default=Priority.NORMAL.value, sa_column=Column(String(10)))
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None

    # Recurring series
    is_recurring: bool = Field(default=False)
    recurring_pattern: Optional[str] = Field(default=None, sa_column=Column(String(10)))
    recurring_end_date: Optional[date] = None
    parent_appointment_id: Optional[int] = Field(default=None, foreign_key="appointment.id", index=True)

    # Tracking fields
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    reschedule_count: int = Field(default=0)
    reminder_sent: bool = Field(default=False)
    reminder_sent_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class WaitlistEntry(SQLModel, table=True):
    __tablename__ = "waitlist_entry"

    id: Optional[int] = Field(default=None, primary_key=True)
    doctor_id: int = Field(foreign_key="doctor.id", index=True)
    patient_id: int = Field(foreign_key="patient.id", index=True)
    preferred_date: Optional[date] = None
    preferred_time: Optional[str] = None
    reason: Optional[str] = None
    priority: str = Field(default=Priority.NORMAL.value, sa_column=Column(String(10)))
    status: str = Field(default=WaitlistStatus.WAITING.value, sa_column=Column(String(10), nullable=False))
    is_notified: bool = Field(default=False)
    notified_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
