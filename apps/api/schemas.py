from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field
from models import (
    AppointmentStatus, AppointmentType, DayOfWeek, Priority, RecurringPattern,
    ShiftStatus, ShiftType, WaitlistStatus
)
from datetime import datetime, date

# Doctor schemas
class DoctorCreate(BaseModel):
    name: str
    specialization: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

class DoctorResponse(BaseModel):
    id: int
    name: str
    specialization: str
    email: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

# Patient schemas
class PatientCreate(BaseModel):
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

class PatientResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

# Schedule schemas
class DoctorScheduleEntry(BaseModel):
    day_of_week: DayOfWeek
    start_time: str   # Format: "HH:MM"
    end_time: str     # Format: "HH:MM"
    is_available: bool = True

class DoctorScheduleUpdate(BaseModel):
    schedules: List[DoctorScheduleEntry]

class DoctorScheduleResponse(BaseModel):
    id: int
    doctor_id: int
    day_of_week: DayOfWeek
    start_time: str
    end_time: str
    is_available: bool

    class Config:
        from_attributes = True

class ScheduleBackfillResponse(BaseModel):
    doctors: int
    created: int
    message: str

# Shift schemas
class ShiftCreate(BaseModel):
    shift_date: date
    start_time: str
    end_time: str
    shift_type: ShiftType = ShiftType.MORNING
    status: ShiftStatus = ShiftStatus.SCHEDULED
    notes: Optional[str] = None

class ShiftResponse(BaseModel):
    id: int
    doctor_id: int
    shift_date: date
    start_time: str
    end_time: str
    shift_type: ShiftType
    status: ShiftStatus
    notes: Optional[str] = None

    class Config:
        from_attributes = True

# Appointment schemas
class AppointmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str  # Format: "HH:MM"
    duration: Optional[int] = None
    type: AppointmentType = AppointmentType.CONSULTATION
    priority: Priority = Priority.NORMAL
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    is_recurring: bool = False
    recurring_pattern: Optional[RecurringPattern] = None
    recurring_end_date: Optional[date] = None

class AppointmentUpdate(BaseModel):
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = None
    duration: Optional[int] = None
    type: Optional[AppointmentType] = None
    priority: Optional[Priority] = None
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None

class AppointmentCancel(BaseModel):
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str
    duration: int
    status: AppointmentStatus
    type: AppointmentType
    priority: Priority
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    is_recurring: bool
    recurring_pattern: Optional[RecurringPattern] = None
    recurring_end_date: Optional[date] = None
    parent_appointment_id: Optional[int] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    reschedule_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True

class SkippedOccurrence(BaseModel):
    appointment_date: date
    reason: str

class RecurrenceSummary(BaseModel):
    pattern: RecurringPattern
    end_date: date
    created_count: int
    skipped_count: int
    created_dates: List[date] = []
    skipped: List[SkippedOccurrence] = []

class BookingResponse(AppointmentResponse):
    recurrence: Optional[RecurrenceSummary] = None

class ScheduleWindow(BaseModel):
    start_time: str
    end_time: str

class AvailableSlotsResponse(BaseModel):
    doctor_id: int
    appointment_date: date
    slots: List[str]
    schedule: Optional[ScheduleWindow] = None
    message: Optional[str] = None

class CancellationResponse(BaseModel):
    appointment: AppointmentResponse
    waitlist_candidates: List["WaitlistResponse"] = []

class ReminderItem(BaseModel):
    appointment_id: int
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str
    delivered: bool

class ReminderResponse(BaseModel):
    sent: int
    message: str
    appointments: List[ReminderItem] = []

# Waitlist schemas
class WaitlistCreate(BaseModel):
    patient_id: int
    doctor_id: int
    preferred_date: Optional[date] = None
    preferred_time: Optional[str] = None
    reason: Optional[str] = None
    priority: Priority = Priority.NORMAL

class WaitlistUpdate(BaseModel):
    preferred_date: Optional[date] = None
    preferred_time: Optional[str] = None
    reason: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[WaitlistStatus] = None  # only "cancelled" is accepted

class WaitlistConvert(BaseModel):
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0)
    type: AppointmentType = AppointmentType.CONSULTATION
    symptoms: Optional[str] = None
    notes: Optional[str] = None

class WaitlistResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    preferred_date: Optional[date] = None
    preferred_time: Optional[str] = None
    reason: Optional[str] = None
    priority: Priority
    status: WaitlistStatus
    is_notified: bool
    notified_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class WaitlistConversionResponse(BaseModel):
    entry: WaitlistResponse
    appointment: BookingResponse

class WaitlistExpireResponse(BaseModel):
    expired: int

CancellationResponse.model_rebuild()
