from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session
from database import get_session
from models import Doctor, Shift
from schemas import (
    DoctorCreate, DoctorResponse, DoctorScheduleUpdate, DoctorScheduleResponse,
    ScheduleBackfillResponse, ShiftCreate, ShiftResponse
)
from dependencies import get_now, get_directory_repository, get_schedule_repository
from exceptions import ValidationError
from repositories.directory_repository import DirectoryRepository
from repositories.schedule_repository import ScheduleRepository
from validators.time_validator import validate_time_range
from datetime import datetime, date
from typing import List, Optional
import calendar
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["Doctors"])


@router.post("", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(
    doctor_data: DoctorCreate,
    directory: DirectoryRepository = Depends(get_directory_repository),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    """Onboard a doctor with the default weekly schedule"""
    doctor = directory.add(Doctor(**doctor_data.model_dump(), created_at=now))
    created = schedules.ensure_default_template(doctor.id)
    session.commit()
    session.refresh(doctor)

    logger.info(f"Onboarded doctor {doctor.id} with {created} default schedule days")
    return doctor


@router.get("", response_model=List[DoctorResponse])
def list_doctors(
    active_only: bool = False,
    directory: DirectoryRepository = Depends(get_directory_repository)
):
    return directory.list_doctors(active_only)


@router.post("/fix-schedules", response_model=ScheduleBackfillResponse)
def fix_doctor_schedules(
    schedules: ScheduleRepository = Depends(get_schedule_repository),
    session: Session = Depends(get_session)
):
    """Give every active doctor the default template for the weekdays they are missing"""
    doctor_ids = schedules.active_doctor_ids()
    created = 0
    fixed = 0
    for doctor_id in doctor_ids:
        added = schedules.ensure_default_template(doctor_id)
        if added:
            created += added
            fixed += 1
    session.commit()

    logger.info(f"Schedule backfill: {created} rows created for {fixed} of {len(doctor_ids)} doctors")
    return ScheduleBackfillResponse(
        doctors=fixed,
        created=created,
        message=f"Created {created} schedule entries for {fixed} doctors"
    )


@router.get("/{doctor_id}", response_model=DoctorResponse)
def get_doctor(
    doctor_id: int,
    directory: DirectoryRepository = Depends(get_directory_repository)
):
    return directory.require_doctor(doctor_id)


@router.get("/{doctor_id}/schedule", response_model=List[DoctorScheduleResponse])
def get_doctor_schedule(
    doctor_id: int,
    directory: DirectoryRepository = Depends(get_directory_repository),
    schedules: ScheduleRepository = Depends(get_schedule_repository)
):
    """Weekly schedule template, Monday first"""
    directory.require_doctor(doctor_id)
    return schedules.get_template(doctor_id)


@router.put("/{doctor_id}/schedule", response_model=List[DoctorScheduleResponse])
def update_doctor_schedule(
    doctor_id: int,
    schedule_update: DoctorScheduleUpdate,
    directory: DirectoryRepository = Depends(get_directory_repository),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
    session: Session = Depends(get_session)
):
    """Replace the hours for the weekdays supplied; other days keep their rows"""
    directory.require_doctor(doctor_id)

    seen = set()
    for entry in schedule_update.schedules:
        if entry.day_of_week in seen:
            raise ValidationError(f"Duplicate schedule entry for {entry.day_of_week.value}")
        seen.add(entry.day_of_week)
        validate_time_range(entry.start_time, entry.end_time)

    rows = schedules.upsert_template(doctor_id, [entry.model_dump() for entry in schedule_update.schedules])
    session.commit()

    logger.info(f"Updated schedule for doctor {doctor_id}: {len(seen)} days, cache invalidated")
    return rows


@router.get("/{doctor_id}/shifts", response_model=List[ShiftResponse])
def get_doctor_shifts(
    doctor_id: int,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = Query(default=None, ge=1900),
    directory: DirectoryRepository = Depends(get_directory_repository),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
    now: datetime = Depends(get_now)
):
    """Shifts for one month (defaults to the current month)"""
    directory.require_doctor(doctor_id)

    year = year or now.year
    month = month or now.month
    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    return schedules.list_shifts(doctor_id, start, end)


@router.post("/{doctor_id}/shifts", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
def create_doctor_shift(
    doctor_id: int,
    shift_data: ShiftCreate,
    directory: DirectoryRepository = Depends(get_directory_repository),
    schedules: ScheduleRepository = Depends(get_schedule_repository),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    """Record a shift. Shifts are informational and do not change bookable hours."""
    directory.require_doctor(doctor_id)
    validate_time_range(shift_data.start_time, shift_data.end_time)

    shift = schedules.add_shift(Shift(
        doctor_id=doctor_id,
        shift_date=shift_data.shift_date,
        start_time=shift_data.start_time,
        end_time=shift_data.end_time,
        shift_type=shift_data.shift_type.value,
        status=shift_data.status.value,
        notes=shift_data.notes,
        created_at=now
    ))
    session.commit()
    session.refresh(shift)
    return shift
