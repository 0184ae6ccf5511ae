from fastapi import APIRouter, Depends, Query, status, Request
from schemas import (
    BookingResponse, WaitlistCreate, WaitlistUpdate, WaitlistConvert, WaitlistResponse,
    WaitlistConversionResponse, WaitlistExpireResponse
)
from models import WaitlistStatus
from dependencies import get_now, get_waitlist_matcher
from rate_limit import limiter, BOOKING_RATE_LIMIT
from services.waitlist import WaitlistMatcher
from datetime import datetime, date
from typing import List, Optional

router = APIRouter(prefix="/api/appointments/waitlist", tags=["Waitlist"])


@router.get("", response_model=List[WaitlistResponse])
def list_waitlist(
    doctor_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    entry_status: Optional[WaitlistStatus] = Query(default=None, alias="status"),
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher)
):
    """Waitlist entries in queue order (priority, then oldest first)"""
    return waitlist.list(doctor_id, patient_id, entry_status.value if entry_status else None)


@router.post("", response_model=WaitlistResponse, status_code=status.HTTP_201_CREATED)
def add_to_waitlist(
    entry_data: WaitlistCreate,
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher),
    now: datetime = Depends(get_now)
):
    return waitlist.add(entry_data, now)


@router.get("/matches", response_model=List[WaitlistResponse])
def find_waitlist_matches(
    doctor_id: int,
    on_date: date = Query(alias="date"),
    appointment_time: str = Query(alias="time"),
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher)
):
    """Waiting patients who would take an opening at this doctor, date and time"""
    return waitlist.find_candidates(doctor_id, on_date, appointment_time)


@router.post("/expire", response_model=WaitlistExpireResponse)
def expire_waitlist(
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher),
    now: datetime = Depends(get_now)
):
    """Expire open entries whose preferred date is already behind us"""
    return WaitlistExpireResponse(expired=waitlist.expire_stale(now.date(), now))


@router.get("/{entry_id}", response_model=WaitlistResponse)
def get_waitlist_entry(
    entry_id: int,
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher)
):
    return waitlist.get(entry_id)


@router.put("/{entry_id}", response_model=WaitlistResponse)
def update_waitlist_entry(
    entry_id: int,
    entry_update: WaitlistUpdate,
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher),
    now: datetime = Depends(get_now)
):
    return waitlist.update(entry_id, entry_update, now)


@router.delete("/{entry_id}")
def remove_waitlist_entry(
    entry_id: int,
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher)
):
    waitlist.remove(entry_id)
    return {"message": "Removed from waitlist"}


@router.post("/{entry_id}/notify", response_model=WaitlistResponse)
def notify_waitlist_entry(
    entry_id: int,
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher),
    now: datetime = Depends(get_now)
):
    """Text the patient that an opening is available"""
    return waitlist.notify(entry_id, now)


@router.post("/{entry_id}/convert", response_model=WaitlistConversionResponse)
@limiter.limit(BOOKING_RATE_LIMIT)
def convert_waitlist_entry(
    request: Request,
    entry_id: int,
    convert_data: Optional[WaitlistConvert] = None,
    waitlist: WaitlistMatcher = Depends(get_waitlist_matcher),
    now: datetime = Depends(get_now)
):
    """Book the waitlisted patient into a real appointment"""
    entry, result = waitlist.convert(entry_id, convert_data or WaitlistConvert(), now)
    appointment = BookingResponse.model_validate(result.appointment)
    return WaitlistConversionResponse(
        entry=WaitlistResponse.model_validate(entry),
        appointment=appointment
    )
