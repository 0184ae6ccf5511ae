from fastapi import APIRouter, Depends, status
from sqlmodel import Session
from database import get_session
from models import Patient
from schemas import PatientCreate, PatientResponse
from dependencies import get_now, get_directory_repository
from repositories.directory_repository import DirectoryRepository
from typing import List
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["Patients"])


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(
    patient_data: PatientCreate,
    directory: DirectoryRepository = Depends(get_directory_repository),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now)
):
    """Register a patient"""
    patient = directory.add(Patient(**patient_data.model_dump(), created_at=now))
    session.commit()
    session.refresh(patient)
    logger.info(f"Registered patient {patient.id}")
    return patient


@router.get("", response_model=List[PatientResponse])
def list_patients(directory: DirectoryRepository = Depends(get_directory_repository)):
    return directory.list_patients()


@router.get("/{patient_id}", response_model=PatientResponse)
def get_patient(
    patient_id: int,
    directory: DirectoryRepository = Depends(get_directory_repository)
):
    return directory.require_patient(patient_id)
