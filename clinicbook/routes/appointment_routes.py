from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.auth.dependencies import get_actor
from clinicbook.core.errors import ValidationError
from clinicbook.database import get_db
from clinicbook.models.user import Role
from clinicbook.routes.common import ensure_database_ready
from clinicbook.services.booking_service import BookingService

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    patient_id: int | None = None
    date: date
    time: time
    duration_minutes: int | None = None
    notes: str | None = None


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    starts_at: datetime
    ends_at: datetime
    status: str
    notes: str | None = None
    created_by: int | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    patient_id = data.patient_id
    if patient_id is None:
        if actor.role != Role.PATIENT:
            raise ValidationError('patient_id is required when booking on behalf of a patient.')
        patient_id = actor.user_id

    return BookingService(db).book_appointment(
        actor,
        doctor_id=data.doctor_id,
        patient_id=patient_id,
        slot_date=data.date,
        time_of_day=data.time,
        duration_minutes=data.duration_minutes,
        notes=data.notes,
    )


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    doctor_id: int = Query(...),
    slot_date: date | None = Query(default=None, alias='date'),
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return BookingService(db).list_appointments(actor, doctor_id, slot_date)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return BookingService(db).cancel(actor, appointment_id)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return BookingService(db).complete(actor, appointment_id)


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: int,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return BookingService(db).mark_no_show(actor, appointment_id)
