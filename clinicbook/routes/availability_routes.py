from datetime import date, time

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.auth.dependencies import get_actor
from clinicbook.database import get_db
from clinicbook.routes.common import ensure_database_ready
from clinicbook.services.availability_store import AvailabilityStore
from clinicbook.services.booking_service import BookingService

router = APIRouter(tags=['availability'])


class CreateAvailabilityRuleRequest(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool = True

    @field_validator('start_time', 'end_time')
    @classmethod
    def drop_seconds(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class UpdateAvailabilityRuleRequest(BaseModel):
    day_of_week: int | None = None
    start_time: time | None = None
    end_time: time | None = None
    is_active: bool | None = None


class AvailabilityRuleResponse(BaseModel):
    id: int
    doctor_id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool

    class Config:
        from_attributes = True


def format_time_of_day(value: time) -> str:
    return value.strftime('%H:%M')


@router.get('/doctors/{doctor_id}/slots', response_model=list[str])
def list_available_slots(
    doctor_id: int,
    slot_date: date = Query(..., alias='date'),
    duration_minutes: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    slots = BookingService(db).available_slots(doctor_id, slot_date, duration_minutes)
    return [format_time_of_day(slot) for slot in slots]


@router.get('/doctors/{doctor_id}/rules', response_model=list[AvailabilityRuleResponse])
def list_rules(
    doctor_id: int,
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return AvailabilityStore(db).list_rules(doctor_id, active_only=active_only)


@router.post('/doctors/{doctor_id}/rules', response_model=AvailabilityRuleResponse, status_code=status.HTTP_201_CREATED)
def create_rule(
    doctor_id: int,
    data: CreateAvailabilityRuleRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return AvailabilityStore(db).create_rule(
        actor,
        doctor_id,
        day_of_week=data.day_of_week,
        start_time=data.start_time,
        end_time=data.end_time,
        is_active=data.is_active,
    )


@router.patch('/rules/{rule_id}', response_model=AvailabilityRuleResponse)
def update_rule(
    rule_id: int,
    data: UpdateAvailabilityRuleRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    changes = data.model_dump(exclude_none=True)
    return AvailabilityStore(db).update_rule(actor, rule_id, **changes)


@router.delete('/rules/{rule_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: int,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    AvailabilityStore(db).delete_rule(actor, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
