from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.auth.dependencies import get_actor
from clinicbook.core.errors import NotAuthorizedError
from clinicbook.database import get_db
from clinicbook.models.user import Role
from clinicbook.routes.common import ensure_database_ready
from clinicbook.services.assignment_resolver import AssignmentResolver
from clinicbook.services.entitlement import EntitlementEngine
from clinicbook.services.lookups import get_user

router = APIRouter(tags=['directory'])


class BookableDoctorsResponse(BaseModel):
    doctor_ids: list[int]


class AssignedDoctorResponse(BaseModel):
    assistant_id: int
    doctor_id: int | None = None


@router.get('/doctors/bookable', response_model=BookableDoctorsResponse)
def list_bookable_doctors(
    doctor_id: list[int] = Query(default=[]),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return BookableDoctorsResponse(doctor_ids=EntitlementEngine(db).filter_bookable(doctor_id))


@router.get('/assistants/{assistant_id}/doctor', response_model=AssignedDoctorResponse)
def get_assigned_doctor(
    assistant_id: int,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    if not (actor.is_admin or actor.user_id == assistant_id):
        raise NotAuthorizedError()

    get_user(db, assistant_id, Role.ASSISTANT)
    doctor_id = AssignmentResolver(db).resolve_assigned_doctor(assistant_id)
    return AssignedDoctorResponse(assistant_id=assistant_id, doctor_id=doctor_id)
