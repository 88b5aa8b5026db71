from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.auth.dependencies import get_actor
from clinicbook.database import get_db
from clinicbook.routes.common import ensure_database_ready
from clinicbook.services.lookups import get_user

router = APIRouter(tags=['auth'])


class CurrentUserResponse(BaseModel):
    user_id: int
    email: str
    full_name: str | None = None
    role: str


@router.get("/me", response_model=CurrentUserResponse)
def me(
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    user = get_user(db, actor.user_id)
    return CurrentUserResponse(
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=actor.role.value,
    )
