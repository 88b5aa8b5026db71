from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from clinicbook.auth import jwt_handler
from clinicbook.auth.context import ActorContext
from clinicbook.database import get_db
from clinicbook.models.user import Role, User

security = HTTPBearer()


def get_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> ActorContext:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    # The stored role wins over the token claim so role changes and deletions apply immediately.
    user = db.query(User).filter(User.id == int(subject)).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    try:
        role = Role(user.role)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid user role") from exc

    return ActorContext(user_id=user.id, role=role)
