from sqlalchemy.orm import Session

from clinicbook.core.errors import NotFoundError
from clinicbook.models.user import Role, User


def get_user(db: Session, user_id: int, role: Role | None = None) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or (role is not None and user.role != role.value):
        label = role.value.capitalize() if role else 'User'
        raise NotFoundError(f'{label} not found.')
    return user


def get_doctor(db: Session, doctor_id: int) -> User:
    return get_user(db, doctor_id, Role.DOCTOR)
