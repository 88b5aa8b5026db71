"""Resolve which doctor an assistant acts for.

Assistants have been linked to doctors through three different data-entry
paths over time. They are tried in a fixed order and the first one that
yields a doctor wins.
"""

import logging
from collections.abc import Sequence

from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.core.errors import NotAuthorizedError
from clinicbook.models.clinic import Clinic, ClinicAssistant, DoctorAssistant
from clinicbook.models.user import Role, User

logger = logging.getLogger(__name__)


class ClinicAssignmentStrategy:
    """assistant -> clinic -> the clinic's doctor."""

    name = 'clinic'

    def resolve(self, db: Session, assistant_id: int) -> int | None:
        row = db.query(Clinic.doctor_id).join(
            ClinicAssistant, ClinicAssistant.clinic_id == Clinic.id,
        ).filter(
            ClinicAssistant.assistant_id == assistant_id,
        ).order_by(Clinic.id.asc()).first()
        return row[0] if row else None


class LegacyProfileStrategy:
    """The ``assigned_doctor_id`` field on the assistant's own user row."""

    name = 'legacy_profile'

    def resolve(self, db: Session, assistant_id: int) -> int | None:
        row = db.query(User.assigned_doctor_id).filter(User.id == assistant_id).first()
        return row[0] if row and row[0] is not None else None


class DoctorAssistantStrategy:
    """The ``doctor_assistants`` join table."""

    name = 'doctor_assistants'

    def resolve(self, db: Session, assistant_id: int) -> int | None:
        row = db.query(DoctorAssistant.doctor_id).filter(
            DoctorAssistant.assistant_id == assistant_id,
        ).order_by(DoctorAssistant.id.asc()).first()
        return row[0] if row else None


DEFAULT_STRATEGIES = (
    ClinicAssignmentStrategy(),
    LegacyProfileStrategy(),
    DoctorAssistantStrategy(),
)


class AssignmentResolver:
    def __init__(self, db: Session, strategies: Sequence = DEFAULT_STRATEGIES):
        self.db = db
        self.strategies = tuple(strategies)

    def resolve_assigned_doctor(self, assistant_id: int) -> int | None:
        for strategy in self.strategies:
            doctor_id = strategy.resolve(self.db, assistant_id)
            if doctor_id is not None:
                logger.debug('Assistant %s resolved to doctor %s via %s', assistant_id, doctor_id, strategy.name)
                return doctor_id
        return None

    def require_doctor_scope(self, actor: ActorContext, doctor_id: int) -> None:
        """Fail unless ``actor`` may act on ``doctor_id``'s data."""
        if actor.role == Role.ADMIN:
            return
        if actor.role == Role.DOCTOR and actor.user_id == doctor_id:
            return
        if actor.role == Role.ASSISTANT:
            assigned_doctor_id = self.resolve_assigned_doctor(actor.user_id)
            if assigned_doctor_id is not None and assigned_doctor_id == doctor_id:
                return
            if assigned_doctor_id is None:
                raise NotAuthorizedError('This assistant is not assigned to any doctor.')
        raise NotAuthorizedError()
