from dataclasses import dataclass

from clinicbook.models.user import Role


@dataclass(frozen=True)
class ActorContext:
    """Who is performing an operation. Passed explicitly into every service call."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
