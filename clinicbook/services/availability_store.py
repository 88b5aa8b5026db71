import logging
from datetime import time

from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.core import config
from clinicbook.core.errors import NotFoundError, ValidationError
from clinicbook.models.availability import AvailabilityRule
from clinicbook.services.assignment_resolver import AssignmentResolver
from clinicbook.services.lookups import get_doctor

logger = logging.getLogger(__name__)

RULE_FIELDS = ('day_of_week', 'start_time', 'end_time', 'is_active')


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def validate_rule_window(day_of_week: int, start_time: time, end_time: time) -> None:
    if not 0 <= day_of_week <= 6:
        raise ValidationError('Day of week must be between 0 (Sunday) and 6 (Saturday).')

    if start_time.second or start_time.microsecond or end_time.second or end_time.microsecond:
        raise ValidationError('Availability times must be whole minutes.')

    if start_time >= end_time:
        raise ValidationError('Availability must end after it starts; overnight windows are not supported.')

    granularity = config.SLOT_CLAIM_GRANULARITY_MINUTES
    if _minutes(start_time) % granularity or _minutes(end_time) % granularity:
        raise ValidationError(f'Availability times must be on {granularity}-minute boundaries.')


class AvailabilityStore:
    """Recurring weekly availability rules, edited by their doctor, an assigned assistant, or an admin."""

    def __init__(self, db: Session, resolver: AssignmentResolver | None = None):
        self.db = db
        self.resolver = resolver or AssignmentResolver(db)

    def list_rules(self, doctor_id: int, active_only: bool = False) -> list[AvailabilityRule]:
        query = self.db.query(AvailabilityRule).filter(AvailabilityRule.doctor_id == doctor_id)
        if active_only:
            query = query.filter(AvailabilityRule.is_active.is_(True))
        return query.order_by(
            AvailabilityRule.day_of_week.asc(),
            AvailabilityRule.start_time.asc(),
            AvailabilityRule.id.asc(),
        ).all()

    def get_rule(self, rule_id: int) -> AvailabilityRule:
        rule = self.db.query(AvailabilityRule).filter(AvailabilityRule.id == rule_id).first()
        if rule is None:
            raise NotFoundError('Availability rule not found.')
        return rule

    def create_rule(
        self,
        actor: ActorContext,
        doctor_id: int,
        day_of_week: int,
        start_time: time,
        end_time: time,
        is_active: bool = True,
    ) -> AvailabilityRule:
        get_doctor(self.db, doctor_id)
        self.resolver.require_doctor_scope(actor, doctor_id)
        validate_rule_window(day_of_week, start_time, end_time)

        rule = AvailabilityRule(
            doctor_id=doctor_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_active=is_active,
        )
        self.db.add(rule)
        self.db.commit()
        self.db.refresh(rule)

        logger.info('Availability rule %s created for doctor %s by user %s', rule.id, doctor_id, actor.user_id)
        return rule

    def update_rule(self, actor: ActorContext, rule_id: int, **changes) -> AvailabilityRule:
        unknown = set(changes) - set(RULE_FIELDS)
        if unknown:
            raise ValidationError(f'Unknown availability fields: {", ".join(sorted(unknown))}.')

        rule = self.get_rule(rule_id)
        self.resolver.require_doctor_scope(actor, rule.doctor_id)

        day = changes.get('day_of_week', rule.day_of_week)
        start = changes.get('start_time', rule.start_time)
        end = changes.get('end_time', rule.end_time)
        validate_rule_window(day, start, end)

        for field, value in changes.items():
            setattr(rule, field, value)
        self.db.commit()
        self.db.refresh(rule)

        logger.info('Availability rule %s updated by user %s', rule.id, actor.user_id)
        return rule

    def delete_rule(self, actor: ActorContext, rule_id: int) -> None:
        rule = self.get_rule(rule_id)
        self.resolver.require_doctor_scope(actor, rule.doctor_id)

        self.db.delete(rule)
        self.db.commit()
        logger.info('Availability rule %s deleted by user %s', rule_id, actor.user_id)
