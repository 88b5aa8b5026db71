"""Doctor entitlement: verification, subscription lifecycle and the bookability gate.

A doctor is bookable (and visible in search) only while verified AND holding
an ``active`` subscription whose ``expires_at`` lies in the future. The
predicate is recomputed on every call and never stored.
"""

import calendar
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.core import config
from clinicbook.core.errors import NotAuthorizedError, StaleRecordError, ValidationError
from clinicbook.models.entitlement import (
    SubscriptionPlan,
    SubscriptionRecord,
    SubscriptionStatus,
    VerificationRecord,
    VerificationStatus,
)
from clinicbook.models.user import Role
from clinicbook.services.lookups import get_doctor

logger = logging.getLogger(__name__)

EXTENSION_UNITS = ('days', 'weeks', 'months', 'years')


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def plan_price_cents(plan: SubscriptionPlan) -> int:
    if plan == SubscriptionPlan.ANNUAL:
        return config.ANNUAL_PRICE_CENTS
    return config.MONTHLY_PRICE_CENTS


def plan_duration(plan: SubscriptionPlan) -> timedelta:
    if plan == SubscriptionPlan.ANNUAL:
        return timedelta(days=config.ANNUAL_PLAN_DAYS)
    return timedelta(days=config.MONTHLY_PLAN_DAYS)


def renewal_base(now: datetime, current_expires_at: datetime | None) -> datetime:
    """Paid time is never lost: renewals extend from the later of now and the current expiry."""
    if current_expires_at is not None and current_expires_at > now:
        return current_expires_at
    return now


@dataclass
class SweepSummary:
    moved_to_grace: list[int] = field(default_factory=list)
    expired: list[int] = field(default_factory=list)


@dataclass
class ChangeFeed:
    verifications: list[VerificationRecord]
    subscriptions: list[SubscriptionRecord]
    freshness_token: str | None


class EntitlementEngine:
    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock

    # Reads

    def get_verification(self, doctor_id: int) -> VerificationRecord | None:
        return self.db.query(VerificationRecord).filter(VerificationRecord.doctor_id == doctor_id).first()

    def get_subscription(self, doctor_id: int) -> SubscriptionRecord | None:
        return self.db.query(SubscriptionRecord).filter(SubscriptionRecord.doctor_id == doctor_id).first()

    def is_bookable(self, doctor_id: int, now: datetime | None = None) -> bool:
        now = now or self.clock()
        verification = self.get_verification(doctor_id)
        subscription = self.get_subscription(doctor_id)
        return _is_bookable(verification, subscription, now)

    def filter_bookable(self, doctor_ids: Iterable[int], now: datetime | None = None) -> list[int]:
        """Keep only bookable doctors, preserving the caller's order."""
        now = now or self.clock()
        candidate_ids = list(dict.fromkeys(doctor_ids))
        if not candidate_ids:
            return []

        verifications = {
            record.doctor_id: record
            for record in self.db.query(VerificationRecord).filter(VerificationRecord.doctor_id.in_(candidate_ids))
        }
        subscriptions = {
            record.doctor_id: record
            for record in self.db.query(SubscriptionRecord).filter(SubscriptionRecord.doctor_id.in_(candidate_ids))
        }
        return [
            doctor_id
            for doctor_id in candidate_ids
            if _is_bookable(verifications.get(doctor_id), subscriptions.get(doctor_id), now)
        ]

    def list_changes(self, since_token: str | None = None) -> ChangeFeed:
        """Records changed after ``since_token``, plus the token to pass next time."""
        since = None
        if since_token:
            try:
                since = datetime.fromisoformat(since_token)
            except ValueError as exc:
                raise ValidationError('Invalid freshness token.') from exc

        verification_query = self.db.query(VerificationRecord)
        subscription_query = self.db.query(SubscriptionRecord)
        if since is not None:
            verification_query = verification_query.filter(VerificationRecord.updated_at > since)
            subscription_query = subscription_query.filter(SubscriptionRecord.updated_at > since)

        verifications = verification_query.order_by(VerificationRecord.updated_at.asc(), VerificationRecord.id.asc()).all()
        subscriptions = subscription_query.order_by(SubscriptionRecord.updated_at.asc(), SubscriptionRecord.id.asc()).all()

        stamps = [record.updated_at for record in [*verifications, *subscriptions] if record.updated_at is not None]
        latest = max(stamps) if stamps else since
        return ChangeFeed(
            verifications=verifications,
            subscriptions=subscriptions,
            freshness_token=latest.isoformat() if latest else None,
        )

    # Verification state machine

    def ensure_verification_record(self, doctor_id: int) -> VerificationRecord:
        """Create the ``pending`` record if missing. Idempotent.

        Reached through ``submit_for_verification`` once a doctor finishes their
        profile, and through admin decisions.
        """
        get_doctor(self.db, doctor_id)
        record = self.get_verification(doctor_id)
        if record is None:
            record = VerificationRecord(
                doctor_id=doctor_id,
                status=VerificationStatus.PENDING.value,
                version=1,
                updated_at=self.clock(),
            )
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        return record

    def submit_for_verification(self, actor: ActorContext, doctor_id: int) -> VerificationRecord:
        if not (actor.is_admin or (actor.role == Role.DOCTOR and actor.user_id == doctor_id)):
            raise NotAuthorizedError('Only the doctor or an admin can submit a profile for verification.')

        record = self.ensure_verification_record(doctor_id)
        logger.info('Doctor %s submitted for verification by user %s', doctor_id, actor.user_id)
        return record

    def approve(self, actor: ActorContext, doctor_id: int) -> VerificationRecord:
        return self._decide(actor, doctor_id, VerificationStatus.VERIFIED)

    def reject(self, actor: ActorContext, doctor_id: int) -> VerificationRecord:
        return self._decide(actor, doctor_id, VerificationStatus.REJECTED)

    def _decide(self, actor: ActorContext, doctor_id: int, status: VerificationStatus) -> VerificationRecord:
        _require_admin(actor)
        record = self.ensure_verification_record(doctor_id)
        now = self.clock()

        record.status = status.value
        if status == VerificationStatus.VERIFIED:
            record.verified_by = actor.user_id
            record.verified_at = now
        else:
            record.verified_by = None
            record.verified_at = None
        _touch(record, now)
        self.db.commit()
        self.db.refresh(record)

        logger.info('Doctor %s verification set to %s by admin %s', doctor_id, status.value, actor.user_id)
        return record

    # Subscription state machine

    def record_payment(
        self,
        actor: ActorContext,
        doctor_id: int,
        plan: SubscriptionPlan,
        amount: int,
    ) -> SubscriptionRecord:
        if not (actor.is_admin or (actor.role == Role.DOCTOR and actor.user_id == doctor_id)):
            raise NotAuthorizedError('Only an admin or the doctor can record a subscription payment.')

        expected_amount = plan_price_cents(plan)
        if amount != expected_amount:
            raise ValidationError(f'The {plan.value} plan costs {expected_amount} cents; received {amount}.')

        record = self._subscription_for_update(doctor_id)
        now = self.clock()

        record.plan = plan.value
        record.amount = amount
        record.expires_at = renewal_base(now, record.expires_at) + plan_duration(plan)
        record.status = SubscriptionStatus.ACTIVE.value
        record.grace_ends_at = None
        _touch(record, now)
        self.db.commit()
        self.db.refresh(record)

        logger.info('Payment recorded for doctor %s (%s, %s cents); expires %s', doctor_id, plan.value, amount, record.expires_at)
        return record

    def extend(self, actor: ActorContext, doctor_id: int, amount: int, unit: str) -> SubscriptionRecord:
        _require_admin(actor)
        if amount <= 0:
            raise ValidationError('Extension amount must be positive.')
        if unit not in EXTENSION_UNITS:
            raise ValidationError(f'Extension unit must be one of: {", ".join(EXTENSION_UNITS)}.')

        record = self._subscription_for_update(doctor_id)
        now = self.clock()
        base = renewal_base(now, record.expires_at)

        if unit == 'days':
            record.expires_at = base + timedelta(days=amount)
        elif unit == 'weeks':
            record.expires_at = base + timedelta(weeks=amount)
        elif unit == 'months':
            record.expires_at = add_months(base, amount)
        else:
            record.expires_at = add_months(base, amount * 12)

        record.status = SubscriptionStatus.ACTIVE.value
        record.grace_ends_at = None
        _touch(record, now)
        self.db.commit()
        self.db.refresh(record)

        logger.info('Subscription for doctor %s extended by %s %s by admin %s', doctor_id, amount, unit, actor.user_id)
        return record

    def admin_override(
        self,
        actor: ActorContext,
        doctor_id: int,
        status: SubscriptionStatus,
        expires_at: datetime | None = None,
        expected_version: int | None = None,
    ) -> SubscriptionRecord:
        """Set a subscription unconditionally. Last write wins unless ``expected_version`` is given."""
        _require_admin(actor)
        record = self._subscription_for_update(doctor_id)

        if expected_version is not None and record.version != expected_version:
            raise StaleRecordError()

        now = self.clock()
        record.status = status.value
        if expires_at is not None:
            record.expires_at = expires_at
        if status == SubscriptionStatus.GRACE:
            record.grace_ends_at = record.grace_ends_at or (record.expires_at or now) + _grace_window()
        else:
            record.grace_ends_at = None
        _touch(record, now)
        self.db.commit()
        self.db.refresh(record)

        logger.info('Subscription for doctor %s overridden to %s by admin %s', doctor_id, status.value, actor.user_id)
        return record

    def sweep_expirations(self, now: datetime | None = None) -> SweepSummary:
        """Move lapsed subscriptions along ``active -> grace -> expired``. Safe to repeat."""
        now = now or self.clock()
        summary = SweepSummary()

        lapsed_grace = self.db.query(SubscriptionRecord).filter(
            SubscriptionRecord.status == SubscriptionStatus.GRACE.value,
            SubscriptionRecord.grace_ends_at.is_not(None),
            SubscriptionRecord.grace_ends_at <= now,
        ).all()
        for record in lapsed_grace:
            record.status = SubscriptionStatus.EXPIRED.value
            _touch(record, now)
            summary.expired.append(record.doctor_id)

        lapsed_active = self.db.query(SubscriptionRecord).filter(
            SubscriptionRecord.status == SubscriptionStatus.ACTIVE.value,
            SubscriptionRecord.expires_at.is_not(None),
            SubscriptionRecord.expires_at <= now,
        ).all()
        for record in lapsed_active:
            grace_ends_at = record.expires_at + _grace_window()
            if now < grace_ends_at:
                record.status = SubscriptionStatus.GRACE.value
                record.grace_ends_at = grace_ends_at
                summary.moved_to_grace.append(record.doctor_id)
            else:
                record.status = SubscriptionStatus.EXPIRED.value
                summary.expired.append(record.doctor_id)
            _touch(record, now)

        self.db.commit()
        if summary.moved_to_grace or summary.expired:
            logger.info(
                'Expiration sweep at %s: %d moved to grace, %d expired',
                now.isoformat(), len(summary.moved_to_grace), len(summary.expired),
            )
        return summary

    def _subscription_for_update(self, doctor_id: int) -> SubscriptionRecord:
        get_doctor(self.db, doctor_id)
        record = self.get_subscription(doctor_id)
        if record is None:
            record = SubscriptionRecord(
                doctor_id=doctor_id,
                status=SubscriptionStatus.INACTIVE.value,
                amount=0,
                version=0,
            )
            self.db.add(record)
        return record


def _is_bookable(
    verification: VerificationRecord | None,
    subscription: SubscriptionRecord | None,
    now: datetime,
) -> bool:
    if verification is None or verification.status != VerificationStatus.VERIFIED.value:
        return False
    if subscription is None or subscription.status != SubscriptionStatus.ACTIVE.value:
        return False
    return subscription.expires_at is not None and subscription.expires_at > now


def _require_admin(actor: ActorContext) -> None:
    if not actor.is_admin:
        raise NotAuthorizedError('Only administrators can change doctor entitlements.')


def _grace_window() -> timedelta:
    return timedelta(days=config.SUBSCRIPTION_GRACE_DAYS)


def _touch(record, now: datetime) -> None:
    record.version = (record.version or 0) + 1
    record.updated_at = now
