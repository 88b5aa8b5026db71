from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.auth.dependencies import get_actor
from clinicbook.core.errors import NotAuthorizedError
from clinicbook.database import get_db
from clinicbook.models.entitlement import SubscriptionPlan, SubscriptionStatus
from clinicbook.routes.common import ensure_database_ready
from clinicbook.services.entitlement import EntitlementEngine

router = APIRouter(tags=['entitlements'])


class VerificationDecisionRequest(BaseModel):
    doctor_id: int
    decision: Literal['approve', 'reject']


class RecordPaymentRequest(BaseModel):
    plan: SubscriptionPlan
    amount: int


class ExtendSubscriptionRequest(BaseModel):
    amount: int
    unit: Literal['days', 'weeks', 'months', 'years']


class OverrideSubscriptionRequest(BaseModel):
    status: SubscriptionStatus
    expires_at: datetime | None = None
    expected_version: int | None = None


class VerificationResponse(BaseModel):
    doctor_id: int
    status: str
    verified_by: int | None = None
    verified_at: datetime | None = None
    version: int
    updated_at: datetime

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    doctor_id: int
    status: str
    plan: str | None = None
    expires_at: datetime | None = None
    grace_ends_at: datetime | None = None
    amount: int
    version: int
    updated_at: datetime

    class Config:
        from_attributes = True


class SweepResponse(BaseModel):
    moved_to_grace: list[int]
    expired: list[int]


class ChangeFeedResponse(BaseModel):
    verifications: list[VerificationResponse]
    subscriptions: list[SubscriptionResponse]
    freshness_token: str | None = None


@router.post('/verification', response_model=VerificationResponse)
def decide_verification(
    data: VerificationDecisionRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    engine = EntitlementEngine(db)
    if data.decision == 'approve':
        return engine.approve(actor, data.doctor_id)
    return engine.reject(actor, data.doctor_id)


@router.post('/verification/{doctor_id}/submit', response_model=VerificationResponse)
def submit_for_verification(
    doctor_id: int,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return EntitlementEngine(db).submit_for_verification(actor, doctor_id)


@router.post('/subscriptions/sweep', response_model=SweepResponse)
def sweep_subscriptions(
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    if not actor.is_admin:
        raise NotAuthorizedError('Only administrators can run the expiration sweep.')

    summary = EntitlementEngine(db).sweep_expirations()
    return SweepResponse(moved_to_grace=summary.moved_to_grace, expired=summary.expired)


@router.post('/subscriptions/{doctor_id}/payments', response_model=SubscriptionResponse)
def record_payment(
    doctor_id: int,
    data: RecordPaymentRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return EntitlementEngine(db).record_payment(actor, doctor_id, data.plan, data.amount)


@router.post('/subscriptions/{doctor_id}/extend', response_model=SubscriptionResponse)
def extend_subscription(
    doctor_id: int,
    data: ExtendSubscriptionRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return EntitlementEngine(db).extend(actor, doctor_id, data.amount, data.unit)


@router.post('/subscriptions/{doctor_id}/override', response_model=SubscriptionResponse)
def override_subscription(
    doctor_id: int,
    data: OverrideSubscriptionRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return EntitlementEngine(db).admin_override(
        actor,
        doctor_id,
        status=data.status,
        expires_at=data.expires_at,
        expected_version=data.expected_version,
    )


@router.get('/changes', response_model=ChangeFeedResponse)
def list_changes(
    since: str | None = Query(default=None),
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    if not actor.is_admin:
        raise NotAuthorizedError('Only administrators can read the entitlement change feed.')

    feed = EntitlementEngine(db).list_changes(since)
    return ChangeFeedResponse(
        verifications=[VerificationResponse.model_validate(record) for record in feed.verifications],
        subscriptions=[SubscriptionResponse.model_validate(record) for record in feed.subscriptions],
        freshness_token=feed.freshness_token,
    )
