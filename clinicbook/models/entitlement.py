"""Doctor verification and subscription model definitions."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func
from clinicbook.database import Base


class VerificationStatus(str, enum.Enum):
    PENDING = 'pending'
    VERIFIED = 'verified'
    REJECTED = 'rejected'


class SubscriptionStatus(str, enum.Enum):
    INACTIVE = 'inactive'
    ACTIVE = 'active'
    GRACE = 'grace'
    PAST_DUE = 'past_due'
    EXPIRED = 'expired'
    CANCELED = 'canceled'


class SubscriptionPlan(str, enum.Enum):
    MONTHLY = 'monthly'
    ANNUAL = 'annual'


class VerificationRecord(Base):
    """Admin verification decision for a doctor."""
    __tablename__ = "doctor_verifications"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    status = Column(String, nullable=False, default=VerificationStatus.PENDING.value)
    verified_by = Column(Integer, ForeignKey("users.id"))
    verified_at = Column(DateTime)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, server_default=func.now())


class SubscriptionRecord(Base):
    """A doctor's subscription state. ``amount`` is in cents."""
    __tablename__ = "doctor_subscriptions"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    status = Column(String, nullable=False, default=SubscriptionStatus.INACTIVE.value)
    plan = Column(String)
    expires_at = Column(DateTime)
    grace_ends_at = Column(DateTime)
    amount = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, server_default=func.now())
