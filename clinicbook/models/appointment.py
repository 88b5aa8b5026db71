"""Appointment model definitions."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from clinicbook.database import Base


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


# Statuses that occupy the doctor's time.
BLOCKING_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.COMPLETED.value)


class Appointment(Base):
    """A booked interval ``[starts_at, ends_at)`` with a doctor."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.SCHEDULED.value)
    notes = Column(Text)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    claims = relationship("AppointmentSlotClaim", back_populates="appointment", cascade="all, delete-orphan")


class AppointmentSlotClaim(Base):
    """One claimed granule of a doctor's time.

    The unique key on ``(doctor_id, slot_start)`` is what makes two
    overlapping appointments for the same doctor impossible to commit.
    """
    __tablename__ = "appointment_slot_claims"
    __table_args__ = (UniqueConstraint("doctor_id", "slot_start", name="uq_slot_claim_doctor_start"),)

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, nullable=False)
    slot_start = Column(DateTime, nullable=False)

    appointment = relationship("Appointment", back_populates="claims")
