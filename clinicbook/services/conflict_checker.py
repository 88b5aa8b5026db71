"""Overlap detection and the conflict-safe appointment write.

Booking is two-phase. The fast-path query rejects intervals that already
collide with a scheduled/completed appointment. It is advisory only: two
requests can both pass it. The authoritative write then inserts the
appointment together with one ``AppointmentSlotClaim`` per granule of its
interval in a single transaction; the unique key on
``(doctor_id, slot_start)`` guarantees that of two overlapping writes for the
same doctor at most one commits.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.core import config
from clinicbook.core.errors import ConcurrentBookingError, SlotTakenError, ValidationError
from clinicbook.models.appointment import (
    BLOCKING_STATUSES,
    Appointment,
    AppointmentSlotClaim,
    AppointmentStatus,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1)


def floor_to_granule(value: datetime, granularity_minutes: int) -> datetime:
    minutes = int((value - _EPOCH).total_seconds() // 60)
    return _EPOCH + timedelta(minutes=minutes - minutes % granularity_minutes)


def iterate_claim_starts(starts_at: datetime, ends_at: datetime, granularity_minutes: int) -> list[datetime]:
    """Every granule start touched by ``[starts_at, ends_at)``.

    Overlapping intervals always share at least one granule.
    """
    step = timedelta(minutes=granularity_minutes)
    current = floor_to_granule(starts_at, granularity_minutes)
    claims: list[datetime] = []

    while current < ends_at:
        claims.append(current)
        current += step

    return claims


class ConflictChecker:
    def __init__(self, db: Session, granularity_minutes: int | None = None):
        self.db = db
        self.granularity_minutes = granularity_minutes or config.SLOT_CLAIM_GRANULARITY_MINUTES

    def find_conflict(self, doctor_id: int, starts_at: datetime, ends_at: datetime) -> Appointment | None:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(BLOCKING_STATUSES),
            Appointment.starts_at < ends_at,
            Appointment.ends_at > starts_at,
        ).order_by(Appointment.starts_at.asc()).first()

    def list_conflicts(self, doctor_id: int, starts_at: datetime, ends_at: datetime) -> list[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(BLOCKING_STATUSES),
            Appointment.starts_at < ends_at,
            Appointment.ends_at > starts_at,
        ).order_by(Appointment.starts_at.asc()).all()

    def check_and_book(
        self,
        doctor_id: int,
        patient_id: int,
        starts_at: datetime,
        ends_at: datetime,
        notes: str | None = None,
        created_by: int | None = None,
    ) -> Appointment:
        if ends_at <= starts_at:
            raise ValidationError('Appointment must end after it starts.')

        if self.find_conflict(doctor_id, starts_at, ends_at) is not None:
            raise SlotTakenError()

        return self.commit_booking(doctor_id, patient_id, starts_at, ends_at, notes, created_by)

    def commit_booking(
        self,
        doctor_id: int,
        patient_id: int,
        starts_at: datetime,
        ends_at: datetime,
        notes: str | None = None,
        created_by: int | None = None,
    ) -> Appointment:
        """Persist the appointment and its claims atomically, or nothing at all."""
        appointment = Appointment(
            doctor_id=doctor_id,
            patient_id=patient_id,
            starts_at=starts_at,
            ends_at=ends_at,
            status=AppointmentStatus.SCHEDULED.value,
            notes=notes,
            created_by=created_by,
        )
        appointment.claims = [
            AppointmentSlotClaim(doctor_id=doctor_id, slot_start=slot_start)
            for slot_start in iterate_claim_starts(starts_at, ends_at, self.granularity_minutes)
        ]

        try:
            self.db.add(appointment)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                'Lost booking race for doctor %s at %s-%s',
                doctor_id, starts_at.isoformat(), ends_at.isoformat(),
            )
            raise ConcurrentBookingError() from exc
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info('Appointment %s booked for doctor %s at %s', appointment.id, doctor_id, starts_at.isoformat())
        return appointment

    def release_claims(self, appointment: Appointment) -> None:
        """Free the doctor's time once an appointment no longer blocks it. Caller commits."""
        appointment.claims.clear()
