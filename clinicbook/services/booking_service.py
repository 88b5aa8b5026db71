import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from clinicbook.auth.context import ActorContext
from clinicbook.core import config
from clinicbook.core.errors import (
    InvalidSlotError,
    NotAuthorizedError,
    NotBookableError,
    NotFoundError,
    ValidationError,
)
from clinicbook.models.appointment import Appointment, AppointmentStatus
from clinicbook.models.user import Role
from clinicbook.services.assignment_resolver import AssignmentResolver
from clinicbook.services.availability_store import AvailabilityStore
from clinicbook.services.conflict_checker import ConflictChecker
from clinicbook.services.entitlement import EntitlementEngine
from clinicbook.services.lookups import get_doctor, get_user
from clinicbook.services.slot_generator import generate_slots

logger = logging.getLogger(__name__)


class BookingService:
    """Entry point for booking, availability queries and appointment status changes."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = datetime.now,
        entitlements: EntitlementEngine | None = None,
        conflict_checker: ConflictChecker | None = None,
        resolver: AssignmentResolver | None = None,
    ):
        self.db = db
        self.clock = clock
        self.entitlements = entitlements or EntitlementEngine(db, clock=clock)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.resolver = resolver or AssignmentResolver(db)
        self.availability = AvailabilityStore(db, resolver=self.resolver)

    def book_appointment(
        self,
        actor: ActorContext,
        doctor_id: int,
        patient_id: int,
        slot_date: date,
        time_of_day: time,
        duration_minutes: int | None = None,
        notes: str | None = None,
    ) -> Appointment:
        if duration_minutes is None:
            duration_minutes = config.DEFAULT_SLOT_DURATION_MINUTES
        notes = _normalize_notes(notes)
        _validate_duration(duration_minutes)
        if time_of_day.second or time_of_day.microsecond:
            raise ValidationError('Appointment times must be whole minutes.')

        get_doctor(self.db, doctor_id)
        get_user(self.db, patient_id, Role.PATIENT)
        self._require_booking_rights(actor, doctor_id, patient_id)

        now = self.clock()
        starts_at = datetime.combine(slot_date, time_of_day)
        ends_at = starts_at + timedelta(minutes=duration_minutes)
        self._validate_booking_window(slot_date, starts_at, now)

        # Entitlement can change between listing and booking, so it is rechecked here.
        if not self.entitlements.is_bookable(doctor_id, now):
            raise NotBookableError()

        rules = self.availability.list_rules(doctor_id, active_only=True)
        if starts_at.time() not in generate_slots(rules, slot_date, duration_minutes):
            raise InvalidSlotError()

        appointment = self.conflict_checker.check_and_book(
            doctor_id=doctor_id,
            patient_id=patient_id,
            starts_at=starts_at,
            ends_at=ends_at,
            notes=notes,
            created_by=actor.user_id,
        )
        logger.info('User %s booked appointment %s (doctor %s, patient %s)', actor.user_id, appointment.id, doctor_id, patient_id)
        return appointment

    def available_slots(
        self,
        doctor_id: int,
        slot_date: date,
        duration_minutes: int | None = None,
    ) -> list[time]:
        """Bookable start times for ``slot_date``; empty for an unbookable doctor or out-of-range date."""
        if duration_minutes is None:
            duration_minutes = config.DEFAULT_SLOT_DURATION_MINUTES
        _validate_duration(duration_minutes)
        get_doctor(self.db, doctor_id)

        now = self.clock()
        if not _within_horizon(slot_date, now):
            return []
        if not self.entitlements.is_bookable(doctor_id, now):
            return []

        rules = self.availability.list_rules(doctor_id, active_only=True)
        candidates = generate_slots(rules, slot_date, duration_minutes)
        if not candidates:
            return []

        day_start = datetime.combine(slot_date, time.min)
        booked = self.conflict_checker.list_conflicts(doctor_id, day_start, day_start + timedelta(days=1))
        duration = timedelta(minutes=duration_minutes)

        slots: list[time] = []
        for candidate in candidates:
            starts_at = datetime.combine(slot_date, candidate)
            if starts_at <= now:
                continue
            ends_at = starts_at + duration
            if any(existing.starts_at < ends_at and existing.ends_at > starts_at for existing in booked):
                continue
            slots.append(candidate)
        return slots

    def list_appointments(
        self,
        actor: ActorContext,
        doctor_id: int,
        slot_date: date | None = None,
    ) -> list[Appointment]:
        self.resolver.require_doctor_scope(actor, doctor_id)
        query = self.db.query(Appointment).filter(Appointment.doctor_id == doctor_id)
        if slot_date is not None:
            day_start = datetime.combine(slot_date, time.min)
            query = query.filter(
                Appointment.starts_at >= day_start,
                Appointment.starts_at < day_start + timedelta(days=1),
            )
        return query.order_by(Appointment.starts_at.asc()).all()

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if appointment is None:
            raise NotFoundError('Appointment not found.')
        return appointment

    # Status actions

    def cancel(self, actor: ActorContext, appointment_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if not (actor.role == Role.PATIENT and actor.user_id == appointment.patient_id):
            self._require_staff_scope(actor, appointment.doctor_id)
        return self._transition(actor, appointment, AppointmentStatus.CANCELLED)

    def complete(self, actor: ActorContext, appointment_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        self._require_staff_scope(actor, appointment.doctor_id)
        return self._transition(actor, appointment, AppointmentStatus.COMPLETED)

    def mark_no_show(self, actor: ActorContext, appointment_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        self._require_staff_scope(actor, appointment.doctor_id)
        return self._transition(actor, appointment, AppointmentStatus.NO_SHOW)

    def _transition(self, actor: ActorContext, appointment: Appointment, status: AppointmentStatus) -> Appointment:
        if appointment.status != AppointmentStatus.SCHEDULED.value:
            raise ValidationError(f'Only scheduled appointments can be marked {status.value}.')

        appointment.status = status.value
        if status in (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW):
            self.conflict_checker.release_claims(appointment)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info('Appointment %s marked %s by user %s', appointment.id, status.value, actor.user_id)
        return appointment

    def _require_staff_scope(self, actor: ActorContext, doctor_id: int) -> None:
        if actor.role == Role.PATIENT:
            raise NotAuthorizedError()
        self.resolver.require_doctor_scope(actor, doctor_id)

    def _require_booking_rights(self, actor: ActorContext, doctor_id: int, patient_id: int) -> None:
        if actor.role == Role.PATIENT:
            if actor.user_id != patient_id:
                raise NotAuthorizedError('Patients can only book appointments for themselves.')
            return
        self.resolver.require_doctor_scope(actor, doctor_id)

    def _validate_booking_window(self, slot_date: date, starts_at: datetime, now: datetime) -> None:
        if starts_at <= now:
            raise ValidationError('Appointments must be scheduled in the future.')
        if not _within_horizon(slot_date, now):
            raise ValidationError(f'Appointments can only be booked within the next {config.BOOKING_HORIZON_DAYS} days.')


def _within_horizon(slot_date: date, now: datetime) -> bool:
    today = now.date()
    return today <= slot_date <= today + timedelta(days=config.BOOKING_HORIZON_DAYS)


def _validate_duration(duration_minutes: int) -> None:
    granularity = config.SLOT_CLAIM_GRANULARITY_MINUTES
    if duration_minutes <= 0 or duration_minutes % granularity != 0:
        raise ValidationError(f'Duration must be a positive multiple of {granularity} minutes.')


def _normalize_notes(notes: str | None) -> str | None:
    if notes is None:
        return None

    normalized = notes.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValidationError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized
