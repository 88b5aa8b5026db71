from datetime import time

import pytest

from clinicbook.auth.context import ActorContext
from clinicbook.core.errors import NotAuthorizedError, NotFoundError, ValidationError
from clinicbook.models.user import Role
from clinicbook.services.availability_store import AvailabilityStore, validate_rule_window


@pytest.mark.parametrize(
    ('day', 'start', 'end'),
    [
        (7, time(9, 0), time(10, 0)),
        (-1, time(9, 0), time(10, 0)),
        (1, time(10, 0), time(9, 0)),
        (1, time(22, 0), time(2, 0)),
        (1, time(9, 0), time(9, 0)),
        (1, time(9, 3), time(10, 0)),
        (1, time(9, 0, 30), time(10, 0)),
    ],
)
def test_validate_rule_window_rejects_bad_windows(day: int, start: time, end: time) -> None:
    with pytest.raises(ValidationError):
        validate_rule_window(day, start, end)


def test_validate_rule_window_accepts_aligned_window() -> None:
    validate_rule_window(0, time(9, 0), time(17, 30))


@pytest.fixture
def doctor(make_user):
    return make_user(Role.DOCTOR)


@pytest.fixture
def doctor_actor(doctor) -> ActorContext:
    return ActorContext(user_id=doctor.id, role=Role.DOCTOR)


def test_doctor_creates_and_lists_own_rules(db, doctor, doctor_actor) -> None:
    store = AvailabilityStore(db)
    store.create_rule(doctor_actor, doctor.id, 3, time(13, 0), time(15, 0))
    store.create_rule(doctor_actor, doctor.id, 1, time(9, 0), time(12, 0))
    store.create_rule(doctor_actor, doctor.id, 1, time(14, 0), time(16, 0), is_active=False)

    rules = store.list_rules(doctor.id)
    active = store.list_rules(doctor.id, active_only=True)

    assert [(rule.day_of_week, rule.start_time) for rule in rules] == [
        (1, time(9, 0)),
        (1, time(14, 0)),
        (3, time(13, 0)),
    ]
    assert len(active) == 2


def test_other_doctor_cannot_edit_rules(db, doctor, make_user) -> None:
    other = make_user(Role.DOCTOR)

    with pytest.raises(NotAuthorizedError):
        AvailabilityStore(db).create_rule(
            ActorContext(user_id=other.id, role=Role.DOCTOR), doctor.id, 1, time(9, 0), time(10, 0),
        )


def test_update_rule_revalidates_merged_window(db, doctor, doctor_actor) -> None:
    store = AvailabilityStore(db)
    rule = store.create_rule(doctor_actor, doctor.id, 1, time(9, 0), time(12, 0))

    with pytest.raises(ValidationError):
        store.update_rule(doctor_actor, rule.id, end_time=time(8, 0))

    updated = store.update_rule(doctor_actor, rule.id, end_time=time(13, 0), is_active=False)
    assert updated.end_time == time(13, 0)
    assert updated.is_active is False


def test_update_rule_rejects_unknown_fields(db, doctor, doctor_actor) -> None:
    store = AvailabilityStore(db)
    rule = store.create_rule(doctor_actor, doctor.id, 1, time(9, 0), time(12, 0))

    with pytest.raises(ValidationError):
        store.update_rule(doctor_actor, rule.id, doctor_id=42)


def test_delete_rule_removes_it(db, doctor, doctor_actor) -> None:
    store = AvailabilityStore(db)
    rule = store.create_rule(doctor_actor, doctor.id, 1, time(9, 0), time(12, 0))

    store.delete_rule(doctor_actor, rule.id)

    assert store.list_rules(doctor.id) == []
    with pytest.raises(NotFoundError):
        store.get_rule(rule.id)


def test_create_rule_for_non_doctor_raises_not_found(db, make_user) -> None:
    patient = make_user(Role.PATIENT)
    admin = ActorContext(user_id=1, role=Role.ADMIN)

    with pytest.raises(NotFoundError):
        AvailabilityStore(db).create_rule(admin, patient.id, 1, time(9, 0), time(10, 0))
