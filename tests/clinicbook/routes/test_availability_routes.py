from datetime import date, time, timedelta

import pytest

from clinicbook.auth.context import ActorContext
from clinicbook.core.errors import NotAuthorizedError, ValidationError
from clinicbook.models.user import Role
from clinicbook.routes.availability_routes import (
    CreateAvailabilityRuleRequest,
    UpdateAvailabilityRuleRequest,
    create_rule,
    delete_rule,
    format_time_of_day,
    list_available_slots,
    list_rules,
    update_rule,
)


def test_create_rule_request_drops_seconds() -> None:
    request = CreateAvailabilityRuleRequest(day_of_week=1, start_time=time(9, 0, 45), end_time=time(12, 0, 10))

    assert request.start_time == time(9, 0)
    assert request.end_time == time(12, 0)
    assert request.is_active is True


def test_format_time_of_day_uses_hours_and_minutes() -> None:
    assert format_time_of_day(time(9, 5)) == '09:05'


def test_list_available_slots_formats_times(db, open_doctor) -> None:
    doctor = open_doctor()
    tomorrow = date.today() + timedelta(days=1)

    slots = list_available_slots(doctor_id=doctor.id, slot_date=tomorrow, duration_minutes=None, db=db)

    assert slots == ['09:00', '10:00', '11:00']


def test_list_available_slots_supports_custom_duration(db, open_doctor) -> None:
    doctor = open_doctor()
    tomorrow = date.today() + timedelta(days=1)

    slots = list_available_slots(doctor_id=doctor.id, slot_date=tomorrow, duration_minutes=90, db=db)

    assert slots == ['09:00', '10:30']


def test_list_available_slots_empty_for_unverified_doctor(db, make_user) -> None:
    doctor = make_user(Role.DOCTOR)
    tomorrow = date.today() + timedelta(days=1)

    assert list_available_slots(doctor_id=doctor.id, slot_date=tomorrow, duration_minutes=None, db=db) == []


def test_rule_crud_round_trip(db, make_user) -> None:
    doctor = make_user(Role.DOCTOR)
    actor = ActorContext(user_id=doctor.id, role=Role.DOCTOR)

    rule = create_rule(
        doctor_id=doctor.id,
        data=CreateAvailabilityRuleRequest(day_of_week=2, start_time=time(9, 0), end_time=time(11, 0)),
        actor=actor,
        db=db,
    )
    updated = update_rule(
        rule_id=rule.id,
        data=UpdateAvailabilityRuleRequest(end_time=time(12, 0)),
        actor=actor,
        db=db,
    )

    assert updated.start_time == time(9, 0)
    assert updated.end_time == time(12, 0)
    assert [item.id for item in list_rules(doctor_id=doctor.id, active_only=False, db=db)] == [rule.id]

    response = delete_rule(rule_id=rule.id, actor=actor, db=db)

    assert response.status_code == 204
    assert list_rules(doctor_id=doctor.id, active_only=False, db=db) == []


def test_create_rule_rejects_overnight_window(db, make_user) -> None:
    doctor = make_user(Role.DOCTOR)
    actor = ActorContext(user_id=doctor.id, role=Role.DOCTOR)

    with pytest.raises(ValidationError):
        create_rule(
            doctor_id=doctor.id,
            data=CreateAvailabilityRuleRequest(day_of_week=5, start_time=time(22, 0), end_time=time(2, 0)),
            actor=actor,
            db=db,
        )


def test_patient_cannot_edit_rules(db, make_user) -> None:
    doctor = make_user(Role.DOCTOR)
    patient = make_user(Role.PATIENT)

    with pytest.raises(NotAuthorizedError):
        create_rule(
            doctor_id=doctor.id,
            data=CreateAvailabilityRuleRequest(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0)),
            actor=ActorContext(user_id=patient.id, role=Role.PATIENT),
            db=db,
        )


def test_slots_endpoint_over_http(client, open_doctor) -> None:
    doctor = open_doctor()
    tomorrow = (date.today() + timedelta(days=1)).isoformat()

    response = client.get(f'/availability/doctors/{doctor.id}/slots', params={'date': tomorrow})

    assert response.status_code == 200
    assert response.json() == ['09:00', '10:00', '11:00']


def test_slots_endpoint_unknown_doctor_is_not_found(client) -> None:
    tomorrow = (date.today() + timedelta(days=1)).isoformat()

    response = client.get('/availability/doctors/999/slots', params={'date': tomorrow})

    assert response.status_code == 404
    assert response.json() == {'error': 'not_found', 'message': 'Doctor not found.'}
