from datetime import datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient

from clinicbook.auth.context import ActorContext
from clinicbook.auth.dependencies import get_actor
from clinicbook.database import get_db
from clinicbook.main import app
from clinicbook.models.availability import AvailabilityRule
from clinicbook.models.entitlement import (
    SubscriptionPlan,
    SubscriptionRecord,
    SubscriptionStatus,
    VerificationRecord,
    VerificationStatus,
)
from clinicbook.models.user import Role

ROUTE_MODULES = (
    'appointment_routes',
    'auth_routes',
    'availability_routes',
    'directory_routes',
    'entitlement_routes',
)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    for module in ROUTE_MODULES:
        monkeypatch.setattr(f'clinicbook.routes.{module}.ensure_database_ready', lambda: None)


@pytest.fixture
def acting_as():
    current = {'actor': None}

    def _acting_as(user_id: int, role: Role) -> ActorContext:
        current['actor'] = ActorContext(user_id=user_id, role=role)
        return current['actor']

    _acting_as.current = current
    return _acting_as


@pytest.fixture
def client(db, acting_as):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_actor] = lambda: acting_as.current['actor']
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def open_doctor(db, make_user):
    """A bookable doctor (relative to the real clock) seeing patients 09:00-12:00 every day."""

    def _open_doctor():
        doctor = make_user(Role.DOCTOR)
        now = datetime.now()
        db.add(VerificationRecord(doctor_id=doctor.id, status=VerificationStatus.VERIFIED.value, updated_at=now))
        db.add(SubscriptionRecord(
            doctor_id=doctor.id,
            status=SubscriptionStatus.ACTIVE.value,
            plan=SubscriptionPlan.MONTHLY.value,
            expires_at=now + timedelta(days=60),
            amount=799,
            updated_at=now,
        ))
        for day_of_week in range(7):
            db.add(AvailabilityRule(
                doctor_id=doctor.id,
                day_of_week=day_of_week,
                start_time=time(9, 0),
                end_time=time(12, 0),
            ))
        db.commit()
        return doctor

    return _open_doctor
