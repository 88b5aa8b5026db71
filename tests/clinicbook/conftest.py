import os
from datetime import datetime, time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinicbook.database import Base  # noqa: E402
from clinicbook.models import appointment, availability, clinic, entitlement  # noqa: E402,F401
from clinicbook.models.availability import AvailabilityRule  # noqa: E402
from clinicbook.models.entitlement import (  # noqa: E402
    SubscriptionPlan,
    SubscriptionRecord,
    SubscriptionStatus,
    VerificationRecord,
    VerificationStatus,
)
from clinicbook.models.user import Role, User  # noqa: E402

# Monday 2 March 2026, 08:00.
NOW = datetime(2026, 3, 2, 8, 0)
MONDAY = 1


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_user(db):
    counter = {'value': 0}

    def _make_user(role: Role, **fields) -> User:
        counter['value'] += 1
        user = User(
            email=fields.pop('email', f'{role.value}{counter["value"]}@clinic.test'),
            role=role.value,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_bookable_doctor(db, make_user):
    """A verified doctor with an active subscription and Monday 09:00-12:00 hours."""

    def _make_bookable_doctor(rules=((MONDAY, time(9, 0), time(12, 0)),)) -> User:
        doctor = make_user(Role.DOCTOR)
        db.add(VerificationRecord(doctor_id=doctor.id, status=VerificationStatus.VERIFIED.value, updated_at=NOW))
        db.add(SubscriptionRecord(
            doctor_id=doctor.id,
            status=SubscriptionStatus.ACTIVE.value,
            plan=SubscriptionPlan.MONTHLY.value,
            expires_at=NOW + timedelta(days=30),
            amount=799,
            updated_at=NOW,
        ))
        for day_of_week, start_time, end_time in rules:
            db.add(AvailabilityRule(
                doctor_id=doctor.id,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                is_active=True,
            ))
        db.commit()
        return doctor

    return _make_bookable_doctor
