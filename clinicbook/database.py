from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()

from clinicbook.core import config  # noqa: E402


def _connect_args(database_url: str) -> dict:
    if database_url.startswith('sqlite'):
        return {'check_same_thread': False}
    return {}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.SQL_ECHO,
    connect_args=_connect_args(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False

APPOINTMENT_EXCLUSION_CONSTRAINT = 'appointments_no_overlap_per_doctor'


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_availability_schema(bind=None) -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    bind = bind or engine
    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(bind)

        if 'availability_rules' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_availability_rules_doctor_day '
                    'ON availability_rules(doctor_id, day_of_week)'
                )
            )

        _availability_schema_checked = True


def ensure_appointment_schema(bind=None) -> None:
    """Install indexes and, on PostgreSQL, the per-doctor interval exclusion constraint.

    The ``appointment_slot_claims`` unique key already rejects overlapping
    writes on every backend; the exclusion constraint states the same rule
    directly over ``[starts_at, ends_at)`` where the database supports it.
    """
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    bind = bind or engine
    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(bind)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_range ON appointments(doctor_id, starts_at, ends_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_patient_start ON appointments(patient_id, starts_at)')
            )

            if bind.dialect.name == 'postgresql':
                existing_constraint = connection.execute(
                    text('SELECT 1 FROM pg_constraint WHERE conname = :name'),
                    {'name': APPOINTMENT_EXCLUSION_CONSTRAINT},
                ).first()
                if existing_constraint is None:
                    connection.execute(text('CREATE EXTENSION IF NOT EXISTS btree_gist'))
                    connection.execute(
                        text(
                            f'ALTER TABLE appointments ADD CONSTRAINT {APPOINTMENT_EXCLUSION_CONSTRAINT} '
                            "EXCLUDE USING gist (doctor_id WITH =, tsrange(starts_at, ends_at, '[)') WITH &&) "
                            "WHERE (status IN ('scheduled', 'completed'))"
                        )
                    )

        _appointment_schema_checked = True
