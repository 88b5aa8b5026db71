import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinicbook.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Scheduling
DEFAULT_SLOT_DURATION_MINUTES = _get_int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES"), 60)
# Appointment intervals are claimed in granules of this size; rule bounds and
# slot durations must be multiples of it.
SLOT_CLAIM_GRANULARITY_MINUTES = _get_int(os.getenv("SLOT_CLAIM_GRANULARITY_MINUTES"), 5)
BOOKING_HORIZON_DAYS = _get_int(os.getenv("BOOKING_HORIZON_DAYS"), 30)
MAX_APPOINTMENT_NOTES_LENGTH = _get_int(os.getenv("MAX_APPOINTMENT_NOTES_LENGTH"), 600)

# Subscriptions (prices in cents)
MONTHLY_PRICE_CENTS = _get_int(os.getenv("MONTHLY_PRICE_CENTS"), 799)
ANNUAL_PRICE_CENTS = _get_int(os.getenv("ANNUAL_PRICE_CENTS"), 7990)
MONTHLY_PLAN_DAYS = _get_int(os.getenv("MONTHLY_PLAN_DAYS"), 30)
ANNUAL_PLAN_DAYS = _get_int(os.getenv("ANNUAL_PLAN_DAYS"), 365)
SUBSCRIPTION_GRACE_DAYS = _get_int(os.getenv("SUBSCRIPTION_GRACE_DAYS"), 7)

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_CLAIM_GRANULARITY_MINUTES <= 0:
        raise RuntimeError("SLOT_CLAIM_GRANULARITY_MINUTES must be positive.")
    if DEFAULT_SLOT_DURATION_MINUTES % SLOT_CLAIM_GRANULARITY_MINUTES != 0:
        raise RuntimeError("DEFAULT_SLOT_DURATION_MINUTES must be a multiple of SLOT_CLAIM_GRANULARITY_MINUTES.")
