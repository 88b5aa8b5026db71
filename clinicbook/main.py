import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from clinicbook.core import config
from clinicbook.core.errors import BookingError
from clinicbook.database import Base, engine, ensure_availability_schema, ensure_appointment_schema
from clinicbook.models import appointment, availability, clinic, entitlement, user  # noqa: F401
from clinicbook.routes import (
    appointment_routes,
    auth_routes,
    availability_routes,
    directory_routes,
    entitlement_routes,
)
from clinicbook.routes.common import DATABASE_UNAVAILABLE_DETAIL

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(BookingError)
def handle_booking_error(_request: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={'error': exc.code, 'message': exc.message},
    )


@app.exception_handler(SQLAlchemyError)
def handle_database_error(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error('Database error while handling request: %s', exc)
    return JSONResponse(
        status_code=503,
        content={'error': 'database_unavailable', 'message': DATABASE_UNAVAILABLE_DETAIL},
    )


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(entitlement_routes.router, prefix='/entitlements')
app.include_router(directory_routes.router)
