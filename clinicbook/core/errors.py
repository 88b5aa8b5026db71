"""Expected, caller-recoverable failures of the booking core.

Services raise these; the HTTP layer renders them through a single handler
registered in ``clinicbook.main``. Storage failures are not part of this
hierarchy and propagate as-is.
"""

SLOT_UNAVAILABLE_MESSAGE = 'This time is no longer available, choose another.'
DOCTOR_NOT_BOOKABLE_MESSAGE = 'This doctor cannot currently be booked.'


class BookingError(Exception):
    status_code = 400
    code = 'booking_error'
    default_message = 'The request could not be completed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookingError):
    status_code = 400
    code = 'validation_error'
    default_message = 'The request is invalid.'


class NotBookableError(BookingError):
    status_code = 409
    code = 'not_bookable'
    default_message = DOCTOR_NOT_BOOKABLE_MESSAGE


class InvalidSlotError(BookingError):
    status_code = 422
    code = 'invalid_slot'
    default_message = 'The requested time is not one of the doctor\'s available slots.'


class SlotTakenError(BookingError):
    status_code = 409
    code = 'slot_taken'
    default_message = SLOT_UNAVAILABLE_MESSAGE


class ConcurrentBookingError(BookingError):
    status_code = 409
    code = 'concurrent_booking'
    default_message = SLOT_UNAVAILABLE_MESSAGE


class NotAuthorizedError(BookingError):
    status_code = 403
    code = 'not_authorized'
    default_message = 'You are not allowed to perform this action.'


class NotFoundError(BookingError):
    status_code = 404
    code = 'not_found'
    default_message = 'The requested record was not found.'


class StaleRecordError(BookingError):
    status_code = 409
    code = 'stale_record'
    default_message = 'The record was changed by someone else. Reload and try again.'
