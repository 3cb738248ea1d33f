"""
Mapping from core ReservationError values to HTTP responses.
"""

from fastapi import HTTPException, status

from garage_booking.services.errors import ReservationError, ReservationErrorKind

STATUS_CODES = {
    ReservationErrorKind.INVALID_WINDOW: status.HTTP_400_BAD_REQUEST,
    ReservationErrorKind.GARAGE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ReservationErrorKind.NO_CAPACITY: status.HTTP_409_CONFLICT,
    ReservationErrorKind.BUSY: status.HTTP_503_SERVICE_UNAVAILABLE,
    ReservationErrorKind.PERSISTENCE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ReservationErrorKind.AUTHORIZATION_DENIED: status.HTTP_403_FORBIDDEN,
    ReservationErrorKind.RESERVATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ReservationErrorKind.INVALID_STATUS_TRANSITION: status.HTTP_400_BAD_REQUEST,
}

RETRY_AFTER_SECONDS = "1"


def to_http_exception(error: ReservationError) -> HTTPException:
    headers = {"Retry-After": RETRY_AFTER_SECONDS} if error.retryable else None
    return HTTPException(
        status_code=STATUS_CODES[error.kind],
        detail={"error": error.kind.value, "message": error.message},
        headers=headers,
    )
