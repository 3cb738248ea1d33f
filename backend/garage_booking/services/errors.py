"""
Outcome and error types for the reservation core.

Expected business outcomes (no capacity, busy garage, bad dates...) are
returned as values so callers can tell "fully booked" from "invalid dates"
without catching anything. Exceptions are kept for the internal seams
(window validation, missing garages, storage faults) and are converted to
ReservationError at the service boundary.
"""

import enum
from dataclasses import dataclass
from typing import Optional


class ReservationErrorKind(str, enum.Enum):
    INVALID_WINDOW = "invalid_window"
    GARAGE_NOT_FOUND = "garage_not_found"
    NO_CAPACITY = "no_capacity"
    BUSY = "busy"
    PERSISTENCE_FAILURE = "persistence_failure"
    AUTHORIZATION_DENIED = "authorization_denied"
    RESERVATION_NOT_FOUND = "reservation_not_found"
    INVALID_STATUS_TRANSITION = "invalid_status_transition"


@dataclass(frozen=True)
class ReservationError:
    kind: ReservationErrorKind
    message: str

    @property
    def retryable(self) -> bool:
        return self.kind == ReservationErrorKind.BUSY


class GarageNotFound(LookupError):
    def __init__(self, garage_id: int):
        super().__init__(f"Garage {garage_id} not found")
        self.garage_id = garage_id


class PersistenceError(RuntimeError):
    """Storage layer failure. Raised by repositories, never by the core itself."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
