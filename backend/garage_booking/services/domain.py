"""
Domain records shared by the reservation core.

These are plain immutable values. The ORM rows in garage_booking.models are
mapped to and from them by the stores, so the core never touches a session.
"""

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import FrozenSet, Optional

from garage_booking.services.time_window import TimeWindow


class ReservationStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Completed is terminal except for the external refund event.
ALLOWED_TRANSITIONS = {
    ReservationStatus.ACTIVE: frozenset({ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}),
    ReservationStatus.COMPLETED: frozenset({ReservationStatus.REFUNDED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.REFUNDED: frozenset(),
}


def is_valid_transition(current: ReservationStatus, new: ReservationStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[ReservationStatus(current)]


@dataclass(frozen=True)
class Location:
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class Garage:
    id: int
    name: str
    total_spaces: int
    price_per_hour: Decimal
    rating: float = 0.0
    location: Location = field(default_factory=Location)
    amenities: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if self.total_spaces <= 0:
            raise ValueError(f"Garage {self.id} must have at least one space")
        if Decimal(self.price_per_hour) < 0:
            raise ValueError(f"Garage {self.id} has a negative hourly rate")
        if not 0.0 <= self.rating <= 5.0:
            raise ValueError(f"Garage {self.id} rating must be between 0 and 5")


@dataclass(frozen=True)
class Reservation:
    id: str
    user_id: int
    garage_id: int
    window: TimeWindow
    price: Decimal
    status: ReservationStatus
    created_at: datetime

    @classmethod
    def new(cls, user_id: int, garage_id: int, window: TimeWindow, price: Decimal, created_at: datetime) -> "Reservation":
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            garage_id=garage_id,
            window=window,
            price=price,
            status=ReservationStatus.ACTIVE,
            created_at=created_at,
        )

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    def with_status(self, status: ReservationStatus) -> "Reservation":
        return replace(self, status=status)
