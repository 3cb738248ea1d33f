"""
Pydantic schemas for reservation-related request/response validation.

Requests forbid unknown fields: a client-supplied `price` is rejected, not ignored.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from garage_booking.services.domain import Reservation


class ReservationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    garage_id: int = Field(..., gt=0)
    start_time: datetime
    end_time: datetime


class ReservationResponse(BaseModel):
    id: str
    user_id: int
    garage_id: int
    start_time: datetime
    end_time: datetime
    duration_hours: float
    price: Decimal
    status: str
    created_at: datetime

    @classmethod
    def from_domain(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(
            id=reservation.id,
            user_id=reservation.user_id,
            garage_id=reservation.garage_id,
            start_time=reservation.window.start,
            end_time=reservation.window.end,
            duration_hours=round(reservation.window.duration_hours(), 2),
            price=reservation.price,
            status=reservation.status.value,
            created_at=reservation.created_at,
        )


class ReservationCancelResponse(BaseModel):
    message: str
    reservation_id: str
    status: str
