"""
Garage availability and price quote endpoints. Read-only.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from garage_booking.api.dependencies import get_reservation_service
from garage_booking.api.errors import to_http_exception
from garage_booking.schemas.garage import AvailabilityResponse, QuoteResponse
from garage_booking.services.errors import ReservationError
from garage_booking.services.reservation_service import ReservationService

router = APIRouter(prefix="/garages", tags=["Garages"])


@router.get("/{garage_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    garage_id: int,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    service: ReservationService = Depends(get_reservation_service),
):
    """Free spaces for the whole window. Not cached: admission needs live counts."""
    result = await service.get_availability(garage_id, start_time, end_time)
    if isinstance(result, ReservationError):
        raise to_http_exception(result)
    return AvailabilityResponse(
        garage_id=garage_id,
        start_time=start_time,
        end_time=end_time,
        free_slots=result,
    )


@router.get("/{garage_id}/quote", response_model=QuoteResponse)
async def get_quote(
    garage_id: int,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    service: ReservationService = Depends(get_reservation_service),
):
    """What a reservation for this window would cost at the current rate."""
    result = await service.quote(garage_id, start_time, end_time)
    if isinstance(result, ReservationError):
        raise to_http_exception(result)
    return QuoteResponse(
        garage_id=garage_id,
        start_time=start_time,
        end_time=end_time,
        duration_hours=result.duration_hours,
        price_per_hour=result.hourly_rate,
        total_price=result.total,
    )
