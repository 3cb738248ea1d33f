"""
Reservation endpoints with capacity-safe admission.
"""

from fastapi import APIRouter, Depends, status

from garage_booking.api.dependencies import get_authorization, get_current_user_id, get_reservation_service
from garage_booking.api.errors import to_http_exception
from garage_booking.infrastructure.authorization import RoleAuthorization
from garage_booking.schemas.reservation import ReservationCancelResponse, ReservationCreate, ReservationResponse
from garage_booking.services.errors import ReservationError, ReservationErrorKind
from garage_booking.services.reservation_service import ReservationService

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post("/", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    reservation_data: ReservationCreate,
    user_id: int = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Reserve one space in a garage for [start_time, end_time).

    The price is computed server-side from the garage's current hourly rate.
    409 when the garage is fully booked for the window, 503 (with Retry-After)
    when the garage is too busy to decide in time.
    """
    result = await service.create(
        user_id,
        reservation_data.garage_id,
        reservation_data.start_time,
        reservation_data.end_time,
    )
    if isinstance(result, ReservationError):
        raise to_http_exception(result)
    return ReservationResponse.from_domain(result)


@router.delete("/{reservation_id}", response_model=ReservationCancelResponse)
async def cancel_reservation(
    reservation_id: str,
    user_id: int = Depends(get_current_user_id),
    authorization: RoleAuthorization = Depends(get_authorization),
    service: ReservationService = Depends(get_reservation_service),
):
    """Cancel a reservation and release its space."""
    error = await service.cancel(reservation_id, user_id, authorization)
    if error is not None:
        raise to_http_exception(error)
    return ReservationCancelResponse(
        message="Reservation cancelled successfully",
        reservation_id=reservation_id,
        status="cancelled",
    )


@router.get("/", response_model=list[ReservationResponse])
async def list_user_reservations(
    user_id: int = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """Get all reservations for the authenticated user, newest first."""
    result = await service.list_user_reservations(user_id)
    if isinstance(result, ReservationError):
        raise to_http_exception(result)
    return [ReservationResponse.from_domain(r) for r in result]


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    user_id: int = Depends(get_current_user_id),
    authorization: RoleAuthorization = Depends(get_authorization),
    service: ReservationService = Depends(get_reservation_service),
):
    result = await service.get_reservation(reservation_id)
    if isinstance(result, ReservationError):
        raise to_http_exception(result)
    # Other users' reservations are reported as missing, not forbidden
    if result.user_id != user_id and not await authorization.is_permitted(user_id, result, "view"):
        raise to_http_exception(ReservationError(ReservationErrorKind.RESERVATION_NOT_FOUND, "Reservation not found"))
    return ReservationResponse.from_domain(result)
