"""
Garage recommendation endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from garage_booking.api.dependencies import get_current_user_id, get_optional_user_id, get_reservation_service
from garage_booking.api.errors import to_http_exception
from garage_booking.core.config import get_settings
from garage_booking.core.logging import get_logger
from garage_booking.core.metrics import recommendation_clicks
from garage_booking.schemas.recommendation import (
    RecommendationClick,
    RecommendationRequest,
    RecommendationResponse,
    RecommendedGarage,
)
from garage_booking.services.errors import ReservationError
from garage_booking.services.recommendation_scorer import recommendation_reasons
from garage_booking.services.reservation_service import ReservationService

logger = get_logger(__name__)
router = APIRouter(prefix="/recommendations", tags=["Recommendations"])


@router.post("/", response_model=RecommendationResponse)
async def recommend_garages(
    request: RecommendationRequest,
    user_id: Optional[int] = Depends(get_optional_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Rank garages for the caller and the window they want to park in.
    Guests (no user id) are ranked without history.
    """
    ranking = await service.rank_garages(
        user_id,
        request.start_time,
        request.end_time,
        weights=request.weights,
        preferences=request.preferences(),
    )
    if isinstance(ranking, ReservationError):
        raise to_http_exception(ranking)

    limit = request.limit or get_settings().RECOMMENDATION_LIMIT
    recommendations = [
        RecommendedGarage(
            garage_id=item.garage.id,
            name=item.garage.name,
            address=item.garage.location.address,
            price_per_hour=item.garage.price_per_hour,
            rating=item.garage.rating,
            total_spaces=item.garage.total_spaces,
            amenities=sorted(item.garage.amenities),
            recommendation_score=round(item.score, 4),
            signals={name: round(value, 4) for name, value in item.signals.items()},
            recommendation_reasons=recommendation_reasons(item.garage),
            is_top_pick=(position == 0),
        )
        for position, item in enumerate(ranking.top(limit))
    ]
    return RecommendationResponse(recommendations=recommendations, count=len(recommendations))


@router.post("/clicks", status_code=status.HTTP_204_NO_CONTENT)
async def log_recommendation_click(
    click: RecommendationClick,
    user_id: int = Depends(get_current_user_id),
):
    """Record that a user followed a recommendation, for tuning the weights."""
    recommendation_clicks.inc()
    logger.info(
        "recommendation_clicked",
        user_id=user_id,
        garage_id=click.garage_id,
        recommendation_score=click.recommendation_score,
    )
