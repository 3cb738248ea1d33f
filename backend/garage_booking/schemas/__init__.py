from garage_booking.schemas.reservation import ReservationCreate, ReservationResponse, ReservationCancelResponse
from garage_booking.schemas.garage import AvailabilityResponse, QuoteResponse
from garage_booking.schemas.recommendation import (
    RecommendationRequest, RecommendedGarage, RecommendationResponse, RecommendationClick,
)

__all__ = [
    "ReservationCreate", "ReservationResponse", "ReservationCancelResponse",
    "AvailabilityResponse", "QuoteResponse",
    "RecommendationRequest", "RecommendedGarage", "RecommendationResponse", "RecommendationClick",
]
