"""
Pydantic schemas for garage recommendations.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from garage_booking.services.recommendation_scorer import ScoringWeights, UserPreferences


class RecommendationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start_time: datetime
    end_time: datetime
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    amenities: List[str] = Field(default_factory=list, max_length=50)
    weights: Optional[ScoringWeights] = None
    limit: Optional[int] = Field(None, gt=0, le=100)

    @model_validator(mode="after")
    def check_origin(self) -> "RecommendationRequest":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    def preferences(self) -> UserPreferences:
        return UserPreferences(
            latitude=self.latitude,
            longitude=self.longitude,
            amenities=frozenset(tag.strip() for tag in self.amenities if tag.strip()),
        )


class RecommendedGarage(BaseModel):
    garage_id: int
    name: str
    address: str
    price_per_hour: Decimal
    rating: float
    total_spaces: int
    amenities: List[str]
    recommendation_score: float
    signals: Dict[str, float]
    recommendation_reasons: List[str]
    is_top_pick: bool = False


class RecommendationResponse(BaseModel):
    recommendations: List[RecommendedGarage]
    count: int


class RecommendationClick(BaseModel):
    model_config = ConfigDict(extra="forbid")

    garage_id: int = Field(..., gt=0)
    recommendation_score: float = Field(..., ge=0, le=1)
