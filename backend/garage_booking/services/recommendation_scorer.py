"""
Garage recommendation scorer.

Pure ranking: no I/O, no hidden state. The service gathers the inputs
(garages, the user's history, free slots for the requested window) and this
module turns them into a deterministic ordering.

score = sum(weight[s] * signal[s]) over the six signals, every signal in [0, 1]:

  history       completed visits to this garage / the user's most visited garage
  rating        rating / 5
  price         1 - (price - min) / (max - min) across candidates, 1 when all equal
  availability  free slots / total spaces for the requested window
  location      1 / (1 + km to origin), scaled so the nearest candidate is 1
  amenities     Jaccard similarity of preferred and offered amenities

Missing signals:
  No origin means no location signal for anyone; no preferred amenities means
  no amenity signal. Those signals are dropped and the remaining weights are
  scaled back up to 1, rather than scoring every garage 0 on them. A garage
  without coordinates when an origin is given scores 0 on location.
  Requested weights with nothing on the available signals fall back to the
  defaults.

Ties: higher raw rating, then lower price, then lower garage id.
"""

from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from geopy.distance import geodesic
from pydantic import BaseModel, ConfigDict, Field, model_validator

from garage_booking.services.domain import Garage, Reservation, ReservationStatus

WEIGHT_TOLERANCE = 1e-6

SIGNALS = ("history", "rating", "price", "availability", "location", "amenities")

BUDGET_PRICE_PER_HOUR = Decimal("3.00")
MAX_REASONS = 3


class ScoringWeights(BaseModel):
    """Signal weights. Must be non-negative and sum to 1."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    history: float = Field(default=0.25, ge=0.0)
    rating: float = Field(default=0.20, ge=0.0)
    price: float = Field(default=0.20, ge=0.0)
    availability: float = Field(default=0.15, ge=0.0)
    location: float = Field(default=0.10, ge=0.0)
    amenities: float = Field(default=0.10, ge=0.0)

    @model_validator(mode="after")
    def check_sum(self) -> "ScoringWeights":
        total = sum(getattr(self, name) for name in SIGNALS)
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Weights must sum to 1.0, got {total:.6f}")
        return self

    def effective(self, available: Iterable[str]) -> Dict[str, float]:
        """Weights restricted to `available` signals, re-normalized to sum to 1."""
        allowed = set(available)
        subset = {name: getattr(self, name) for name in SIGNALS if name in allowed}
        total = sum(subset.values())
        if total <= 0:
            return {name: 0.0 for name in subset}
        return {name: weight / total for name, weight in subset.items()}


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class UserPreferences:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    amenities: FrozenSet[str] = frozenset()

    @property
    def has_origin(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class RankedGarage(NamedTuple):
    garage: Garage
    score: float
    signals: Dict[str, float]


class RankedGarages:
    """
    Lazy, restartable ranking. Nothing is computed until iterated, and every
    iteration recomputes from the same inputs, so results are identical.
    """

    def __init__(
        self,
        user_id: Optional[int],
        garages: Sequence[Garage],
        user_history: Sequence[Reservation],
        weights: ScoringWeights,
        free_slots: Mapping[int, int],
        preferences: UserPreferences,
    ):
        self.user_id = user_id
        self._garages = tuple(garages)
        self._history = tuple(user_history)
        self.weights = weights
        self._free_slots = dict(free_slots)
        self.preferences = preferences

    def __iter__(self) -> Iterator[RankedGarage]:
        return iter(self._ranked())

    def __len__(self) -> int:
        return len(self._garages)

    def top(self, limit: int) -> List[RankedGarage]:
        ranked = []
        for item in self:
            if len(ranked) >= limit:
                break
            ranked.append(item)
        return ranked

    def _ranked(self) -> List[RankedGarage]:
        if not self._garages:
            return []

        weights = self.weights.effective(available_signals(self.preferences))

        history = history_signals(self.user_id, self._garages, self._history)
        price = price_signals(self._garages)
        location = location_signals(self._garages, self.preferences) if "location" in weights else {}

        scored = []
        for garage in self._garages:
            signals = {
                "history": history[garage.id],
                "rating": rating_signal(garage),
                "price": price[garage.id],
                "availability": availability_signal(garage, self._free_slots.get(garage.id, 0)),
            }
            if "location" in weights:
                signals["location"] = location[garage.id]
            if "amenities" in weights:
                signals["amenities"] = jaccard(self.preferences.amenities, garage.amenities)

            score = sum(weights[name] * value for name, value in signals.items())
            scored.append(RankedGarage(garage=garage, score=score, signals=signals))

        scored.sort(key=_sort_key)
        return scored


def _sort_key(item: RankedGarage) -> Tuple[float, float, Decimal, int]:
    return (-item.score, -item.garage.rating, item.garage.price_per_hour, item.garage.id)


def available_signals(preferences: UserPreferences) -> List[str]:
    """Signals computable for this caller. The first four always are."""
    available = ["history", "rating", "price", "availability"]
    if preferences.has_origin:
        available.append("location")
    if preferences.amenities:
        available.append("amenities")
    return available


def has_usable_weight(weights: ScoringWeights, preferences: UserPreferences) -> bool:
    return any(getattr(weights, name) > 0 for name in available_signals(preferences))


def rank(
    user_id: Optional[int],
    garages: Sequence[Garage],
    user_history: Sequence[Reservation],
    weights: Optional[ScoringWeights] = None,
    *,
    free_slots: Mapping[int, int],
    preferences: Optional[UserPreferences] = None,
) -> RankedGarages:
    """
    Rank `garages` for the user. Weights that put nothing on the signals
    available for this caller (all weight on location without an origin, say)
    would score every garage 0, so the default weights are used instead.
    """
    preferences = preferences or UserPreferences()
    weights = weights or DEFAULT_WEIGHTS
    if not has_usable_weight(weights, preferences):
        weights = DEFAULT_WEIGHTS
    return RankedGarages(
        user_id=user_id,
        garages=garages,
        user_history=user_history,
        weights=weights,
        free_slots=free_slots,
        preferences=preferences,
    )


def rating_signal(garage: Garage) -> float:
    return min(max(garage.rating / 5.0, 0.0), 1.0)


def availability_signal(garage: Garage, free: int) -> float:
    return min(max(free, 0), garage.total_spaces) / garage.total_spaces


def price_signals(garages: Sequence[Garage]) -> Dict[int, float]:
    prices = [Decimal(g.price_per_hour) for g in garages]
    low, high = min(prices), max(prices)
    if high == low:
        return {g.id: 1.0 for g in garages}
    spread = high - low
    return {g.id: float(1 - (Decimal(g.price_per_hour) - low) / spread) for g in garages}


def history_signals(
    user_id: Optional[int],
    garages: Sequence[Garage],
    history: Sequence[Reservation],
) -> Dict[int, float]:
    counts = Counter(
        r.garage_id
        for r in history
        if r.status == ReservationStatus.COMPLETED and (user_id is None or r.user_id == user_id)
    )
    most = max(counts.values(), default=0)
    if most == 0:
        return {g.id: 0.0 for g in garages}
    return {g.id: counts.get(g.id, 0) / most for g in garages}


def location_signals(garages: Sequence[Garage], preferences: UserPreferences) -> Dict[int, float]:
    origin = (preferences.latitude, preferences.longitude)
    closeness = {}
    for garage in garages:
        if garage.location.has_coordinates:
            km = geodesic(origin, (garage.location.latitude, garage.location.longitude)).km
            closeness[garage.id] = 1.0 / (1.0 + km)
        else:
            closeness[garage.id] = 0.0

    best = max(closeness.values(), default=0.0)
    if best <= 0:
        return {g.id: 0.0 for g in garages}
    return {garage_id: value / best for garage_id, value in closeness.items()}


def jaccard(preferred: FrozenSet[str], offered: FrozenSet[str]) -> float:
    a = {tag.strip().lower() for tag in preferred}
    b = {tag.strip().lower() for tag in offered}
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def recommendation_reasons(garage: Garage) -> List[str]:
    """Short human-readable reasons shown next to a recommendation."""
    reasons = []
    amenities = {tag.lower() for tag in garage.amenities}

    if garage.rating >= 4.5:
        reasons.append(f"Highly rated ({garage.rating}★)")
    if Decimal(garage.price_per_hour) <= BUDGET_PRICE_PER_HOUR:
        reasons.append(f"Budget-friendly (£{Decimal(garage.price_per_hour):.2f}/hr)")
    if "ev charging" in amenities:
        reasons.append("EV Charging available")
    if "cctv" in amenities or "security guard" in amenities:
        reasons.append("Enhanced security")
    if "24/7 access" in amenities:
        reasons.append("24/7 accessible")

    if not reasons:
        reasons.append("Good overall match")
    return reasons[:MAX_REASONS]
