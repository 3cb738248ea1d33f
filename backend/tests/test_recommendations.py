"""
Tests for the recommendation scorer.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from garage_booking.services.domain import Location, Reservation, ReservationStatus
from garage_booking.services.recommendation_scorer import (
    DEFAULT_WEIGHTS,
    ScoringWeights,
    UserPreferences,
    jaccard,
    rank,
    recommendation_reasons,
)
from garage_booking.services.time_window import TimeWindow
from tests.conftest import NOW, at, make_garage


def completed_visit(user_id, garage_id):
    r = Reservation.new(
        user_id=user_id,
        garage_id=garage_id,
        window=TimeWindow(at(9), at(10)),
        price=Decimal("4.00"),
        created_at=NOW,
    )
    return r.with_status(ReservationStatus.COMPLETED)


def ids(ranking):
    return [item.garage.id for item in ranking]


def test_identical_garages_rank_by_id():
    garages = [make_garage(3), make_garage(1), make_garage(2)]
    ranking = rank(None, garages, [], free_slots={1: 2, 2: 2, 3: 2})
    assert ids(ranking) == [1, 2, 3]


def test_ranking_is_deterministic_and_restartable():
    garages = [
        make_garage(1, rating=3.0, price_per_hour=Decimal("2.00")),
        make_garage(2, rating=4.5, price_per_hour=Decimal("6.00")),
        make_garage(3, rating=4.0, price_per_hour=Decimal("3.00")),
    ]
    ranking = rank(7, garages, [], free_slots={1: 1, 2: 2, 3: 0})

    first = list(ranking)
    second = list(ranking)
    assert first == second
    assert ids(rank(7, list(reversed(garages)), [], free_slots={1: 1, 2: 2, 3: 0})) == ids(first)


def test_ties_prefer_higher_rating_then_lower_price():
    # Only history counts, so every garage scores 0
    weights = ScoringWeights(history=1.0, rating=0.0, price=0.0, availability=0.0, location=0.0, amenities=0.0)
    garages = [
        make_garage(1, rating=3.0, price_per_hour=Decimal("1.00")),
        make_garage(2, rating=4.0, price_per_hour=Decimal("5.00")),
        make_garage(3, rating=4.0, price_per_hour=Decimal("2.00")),
    ]
    ranking = rank(None, garages, [], weights, free_slots={1: 2, 2: 2, 3: 2})
    assert ids(ranking) == [3, 2, 1]


def test_history_counts_completed_visits_only():
    garages = [make_garage(1), make_garage(2)]
    cancelled = completed_visit(5, 1).with_status(ReservationStatus.CANCELLED)
    history = [completed_visit(5, 2), cancelled, cancelled]

    ranking = rank(5, garages, history, free_slots={1: 2, 2: 2})
    top = ranking.top(1)[0]
    assert top.garage.id == 2
    assert top.signals["history"] == 1.0


def test_availability_favours_free_garages():
    garages = [make_garage(1, total_spaces=10), make_garage(2, total_spaces=10)]
    ranking = rank(None, garages, [], free_slots={1: 1, 2: 9})
    assert ids(ranking) == [2, 1]


def test_cheapest_garage_gets_full_price_signal():
    garages = [
        make_garage(1, price_per_hour=Decimal("2.00")),
        make_garage(2, price_per_hour=Decimal("4.00")),
        make_garage(3, price_per_hour=Decimal("6.00")),
    ]
    signals = {item.garage.id: item.signals["price"] for item in rank(None, garages, [], free_slots={})}
    assert signals == {1: 1.0, 2: 0.5, 3: 0.0}


def test_nearest_garage_wins_on_location():
    near = make_garage(1, location=Location("Covent Garden", 51.5117, -0.1240))
    far = make_garage(2, location=Location("Heathrow", 51.4700, -0.4543))
    preferences = UserPreferences(latitude=51.5074, longitude=-0.1278)

    ranking = rank(None, [far, near], [], free_slots={1: 2, 2: 2}, preferences=preferences)
    items = list(ranking)
    assert ids(items) == [1, 2]
    assert items[0].signals["location"] == 1.0
    assert 0.0 < items[1].signals["location"] < 1.0


def test_garage_without_coordinates_scores_zero_on_location():
    located = make_garage(1, location=Location("Soho", 51.5136, -0.1365))
    unknown = make_garage(2)
    preferences = UserPreferences(latitude=51.5074, longitude=-0.1278)

    signals = {
        item.garage.id: item.signals["location"]
        for item in rank(None, [located, unknown], [], free_slots={}, preferences=preferences)
    }
    assert signals == {1: 1.0, 2: 0.0}


def test_missing_signals_are_dropped_and_weights_renormalized():
    garages = [make_garage(1, rating=5.0), make_garage(2, rating=5.0)]
    ranking = rank(None, garages, [], free_slots={1: 2, 2: 2})
    top = ranking.top(1)[0]

    assert "location" not in top.signals
    assert "amenities" not in top.signals
    # rating, price and availability all max out; history is 0 for a guest.
    # Four remaining weights re-normalized: (0.20 + 0.20 + 0.15) / 0.80
    assert top.score == pytest.approx(0.55 / 0.80)


def test_effective_weights_sum_to_one():
    effective = DEFAULT_WEIGHTS.effective(["history", "rating", "price", "availability"])
    assert sum(effective.values()) == pytest.approx(1.0)
    assert set(effective) == {"history", "rating", "price", "availability"}


def test_amenity_preferences():
    garages = [
        make_garage(1, amenities=frozenset({"CCTV"})),
        make_garage(2, amenities=frozenset({"EV Charging", "CCTV"})),
    ]
    preferences = UserPreferences(amenities=frozenset({"ev charging", "cctv"}))
    ranking = rank(None, garages, [], free_slots={1: 2, 2: 2}, preferences=preferences)

    items = list(ranking)
    assert ids(items) == [2, 1]
    assert items[0].signals["amenities"] == 1.0
    assert items[1].signals["amenities"] == 0.5


def test_jaccard_similarity():
    assert jaccard(frozenset({"a", "b"}), frozenset({"b", "c"})) == pytest.approx(1 / 3)
    assert jaccard(frozenset(), frozenset()) == 0.0


def test_scores_stay_in_unit_interval():
    garages = [
        make_garage(1, rating=5.0, price_per_hour=Decimal("1.00")),
        make_garage(2, rating=0.0, price_per_hour=Decimal("9.00")),
    ]
    for item in rank(None, garages, [completed_visit(None, 1)], free_slots={1: 50, 2: -3}):
        assert 0.0 <= item.score <= 1.0


def test_empty_candidate_list():
    ranking = rank(1, [], [], free_slots={})
    assert list(ranking) == []
    assert len(ranking) == 0


def test_top_limits_results():
    garages = [make_garage(i) for i in range(1, 8)]
    ranking = rank(None, garages, [], free_slots={})
    assert len(ranking.top(3)) == 3
    assert len(ranking) == 7


@pytest.mark.parametrize(
    "overrides",
    [
        {"history": 0.5},
        {"rating": -0.1, "history": 0.55},
        {"history": 0.0, "rating": 0.0, "price": 0.0, "availability": 0.0, "location": 0.0, "amenities": 0.0},
    ],
)
def test_invalid_weights_rejected(overrides):
    with pytest.raises(ValidationError):
        ScoringWeights(**overrides)


def test_unknown_weight_rejected():
    with pytest.raises(ValidationError):
        ScoringWeights(popularity=0.1)


def test_recommendation_reasons():
    garage = make_garage(
        1,
        rating=4.8,
        price_per_hour=Decimal("2.50"),
        amenities=frozenset({"EV Charging", "CCTV", "24/7 Access"}),
    )
    reasons = recommendation_reasons(garage)
    assert reasons == ["Highly rated (4.8★)", "Budget-friendly (£2.50/hr)", "EV Charging available"]


def test_recommendation_reasons_fallback():
    assert recommendation_reasons(make_garage(1, rating=3.0)) == ["Good overall match"]


def test_weights_on_unavailable_signals_fall_back_to_defaults():
    location_only = ScoringWeights(history=0.0, rating=0.0, price=0.0, availability=0.0, location=1.0, amenities=0.0)
    garages = [make_garage(1, rating=2.0), make_garage(2, rating=5.0)]

    ranking = rank(None, garages, [], location_only, free_slots={1: 2, 2: 2})

    assert ranking.weights == DEFAULT_WEIGHTS
    items = list(ranking)
    assert ids(items) == [2, 1]
    assert items[0].score > 0.0


def test_weights_kept_when_their_signal_is_available():
    location_only = ScoringWeights(history=0.0, rating=0.0, price=0.0, availability=0.0, location=1.0, amenities=0.0)
    garages = [
        make_garage(1, location=Location("Covent Garden", 51.5117, -0.1240)),
        make_garage(2, location=Location("Heathrow", 51.4700, -0.4543)),
    ]
    preferences = UserPreferences(latitude=51.5074, longitude=-0.1278)

    ranking = rank(None, garages, [], location_only, free_slots={}, preferences=preferences)

    assert ranking.weights == location_only
    assert ranking.top(1)[0].score == pytest.approx(1.0)
