"""
Pytest fixtures for the reservation core, the stores, and the HTTP client.

Everything runs against the in-memory store with a LocalAdmissionLock and a
clock pinned to NOW, so windows in tests are stable regardless of when the
suite runs.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from garage_booking.api.dependencies import get_reservation_service
from garage_booking.core.clock import FixedClock
from garage_booking.infrastructure.memory_store import (
    InMemoryGarageRepository,
    InMemoryReservationRepository,
    MemoryStore,
)
from garage_booking.main import app
from garage_booking.services.availability_ledger import AvailabilityLedger
from garage_booking.services.domain import Garage, Location
from garage_booking.services.interfaces.local_admission import LocalAdmissionLock
from garage_booking.services.reservation_service import ReservationService

NOW = datetime(2026, 6, 1, 8, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    """A time on the day after NOW, so it is always in the future."""
    return datetime(2026, 6, 2, hour, minute, tzinfo=timezone.utc) + timedelta(days=days)


def make_garage(garage_id: int = 1, **overrides) -> Garage:
    fields = dict(
        id=garage_id,
        name=f"Garage {garage_id}",
        total_spaces=2,
        price_per_hour=Decimal("4.00"),
        rating=4.0,
        location=Location(address=f"{garage_id} High Street"),
        amenities=frozenset(),
    )
    fields.update(overrides)
    return Garage(**fields)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore(
        garages=[
            make_garage(1, total_spaces=2, price_per_hour=Decimal("4.00")),
            make_garage(2, total_spaces=10, price_per_hour=Decimal("5.50"), rating=4.8),
        ]
    )


@pytest.fixture
def garage_repo(store: MemoryStore) -> InMemoryGarageRepository:
    return InMemoryGarageRepository(store)


@pytest.fixture
def reservation_repo(store: MemoryStore) -> InMemoryReservationRepository:
    return InMemoryReservationRepository(store)


@pytest.fixture
def admission_lock() -> LocalAdmissionLock:
    return LocalAdmissionLock()


@pytest.fixture
def ledger(garage_repo, admission_lock) -> AvailabilityLedger:
    return AvailabilityLedger(garage_repo, admission_lock, wait_seconds=1.0, release_retries=3)


@pytest.fixture
def service(garage_repo, reservation_repo, ledger, clock) -> ReservationService:
    return ReservationService(
        garages=garage_repo,
        reservations=reservation_repo,
        ledger=ledger,
        clock=clock,
    )


@pytest_asyncio.fixture(scope="function")
async def client(service: ReservationService) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the in-memory reservation service."""
    app.dependency_overrides[get_reservation_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> dict:
    return {"X-User-Id": "42"}


@pytest.fixture
def other_user_headers() -> dict:
    return {"X-User-Id": "7"}


@pytest.fixture
def manager_headers() -> dict:
    return {"X-User-Id": "99", "X-User-Role": "manager"}
