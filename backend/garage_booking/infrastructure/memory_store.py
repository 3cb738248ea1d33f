"""
In-memory garage and reservation repositories.

Back tests and single-process development (STORAGE_BACKEND=memory). Data is
lost on restart. Both repositories read the same MemoryStore so reservations
saved through one are visible to availability queries through the other.

Garages are administered elsewhere, so the development backend is seeded from
a JSON file (MEMORY_SEED_FILE):

  [{"id": 1, "name": "City Centre", "total_spaces": 40, "price_per_hour": "4.00",
    "rating": 4.5, "address": "1 Market St", "latitude": 51.5, "longitude": -0.12,
    "amenities": ["CCTV", "EV Charging"]}]
"""

import asyncio
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from garage_booking.core.logging import get_logger
from garage_booking.services.domain import Garage, Location, Reservation, ReservationStatus
from garage_booking.services.errors import PersistenceError
from garage_booking.services.interfaces.repositories import GarageRepository, ReservationRepository
from garage_booking.services.time_window import TimeWindow

logger = get_logger(__name__)


class GarageSeed(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int = Field(..., gt=0)
    name: str
    total_spaces: int = Field(..., gt=0)
    price_per_hour: Decimal = Field(..., ge=0)
    rating: float = Field(0.0, ge=0, le=5)
    address: str = ""
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    amenities: List[str] = Field(default_factory=list)

    def to_domain(self) -> Garage:
        return Garage(
            id=self.id,
            name=self.name,
            total_spaces=self.total_spaces,
            price_per_hour=self.price_per_hour,
            rating=self.rating,
            location=Location(address=self.address, latitude=self.latitude, longitude=self.longitude),
            amenities=frozenset(tag.strip() for tag in self.amenities if tag.strip()),
        )


_seed_adapter = TypeAdapter(List[GarageSeed])


def load_seed_garages(path: str) -> List[Garage]:
    """Parse a garage seed file. Raises pydantic.ValidationError on bad entries."""
    seeds = _seed_adapter.validate_json(Path(path).read_bytes())
    garages = [seed.to_domain() for seed in seeds]
    logger.info("memory_store_seeded", path=path, garages=len(garages))
    return garages


class MemoryStore:
    def __init__(self, garages: Iterable[Garage] = (), reservations: Iterable[Reservation] = ()):
        self.garages: Dict[int, Garage] = {g.id: g for g in garages}
        self.reservations: Dict[str, Reservation] = {r.id: r for r in reservations}

    def add_garage(self, garage: Garage) -> None:
        self.garages[garage.id] = garage


class InMemoryGarageRepository(GarageRepository):
    def __init__(self, store: MemoryStore):
        self.store = store

    async def get_by_id(self, garage_id: int) -> Optional[Garage]:
        return self.store.garages.get(garage_id)

    async def list_garages(self) -> List[Garage]:
        return [self.store.garages[garage_id] for garage_id in sorted(self.store.garages)]

    async def list_active_reservations(self, garage_id: int, window: TimeWindow) -> List[Reservation]:
        # Yield to the loop so concurrent callers interleave like they would on a real store
        await asyncio.sleep(0)
        return [
            r for r in self.store.reservations.values()
            if r.garage_id == garage_id and r.is_active and r.window.overlaps(window)
        ]


class InMemoryReservationRepository(ReservationRepository):
    def __init__(self, store: MemoryStore):
        self.store = store

    async def save(self, reservation: Reservation) -> Reservation:
        await asyncio.sleep(0)
        if reservation.id in self.store.reservations:
            raise PersistenceError(f"Reservation {reservation.id} already exists")
        self.store.reservations[reservation.id] = reservation
        return reservation

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> Optional[Reservation]:
        current = self.store.reservations.get(reservation_id)
        if current is None:
            return None
        updated = current.with_status(ReservationStatus(status))
        self.store.reservations[reservation_id] = updated
        return updated

    async def get_by_id(self, reservation_id: str) -> Optional[Reservation]:
        return self.store.reservations.get(reservation_id)

    async def list_for_user(self, user_id: int) -> List[Reservation]:
        mine = [r for r in self.store.reservations.values() if r.user_id == user_id]
        return sorted(mine, key=lambda r: (r.created_at, r.id), reverse=True)
