"""
Tests for the SQLAlchemy repositories against a throwaway SQLite database.
"""

from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from garage_booking.db.base import Base
from garage_booking.db.session import build_engine, build_sessionmaker
from garage_booking.infrastructure.sql_store import (
    SqlGarageRepository,
    SqlReservationRepository,
    parse_amenities,
)
from garage_booking.models.garage import Garage as GarageRow
from garage_booking.services.availability_ledger import AvailabilityLedger
from garage_booking.services.domain import Reservation, ReservationStatus
from garage_booking.services.errors import PersistenceError, ReservationErrorKind
from garage_booking.services.interfaces.local_admission import LocalAdmissionLock
from garage_booking.services.reservation_service import ReservationService
from garage_booking.services.time_window import TimeWindow
from tests.conftest import NOW, at


@pytest_asyncio.fixture(scope="function")
async def sessionmaker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables in a fresh SQLite file, seed two garages, drop afterwards."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'garages.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = build_sessionmaker(engine)
    async with factory() as session:
        session.add_all([
            GarageRow(
                id=1,
                name="City Centre",
                address="1 Market Street",
                latitude=51.5074,
                longitude=-0.1278,
                total_spaces=2,
                price_per_hour=Decimal("4.00"),
                rating=4.6,
                amenities="CCTV, EV Charging",
            ),
            GarageRow(id=2, name="Riverside", total_spaces=5, price_per_hour=Decimal("2.50"), rating=3.9),
        ])
        await session.commit()

    yield factory

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def sql_service(sessionmaker, clock) -> ReservationService:
    garages = SqlGarageRepository(sessionmaker)
    return ReservationService(
        garages=garages,
        reservations=SqlReservationRepository(sessionmaker),
        ledger=AvailabilityLedger(garages, LocalAdmissionLock(), wait_seconds=1.0),
        clock=clock,
    )


def test_parse_amenities():
    assert parse_amenities("CCTV, EV Charging,,") == frozenset({"CCTV", "EV Charging"})
    assert parse_amenities(None) == frozenset()


@pytest.mark.asyncio
async def test_garage_mapping(sessionmaker):
    garage = await SqlGarageRepository(sessionmaker).get_by_id(1)

    assert garage.total_spaces == 2
    assert garage.price_per_hour == Decimal("4.00")
    assert garage.location.has_coordinates
    assert garage.amenities == frozenset({"CCTV", "EV Charging"})
    assert await SqlGarageRepository(sessionmaker).get_by_id(99) is None


@pytest.mark.asyncio
async def test_list_garages_ordered_by_id(sessionmaker):
    garages = await SqlGarageRepository(sessionmaker).list_garages()
    assert [g.id for g in garages] == [1, 2]
    assert not garages[1].location.has_coordinates


@pytest.mark.asyncio
async def test_reservation_round_trip(sessionmaker):
    repo = SqlReservationRepository(sessionmaker)
    reservation = Reservation.new(
        user_id=42,
        garage_id=1,
        window=TimeWindow(at(9), at(11)),
        price=Decimal("8.00"),
        created_at=NOW,
    )
    await repo.save(reservation)

    loaded = await repo.get_by_id(reservation.id)
    assert loaded.window == reservation.window
    assert loaded.price == Decimal("8.00")
    assert loaded.status == ReservationStatus.ACTIVE
    assert loaded.window.start.tzinfo is not None


@pytest.mark.asyncio
async def test_duplicate_id_is_persistence_error(sessionmaker):
    repo = SqlReservationRepository(sessionmaker)
    reservation = Reservation.new(42, 1, TimeWindow(at(9), at(11)), Decimal("8.00"), NOW)
    await repo.save(reservation)

    with pytest.raises(PersistenceError):
        await repo.save(reservation)


@pytest.mark.asyncio
async def test_overlap_query(sessionmaker):
    repo = SqlReservationRepository(sessionmaker)
    for start, end in [(at(8), at(10)), (at(9), at(11)), (at(12), at(13))]:
        await repo.save(Reservation.new(1, 1, TimeWindow(start, end), Decimal("1.00"), NOW))

    active = await SqlGarageRepository(sessionmaker).list_active_reservations(1, TimeWindow(at(10), at(12)))
    assert [r.window.start for r in active] == [at(9)]


@pytest.mark.asyncio
async def test_update_status(sessionmaker):
    repo = SqlReservationRepository(sessionmaker)
    reservation = await repo.save(Reservation.new(1, 1, TimeWindow(at(9), at(11)), Decimal("8.00"), NOW))

    updated = await repo.update_status(reservation.id, ReservationStatus.CANCELLED)
    assert updated.status == ReservationStatus.CANCELLED
    assert await repo.update_status("missing", ReservationStatus.CANCELLED) is None

    active = await SqlGarageRepository(sessionmaker).list_active_reservations(1, TimeWindow(at(9), at(11)))
    assert active == []


@pytest.mark.asyncio
async def test_list_for_user_newest_first(sessionmaker):
    repo = SqlReservationRepository(sessionmaker)
    older = await repo.save(Reservation.new(5, 2, TimeWindow(at(9), at(10)), Decimal("2.50"), NOW))
    newer = await repo.save(
        Reservation.new(5, 2, TimeWindow(at(11), at(12)), Decimal("2.50"), NOW + timedelta(minutes=5))
    )

    assert [r.id for r in await repo.list_for_user(5)] == [newer.id, older.id]
    assert await repo.list_for_user(6) == []


@pytest.mark.asyncio
async def test_service_end_to_end_on_sql(sql_service):
    a = await sql_service.create(1, 1, at(9), at(11))
    b = await sql_service.create(2, 1, at(10), at(12))
    c = await sql_service.create(3, 1, at(10, 30), at(11, 30))

    assert a.price == Decimal("8.00")
    assert b.price == Decimal("8.00")
    assert c.kind == ReservationErrorKind.NO_CAPACITY

    assert await sql_service.cancel(a.id, acting_user_id=1) is None
    assert isinstance(await sql_service.create(3, 1, at(10, 30), at(11, 30)), Reservation)
