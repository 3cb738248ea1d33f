"""
SQLAlchemy-backed repositories.

Each call runs in its own short transaction. The availability query relies on
the ix_reservations_availability index:

  SELECT ... FROM reservations
  WHERE garage_id = :g AND status = 'active'
    AND start_time < :window_end AND end_time > :window_start

SQLAlchemy errors are wrapped in PersistenceError so the core can tell an
infrastructure fault from a programming error.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from garage_booking.core.logging import get_logger
from garage_booking.models.garage import Garage as GarageRow
from garage_booking.models.reservation import Reservation as ReservationRow
from garage_booking.services.domain import Garage, Location, Reservation, ReservationStatus
from garage_booking.services.errors import PersistenceError
from garage_booking.services.interfaces.repositories import GarageRepository, ReservationRepository
from garage_booking.services.time_window import TimeWindow, as_utc

logger = get_logger(__name__)


def parse_amenities(raw: Optional[str]) -> frozenset:
    if not raw:
        return frozenset()
    return frozenset(tag.strip() for tag in raw.split(",") if tag.strip())


def garage_from_row(row: GarageRow) -> Garage:
    return Garage(
        id=row.id,
        name=row.name,
        total_spaces=row.total_spaces,
        price_per_hour=Decimal(row.price_per_hour),
        rating=float(row.rating or 0.0),
        location=Location(address=row.address or "", latitude=row.latitude, longitude=row.longitude),
        amenities=parse_amenities(row.amenities),
    )


def reservation_from_row(row: ReservationRow) -> Reservation:
    # SQLite hands back naive datetimes; everything stored is UTC
    created_at: datetime = row.created_at
    return Reservation(
        id=row.id,
        user_id=row.user_id,
        garage_id=row.garage_id,
        window=TimeWindow(as_utc(row.start_time), as_utc(row.end_time)),
        price=Decimal(row.price).quantize(Decimal("0.01")),
        status=ReservationStatus(row.status),
        created_at=as_utc(created_at),
    )


class SqlGarageRepository(GarageRepository):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def get_by_id(self, garage_id: int) -> Optional[Garage]:
        try:
            async with self.sessionmaker() as session:
                row = await session.get(GarageRow, garage_id)
                return garage_from_row(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load garage {garage_id}", e) from e

    async def list_garages(self) -> List[Garage]:
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(select(GarageRow).order_by(GarageRow.id.asc()))
                return [garage_from_row(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to list garages", e) from e

    async def list_active_reservations(self, garage_id: int, window: TimeWindow) -> List[Reservation]:
        query = select(ReservationRow).where(
            ReservationRow.garage_id == garage_id,
            ReservationRow.status == ReservationStatus.ACTIVE.value,
            ReservationRow.start_time < window.end,
            ReservationRow.end_time > window.start,
        )
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(query)
                return [reservation_from_row(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load reservations for garage {garage_id}", e) from e


class SqlReservationRepository(ReservationRepository):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def save(self, reservation: Reservation) -> Reservation:
        row = ReservationRow(
            id=reservation.id,
            user_id=reservation.user_id,
            garage_id=reservation.garage_id,
            start_time=reservation.window.start,
            end_time=reservation.window.end,
            price=reservation.price,
            status=reservation.status.value,
            created_at=reservation.created_at,
            updated_at=reservation.created_at,
        )
        try:
            async with self.sessionmaker() as session:
                async with session.begin():
                    session.add(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save reservation {reservation.id}", e) from e
        logger.debug("reservation_row_inserted", reservation_id=reservation.id)
        return reservation

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> Optional[Reservation]:
        try:
            async with self.sessionmaker() as session:
                async with session.begin():
                    result = await session.execute(
                        update(ReservationRow)
                        .where(ReservationRow.id == reservation_id)
                        .values(status=ReservationStatus(status).value)
                    )
                    if result.rowcount == 0:
                        return None
                    row = await session.get(ReservationRow, reservation_id, populate_existing=True)
                    return reservation_from_row(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update reservation {reservation_id}", e) from e

    async def get_by_id(self, reservation_id: str) -> Optional[Reservation]:
        try:
            async with self.sessionmaker() as session:
                row = await session.get(ReservationRow, reservation_id)
                return reservation_from_row(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load reservation {reservation_id}", e) from e

    async def list_for_user(self, user_id: int) -> List[Reservation]:
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(
                    select(ReservationRow)
                    .where(ReservationRow.user_id == user_id)
                    .order_by(ReservationRow.created_at.desc(), ReservationRow.id.desc())
                )
                return [reservation_from_row(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list reservations for user {user_id}", e) from e
