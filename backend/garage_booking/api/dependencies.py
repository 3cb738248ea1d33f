"""
FastAPI dependencies: caller identity and the wired reservation service.

Authentication happens upstream; the gateway forwards the authenticated user
id and role as headers.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

from garage_booking.core.clock import SystemClock
from garage_booking.core.config import get_settings
from garage_booking.core.logging import get_logger
from garage_booking.db.session import get_sessionmaker
from garage_booking.infrastructure.authorization import RoleAuthorization
from garage_booking.infrastructure.memory_store import (
    InMemoryGarageRepository,
    InMemoryReservationRepository,
    MemoryStore,
    load_seed_garages,
)
from garage_booking.infrastructure.sql_store import SqlGarageRepository, SqlReservationRepository
from garage_booking.services.availability_ledger import AvailabilityLedger
from garage_booking.services.reservation_service import ReservationService
from garage_booking.services.strategy_factory import get_admission_lock
from garage_booking.services.time_window import WindowPolicy

logger = get_logger(__name__)

_service: Optional[ReservationService] = None


def build_reservation_service() -> ReservationService:
    settings = get_settings()
    backend = settings.STORAGE_BACKEND.lower()

    if backend == "sql":
        sessionmaker = get_sessionmaker()
        garages = SqlGarageRepository(sessionmaker)
        reservations = SqlReservationRepository(sessionmaker)
    elif backend == "memory":
        if settings.MEMORY_SEED_FILE:
            store = MemoryStore(garages=load_seed_garages(settings.MEMORY_SEED_FILE))
        else:
            logger.warning("memory_store_empty", message="Set MEMORY_SEED_FILE to load garages")
            store = MemoryStore()
        garages = InMemoryGarageRepository(store)
        reservations = InMemoryReservationRepository(store)
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r}")

    ledger = AvailabilityLedger(garages, get_admission_lock())
    return ReservationService(
        garages=garages,
        reservations=reservations,
        ledger=ledger,
        clock=SystemClock(),
        window_policy=WindowPolicy.from_settings(settings),
    )


def get_reservation_service() -> ReservationService:
    """Reservation service singleton."""
    global _service
    if _service is None:
        _service = build_reservation_service()
    return _service


def reset_reservation_service() -> None:
    global _service
    _service = None


def get_current_user_id(x_user_id: Optional[int] = Header(None)) -> int:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authenticated user",
        )
    return x_user_id


def get_optional_user_id(x_user_id: Optional[int] = Header(None)) -> Optional[int]:
    return x_user_id


def get_authorization(x_user_role: Optional[str] = Header(None)) -> RoleAuthorization:
    return RoleAuthorization(x_user_role)
