"""
Collaborator interfaces consumed by the reservation core.
Storage and authorization live outside the core; these are the seams.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from garage_booking.services.domain import Garage, Reservation, ReservationStatus
from garage_booking.services.time_window import TimeWindow


class GarageRepository(ABC):
    """Read-only garage access. Garages are administered elsewhere."""

    @abstractmethod
    async def get_by_id(self, garage_id: int) -> Optional[Garage]:
        pass

    @abstractmethod
    async def list_garages(self) -> List[Garage]:
        """All bookable garages, ordered by id."""
        pass

    @abstractmethod
    async def list_active_reservations(self, garage_id: int, window: TimeWindow) -> List[Reservation]:
        """Active reservations of the garage whose window overlaps `window`."""
        pass


class ReservationRepository(ABC):
    """
    Reservation persistence.
    Infrastructure faults are raised as PersistenceError.
    """

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def update_status(self, reservation_id: str, status: ReservationStatus) -> Optional[Reservation]:
        """Returns the updated reservation, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def get_by_id(self, reservation_id: str) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: int) -> List[Reservation]:
        """A user's reservations, newest first."""
        pass


class AuthorizationCheck(ABC):
    """
    Decides whether a user other than the owner may act on a reservation.
    Role logic lives in the implementation, never in the core.
    """

    @abstractmethod
    async def is_permitted(self, acting_user_id: int, reservation: Reservation, action: str) -> bool:
        pass
