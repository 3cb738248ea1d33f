"""
Authorization adapters.

Roles are asserted by the upstream gateway (X-User-Role header); the
reservation core only asks "may this user do this to that reservation?".
"""

from typing import FrozenSet, Optional

from garage_booking.services.domain import Reservation
from garage_booking.services.interfaces.repositories import AuthorizationCheck

ELEVATED_ROLES: FrozenSet[str] = frozenset({"manager", "admin"})


class RoleAuthorization(AuthorizationCheck):
    """Permits every action for elevated roles, nothing for anyone else."""

    def __init__(self, role: Optional[str], elevated_roles: FrozenSet[str] = ELEVATED_ROLES):
        self.role = (role or "").strip().lower()
        self.elevated_roles = elevated_roles

    async def is_permitted(self, acting_user_id: int, reservation: Reservation, action: str) -> bool:
        return self.role in self.elevated_roles
