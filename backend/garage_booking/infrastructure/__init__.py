"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import get_redis, close_redis, get_redis_status
from .memory_store import MemoryStore, InMemoryGarageRepository, InMemoryReservationRepository
from .authorization import RoleAuthorization

__all__ = [
    'get_redis', 'close_redis', 'get_redis_status',
    'MemoryStore', 'InMemoryGarageRepository', 'InMemoryReservationRepository',
    'RoleAuthorization',
]
