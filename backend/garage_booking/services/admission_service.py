"""
Distributed admission lock backed by Redis.
Implements AdmissionLock so several API workers share one view of each garage.

Lock semantics:
  SET admission:garage:{id} <token> NX PX <lease>  (redis-py Lock)
  The lease TTL bounds how long a crashed worker can block a garage.
  Leases are held only for check-and-persist, well under the TTL.

Circuit breaker:
  On Redis failure we fail CLOSED: the request is reported Busy (retryable)
  rather than admitted unchecked. Without the lock the database has no way to
  stop two workers from filling the same last space.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import LockError, LockNotOwnedError

from garage_booking.core.config import get_settings
from garage_booking.core.logging import get_logger
from garage_booking.core.metrics import redis_connection_errors, redis_circuit_breaker_open
from garage_booking.infrastructure.redis_client import get_redis
from garage_booking.services.interfaces.admission import AdmissionLease, AdmissionLock

logger = get_logger(__name__)


class RedisAdmissionLock(AdmissionLock):
    """
    Redis-based admission lock.

    Use when:
    - More than one API worker process
    - Multiple hosts behind a load balancer
    """

    KEY_PREFIX = "admission:garage:"

    def __init__(self, client: Optional[redis.Redis] = None, lease_seconds: Optional[float] = None):
        self._client = client
        self.lease_seconds = lease_seconds or get_settings().ADMISSION_LEASE_SECONDS

    async def _get_client(self) -> Optional[redis.Redis]:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def acquire(self, garage_id: int, timeout: float) -> Optional[AdmissionLease]:
        client = await self._get_client()
        if client is None:
            redis_circuit_breaker_open.set(1)
            logger.error("admission_lock_unavailable", garage_id=garage_id, reason="redis_disabled_or_down")
            return None

        lock = client.lock(
            f"{self.KEY_PREFIX}{garage_id}",
            timeout=self.lease_seconds,
            blocking=True,
            blocking_timeout=timeout,
        )
        try:
            acquired = await lock.acquire()
        except redis.RedisError as e:
            redis_connection_errors.inc()
            redis_circuit_breaker_open.set(1)
            logger.error("admission_lock_error", garage_id=garage_id, error=str(e))
            return None

        redis_circuit_breaker_open.set(0)
        if not acquired:
            return None
        return AdmissionLease(garage_id=garage_id, handle=lock)

    async def release(self, lease: AdmissionLease) -> None:
        try:
            await lease.handle.release()
        except LockNotOwnedError:
            # The TTL expired while we held it; another worker may have admitted in between
            logger.error("admission_lease_expired", garage_id=lease.garage_id, lease_seconds=self.lease_seconds)
        except LockError as e:
            logger.error("admission_lease_release_error", garage_id=lease.garage_id, error=str(e))
        except redis.RedisError:
            redis_connection_errors.inc()
            raise
