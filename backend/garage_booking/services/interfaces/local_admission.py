"""
In-process admission lock - one asyncio.Lock per garage.
"""

import asyncio
from typing import Dict, Optional

from garage_booking.services.interfaces.admission import AdmissionLease, AdmissionLock


class LocalAdmissionLock(AdmissionLock):
    """
    Serializes admissions per garage inside a single event loop.

    Use when:
    - One API worker process
    - Tests and local development
    Multiple workers need RedisAdmissionLock instead.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, garage_id: int) -> asyncio.Lock:
        lock = self._locks.get(garage_id)
        if lock is None:
            lock = self._locks[garage_id] = asyncio.Lock()
        return lock

    async def acquire(self, garage_id: int, timeout: float) -> Optional[AdmissionLease]:
        lock = self._lock_for(garage_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        return AdmissionLease(garage_id=garage_id, handle=lock)

    async def release(self, lease: AdmissionLease) -> None:
        lease.handle.release()

    def is_locked(self, garage_id: int) -> bool:
        lock = self._locks.get(garage_id)
        return lock is not None and lock.locked()
