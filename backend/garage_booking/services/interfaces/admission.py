"""
Admission lock interface.
Allows swapping between different per-garage serialization mechanisms.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional
import time


@dataclass
class AdmissionLease:
    """Proof that the caller currently holds a garage's admission lock."""

    garage_id: int
    handle: Any = field(repr=False)
    acquired_at: float = field(default_factory=time.monotonic)


class AdmissionLock(ABC):
    """
    Interface for per-garage admission locks.

    Implementations:
    - LocalAdmissionLock: one asyncio.Lock per garage, single process
    - RedisAdmissionLock: distributed lock in Redis, safe across workers

    Two callers holding leases for the same garage at the same time is
    exactly the overbooking bug this layer exists to prevent. Different
    garages never contend.
    """

    @abstractmethod
    async def acquire(self, garage_id: int, timeout: float) -> Optional[AdmissionLease]:
        """
        Wait up to `timeout` seconds for the garage's lock.

        Returns:
            An AdmissionLease when acquired
            None when the wait budget ran out (caller reports Busy)
        """
        pass

    @abstractmethod
    async def release(self, lease: AdmissionLease) -> None:
        """
        Release a lease obtained from acquire().

        May raise on transport errors; the ledger retries those.
        """
        pass
