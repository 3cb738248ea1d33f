"""
Admission lock factory.
Configures which admission lock implementation to use.
"""

from typing import Optional

from garage_booking.core.config import get_settings
from garage_booking.services.interfaces.admission import AdmissionLock
from garage_booking.services.interfaces.local_admission import LocalAdmissionLock
from garage_booking.services.admission_service import RedisAdmissionLock


def get_admission_lock_strategy() -> AdmissionLock:
    """
    Build the configured admission lock.

    - local: LocalAdmissionLock (single worker, default)
    - redis: RedisAdmissionLock (multiple workers)

    Selected via the ADMISSION_STRATEGY env var.
    """
    strategy = get_settings().ADMISSION_STRATEGY.lower()

    if strategy == "redis":
        return RedisAdmissionLock()
    if strategy == "local":
        return LocalAdmissionLock()
    raise ValueError(f"Unknown ADMISSION_STRATEGY: {strategy!r}")


# Singleton instance
_lock: Optional[AdmissionLock] = None


def get_admission_lock() -> AdmissionLock:
    """Get admission lock singleton."""
    global _lock
    if _lock is None:
        _lock = get_admission_lock_strategy()
    return _lock


def reset_admission_lock() -> None:
    global _lock
    _lock = None
