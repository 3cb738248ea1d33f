"""
Tests for admission lock implementations and the strategy factory.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockNotOwnedError

from garage_booking.core.config import get_settings
from garage_booking.services import strategy_factory
from garage_booking.services.admission_service import RedisAdmissionLock
from garage_booking.services.interfaces.admission import AdmissionLease
from garage_booking.services.interfaces.local_admission import LocalAdmissionLock


@pytest.fixture
def reset_lock():
    strategy_factory.reset_admission_lock()
    yield
    strategy_factory.reset_admission_lock()


def redis_client_with(lock):
    client = MagicMock()
    client.lock.return_value = lock
    return client


@pytest.mark.asyncio
async def test_local_lock_serializes_per_garage():
    lock = LocalAdmissionLock()
    lease = await lock.acquire(1, timeout=0.1)
    assert lease is not None
    assert lock.is_locked(1)

    assert await lock.acquire(1, timeout=0.05) is None
    other = await lock.acquire(2, timeout=0.05)
    assert other is not None

    await lock.release(lease)
    await lock.release(other)
    assert not lock.is_locked(1)


@pytest.mark.asyncio
async def test_local_lock_waiter_gets_lease_after_release():
    lock = LocalAdmissionLock()
    lease = await lock.acquire(1, timeout=0.1)

    waiter = asyncio.create_task(lock.acquire(1, timeout=1.0))
    await asyncio.sleep(0.01)
    await lock.release(lease)

    second = await waiter
    assert second is not None
    await lock.release(second)


@pytest.mark.asyncio
async def test_redis_lock_acquire_and_release():
    redis_lock = MagicMock()
    redis_lock.acquire = AsyncMock(return_value=True)
    redis_lock.release = AsyncMock()
    client = redis_client_with(redis_lock)

    lock = RedisAdmissionLock(client=client, lease_seconds=5.0)
    lease = await lock.acquire(7, timeout=0.5)

    client.lock.assert_called_once_with(
        "admission:garage:7", timeout=5.0, blocking=True, blocking_timeout=0.5
    )
    assert lease.garage_id == 7

    await lock.release(lease)
    redis_lock.release.assert_awaited_once()


@pytest.mark.asyncio
async def test_redis_lock_timeout_is_busy():
    redis_lock = MagicMock()
    redis_lock.acquire = AsyncMock(return_value=False)

    lock = RedisAdmissionLock(client=redis_client_with(redis_lock), lease_seconds=5.0)
    assert await lock.acquire(7, timeout=0.1) is None


@pytest.mark.asyncio
async def test_redis_failure_fails_closed():
    redis_lock = MagicMock()
    redis_lock.acquire = AsyncMock(side_effect=RedisConnectionError("connection refused"))

    lock = RedisAdmissionLock(client=redis_client_with(redis_lock), lease_seconds=5.0)
    assert await lock.acquire(7, timeout=0.1) is None


@pytest.mark.asyncio
async def test_redis_expired_lease_is_logged_not_raised():
    handle = MagicMock()
    handle.release = AsyncMock(side_effect=LockNotOwnedError("lock expired"))

    lock = RedisAdmissionLock(client=MagicMock(), lease_seconds=5.0)
    await lock.release(AdmissionLease(garage_id=7, handle=handle))


@pytest.mark.asyncio
async def test_redis_release_transport_error_propagates():
    handle = MagicMock()
    handle.release = AsyncMock(side_effect=RedisConnectionError("connection reset"))

    lock = RedisAdmissionLock(client=MagicMock(), lease_seconds=5.0)
    with pytest.raises(RedisConnectionError):
        await lock.release(AdmissionLease(garage_id=7, handle=handle))


def test_factory_defaults_to_local(reset_lock):
    assert get_settings().ADMISSION_STRATEGY == "local"
    assert isinstance(strategy_factory.get_admission_lock(), LocalAdmissionLock)
    assert strategy_factory.get_admission_lock() is strategy_factory.get_admission_lock()


def test_factory_builds_redis_lock(reset_lock, monkeypatch):
    monkeypatch.setattr(get_settings(), "ADMISSION_STRATEGY", "redis")
    assert isinstance(strategy_factory.get_admission_lock_strategy(), RedisAdmissionLock)


def test_factory_rejects_unknown_strategy(reset_lock, monkeypatch):
    monkeypatch.setattr(get_settings(), "ADMISSION_STRATEGY", "zookeeper")
    with pytest.raises(ValueError):
        strategy_factory.get_admission_lock_strategy()
