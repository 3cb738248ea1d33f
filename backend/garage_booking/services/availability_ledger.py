"""
Availability ledger: free-slot queries and admission control per garage.

CONCURRENCY STRATEGY: Per-garage lease held across check-and-persist
=====================================================================

Problem:
  Two customers ask for the last space in a garage for overlapping windows.
  Both count the overlapping active reservations, both see one free space,
  both insert. Result: overbooking.

Solution:
  try_admit() takes the garage's admission lease (AdmissionLock) before
  counting, and hands it to the caller inside the AdmissionToken. The caller
  persists the reservation and only then releases the token. Any other
  admission for the same garage waits on the lease, so it counts the new
  reservation once it gets its turn.

  - Serialization is per garage; other garages proceed independently.
  - Waiting is bounded (ADMISSION_WAIT_SECONDS); a garage that stays locked
    yields AdmissionBusy, which callers may retry.
  - The store stays the single source of truth. The lease reserves nothing by
    itself, so releasing it is the whole compensating action when persistence
    fails or the request is cancelled.

Availability rule:
  free = total_spaces - count(active reservations overlapping the window)

  The count is deliberately conservative: two short reservations at 09:00 and
  11:00 both overlap a 09:00-12:00 request even though they never coexist.
  The peak simultaneous occupancy is computed as well, purely as an
  invariant check: a peak above total_spaces means two admissions got past
  each other, which is a concurrency bug and is logged as such.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Union

from garage_booking.core.config import get_settings
from garage_booking.core.logging import get_logger
from garage_booking.core.metrics import (
    admission_latency,
    admission_release_failures,
    capacity_invariant_violations,
    record_admission,
)
from garage_booking.services.domain import Garage, Reservation
from garage_booking.services.errors import GarageNotFound
from garage_booking.services.interfaces.admission import AdmissionLease, AdmissionLock
from garage_booking.services.interfaces.repositories import GarageRepository
from garage_booking.services.time_window import TimeWindow

logger = get_logger(__name__)

RELEASE_BACKOFF_SECONDS = 0.05


@dataclass
class AdmissionToken:
    """
    A granted admission. Holds the garage lease until released.

    `garage` is the garage as read under the lease; its hourly rate is the
    one the reservation is priced at.
    """

    garage: Garage
    window: TimeWindow
    free_slots_before: int
    lease: AdmissionLease = field(repr=False)
    released: bool = False

    @property
    def garage_id(self) -> int:
        return self.garage.id


@dataclass(frozen=True)
class CapacityExceeded:
    garage_id: int
    window: TimeWindow
    free_slots: int = 0


@dataclass(frozen=True)
class AdmissionBusy:
    garage_id: int
    waited_seconds: float


AdmissionResult = Union[AdmissionToken, CapacityExceeded, AdmissionBusy]


class LeaseUnavailable(Exception):
    """Raised by exclusive() when the garage lease can't be obtained in time."""

    def __init__(self, garage_id: int, waited_seconds: float):
        super().__init__(f"Garage {garage_id} is busy")
        self.garage_id = garage_id
        self.waited_seconds = waited_seconds


def peak_occupancy(reservations: List[Reservation], window: TimeWindow) -> int:
    """Maximum number of reservations simultaneously active inside `window`."""
    edges = []
    for reservation in reservations:
        start = max(reservation.window.start, window.start)
        end = min(reservation.window.end, window.end)
        if start < end:
            edges.append((start, 1))
            edges.append((end, -1))
    # Ends sort before starts at the same instant: windows are half-open
    edges.sort(key=lambda edge: (edge[0], edge[1]))

    current = peak = 0
    for _, delta in edges:
        current += delta
        peak = max(peak, current)
    return peak


class AvailabilityLedger:
    def __init__(
        self,
        garages: GarageRepository,
        lock: AdmissionLock,
        wait_seconds: Optional[float] = None,
        release_retries: Optional[int] = None,
    ):
        settings = get_settings()
        self.garages = garages
        self.lock = lock
        self.wait_seconds = settings.ADMISSION_WAIT_SECONDS if wait_seconds is None else wait_seconds
        retries = settings.ADMISSION_RELEASE_RETRIES if release_retries is None else release_retries
        self.release_retries = max(1, retries)

    async def free_slots(self, garage_id: int, window: TimeWindow) -> int:
        """Free spaces in the garage for the whole of `window`. Never negative."""
        garage = await self._get_garage(garage_id)
        return await self._free_slots_for(garage, window)

    async def try_admit(self, garage_id: int, window: TimeWindow) -> AdmissionResult:
        """
        Admit one booking for `window` if a space is free.

        Returns:
            AdmissionToken holding the garage lease (caller must release it)
            CapacityExceeded when the garage is full for the window
            AdmissionBusy when the lease wasn't obtained within the wait budget
        Raises:
            GarageNotFound
        """
        started = time.perf_counter()
        lease = await self.lock.acquire(garage_id, timeout=self.wait_seconds)
        if lease is None:
            waited = round(time.perf_counter() - started, 3)
            record_admission("busy")
            logger.warning("admission_busy", garage_id=garage_id, waited_seconds=waited)
            return AdmissionBusy(garage_id=garage_id, waited_seconds=waited)

        try:
            garage = await self._get_garage(garage_id)
            free = await self._free_slots_for(garage, window)
        except BaseException:
            await self._release_lease(lease)
            raise

        admission_latency.observe(time.perf_counter() - started)

        if free < 1:
            await self._release_lease(lease)
            record_admission("rejected")
            logger.info("admission_rejected", garage_id=garage_id, window=str(window))
            return CapacityExceeded(garage_id=garage_id, window=window, free_slots=free)

        record_admission("admitted")
        logger.debug("admission_granted", garage_id=garage_id, free_slots=free, window=str(window))
        return AdmissionToken(garage=garage, window=window, free_slots_before=free, lease=lease)

    async def release(self, token: AdmissionToken) -> None:
        """Give the lease back. Safe to call more than once."""
        if token.released:
            return
        token.released = True
        await self._release_lease(token.lease)

    @asynccontextmanager
    async def exclusive(self, garage_id: int) -> AsyncIterator[AdmissionLease]:
        """
        Hold the garage lease for the body of the block.
        Used for changes that free capacity, so admissions never see them half-done.
        """
        started = time.perf_counter()
        lease = await self.lock.acquire(garage_id, timeout=self.wait_seconds)
        if lease is None:
            raise LeaseUnavailable(garage_id, round(time.perf_counter() - started, 3))
        try:
            yield lease
        finally:
            await self._release_lease(lease)

    async def _get_garage(self, garage_id: int) -> Garage:
        garage = await self.garages.get_by_id(garage_id)
        if garage is None:
            raise GarageNotFound(garage_id)
        return garage

    async def _free_slots_for(self, garage: Garage, window: TimeWindow) -> int:
        active = await self.garages.list_active_reservations(garage.id, window)
        overlapping = [r for r in active if r.is_active and r.window.overlaps(window)]

        peak = peak_occupancy(overlapping, window)
        if peak > garage.total_spaces:
            capacity_invariant_violations.inc()
            logger.error(
                "capacity_invariant_violated",
                garage_id=garage.id,
                total_spaces=garage.total_spaces,
                peak_occupancy=peak,
                window=str(window),
                reservation_ids=[r.id for r in overlapping],
            )

        return max(garage.total_spaces - len(overlapping), 0)

    async def _release_lease(self, lease: AdmissionLease) -> None:
        """
        Release with bounded retries. A lease that can't be released blocks the
        garage until its TTL runs out, so exhausting the retries is escalated.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.release_retries + 1):
            try:
                await self.lock.release(lease)
                return
            except Exception as e:
                last_error = e
                logger.warning(
                    "admission_release_retry",
                    garage_id=lease.garage_id,
                    attempt=attempt,
                    error=str(e),
                )
                if attempt < self.release_retries:
                    await asyncio.sleep(RELEASE_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        admission_release_failures.inc()
        logger.critical(
            "admission_release_failed",
            garage_id=lease.garage_id,
            attempts=self.release_retries,
            held_seconds=round(time.monotonic() - lease.acquired_at, 3),
            error=str(last_error),
        )
