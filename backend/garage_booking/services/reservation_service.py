"""
Reservation service: the entry point for creating, cancelling and querying
reservations, availability, price quotes and recommendations.

Create flow:
  1. Validate the window (TimeWindow.create with the injected clock)
  2. Look up the garage
  3. AvailabilityLedger.try_admit -> token holding the garage lease
  4. Price with the hourly rate read under the lease (snapshot, never recomputed)
  5. Persist as active
  6. Release the lease (always: success, storage failure, cancellation)

Step 6 is the compensating action. Admission and persistence can't be a
single transaction across the lock and the store, but because the lease is
the only thing admission reserves, giving it back is enough to guarantee no
capacity is held without a stored reservation.

Every public method returns a value or a ReservationError; none of the
expected outcomes is raised.
"""

import asyncio
from datetime import datetime
from typing import List, Optional, Union

from garage_booking.core.clock import Clock, SystemClock
from garage_booking.core.logging import get_logger
from garage_booking.core.metrics import (
    record_cancellation,
    record_reservation_attempt,
    recommendation_requests,
)
from garage_booking.services.availability_ledger import (
    AdmissionBusy,
    AvailabilityLedger,
    CapacityExceeded,
    LeaseUnavailable,
)
from garage_booking.services.domain import (
    Reservation,
    ReservationStatus,
    is_valid_transition,
)
from garage_booking.services.errors import (
    GarageNotFound,
    PersistenceError,
    ReservationError,
    ReservationErrorKind,
)
from garage_booking.services.interfaces.repositories import (
    AuthorizationCheck,
    GarageRepository,
    ReservationRepository,
)
from garage_booking.services.pricing import PriceQuote, PricingPolicy
from garage_booking.services.recommendation_scorer import (
    RankedGarages,
    ScoringWeights,
    UserPreferences,
    has_usable_weight,
    rank,
)
from garage_booking.services.time_window import InvalidWindow, TimeWindow, WindowPolicy

logger = get_logger(__name__)

CANCEL_ACTION = "cancel"


def _error(kind: ReservationErrorKind, message: str) -> ReservationError:
    return ReservationError(kind=kind, message=message)


class ReservationService:
    def __init__(
        self,
        garages: GarageRepository,
        reservations: ReservationRepository,
        ledger: AvailabilityLedger,
        pricing: Optional[PricingPolicy] = None,
        clock: Optional[Clock] = None,
        window_policy: Optional[WindowPolicy] = None,
        authorization: Optional[AuthorizationCheck] = None,
    ):
        self.garages = garages
        self.reservations = reservations
        self.ledger = ledger
        self.pricing = pricing or PricingPolicy()
        self.clock = clock or SystemClock()
        self.window_policy = window_policy or WindowPolicy()
        self.authorization = authorization

    def make_window(self, start: datetime, end: datetime) -> Union[TimeWindow, ReservationError]:
        try:
            return TimeWindow.create(start, end, now=self.clock.now(), policy=self.window_policy)
        except InvalidWindow as e:
            return _error(ReservationErrorKind.INVALID_WINDOW, str(e))

    async def create(
        self,
        user_id: int,
        garage_id: int,
        start: datetime,
        end: datetime,
    ) -> Union[Reservation, ReservationError]:
        """Book one space in a garage for [start, end)."""
        window = self.make_window(start, end)
        if isinstance(window, ReservationError):
            record_reservation_attempt("invalid_window")
            logger.info("reservation_rejected", reason="invalid_window", user_id=user_id, garage_id=garage_id, detail=window.message)
            return window

        try:
            garage = await self.garages.get_by_id(garage_id)
            if garage is None:
                record_reservation_attempt("garage_not_found")
                return _error(ReservationErrorKind.GARAGE_NOT_FOUND, f"Garage {garage_id} not found")
            admission = await self.ledger.try_admit(garage_id, window)
        except GarageNotFound as e:
            # Garage removed between lookup and admission
            record_reservation_attempt("garage_not_found")
            return _error(ReservationErrorKind.GARAGE_NOT_FOUND, str(e))
        except PersistenceError as e:
            record_reservation_attempt("persistence_failure")
            logger.error("admission_lookup_failed", garage_id=garage_id, error=str(e))
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Availability could not be checked, please retry")

        if isinstance(admission, CapacityExceeded):
            record_reservation_attempt("no_capacity")
            logger.info("reservation_rejected", reason="no_capacity", user_id=user_id, garage_id=garage_id, window=str(window))
            return _error(ReservationErrorKind.NO_CAPACITY, "Garage is fully booked for the requested time")
        if isinstance(admission, AdmissionBusy):
            record_reservation_attempt("busy")
            return _error(ReservationErrorKind.BUSY, "Garage is handling other bookings, please retry")

        try:
            price = self.pricing.price(window, admission.garage.price_per_hour)
            reservation = Reservation.new(
                user_id=user_id,
                garage_id=garage_id,
                window=window,
                price=price,
                created_at=self.clock.now(),
            )
            saved = await self.reservations.save(reservation)
        except PersistenceError as e:
            record_reservation_attempt("persistence_failure")
            logger.error(
                "reservation_persist_failed",
                user_id=user_id,
                garage_id=garage_id,
                window=str(window),
                error=str(e),
            )
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Reservation could not be saved, please retry")
        finally:
            # Runs on success, storage failure, and task cancellation alike
            await self.ledger.release(admission)

        record_reservation_attempt("created")
        logger.info(
            "reservation_created",
            reservation_id=saved.id,
            user_id=user_id,
            garage_id=garage_id,
            window=str(window),
            price=str(saved.price),
            free_slots_before=admission.free_slots_before,
        )
        return saved

    async def cancel(
        self,
        reservation_id: str,
        acting_user_id: int,
        authorization: Optional[AuthorizationCheck] = None,
    ) -> Optional[ReservationError]:
        """
        Cancel an active reservation. Owners may always cancel; anyone else
        needs the authorization check to agree. Returns None on success.
        """
        try:
            reservation = await self.reservations.get_by_id(reservation_id)
        except PersistenceError as e:
            record_cancellation("persistence_failure")
            logger.error("reservation_lookup_failed", reservation_id=reservation_id, error=str(e))
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Reservation could not be loaded, please retry")

        if reservation is None:
            record_cancellation("not_found")
            return _error(ReservationErrorKind.RESERVATION_NOT_FOUND, "Reservation not found")

        if reservation.user_id != acting_user_id:
            check = authorization or self.authorization
            permitted = check is not None and await check.is_permitted(acting_user_id, reservation, CANCEL_ACTION)
            if not permitted:
                record_cancellation("denied")
                logger.warning(
                    "cancellation_denied",
                    reservation_id=reservation_id,
                    acting_user_id=acting_user_id,
                    owner_id=reservation.user_id,
                )
                return _error(ReservationErrorKind.AUTHORIZATION_DENIED, "Not allowed to cancel this reservation")

        if not is_valid_transition(reservation.status, ReservationStatus.CANCELLED):
            record_cancellation("invalid_status")
            return _error(
                ReservationErrorKind.INVALID_STATUS_TRANSITION,
                f"Reservation is already {reservation.status.value}",
            )

        try:
            async with self.ledger.exclusive(reservation.garage_id):
                # Re-read under the lease: a concurrent cancel may have won
                current = await self.reservations.get_by_id(reservation_id)
                if current is None:
                    record_cancellation("not_found")
                    return _error(ReservationErrorKind.RESERVATION_NOT_FOUND, "Reservation not found")
                if not is_valid_transition(current.status, ReservationStatus.CANCELLED):
                    record_cancellation("invalid_status")
                    return _error(
                        ReservationErrorKind.INVALID_STATUS_TRANSITION,
                        f"Reservation is already {current.status.value}",
                    )
                updated = await self.reservations.update_status(reservation_id, ReservationStatus.CANCELLED)
                if updated is None:
                    # Row removed between the re-read and the update
                    record_cancellation("not_found")
                    return _error(ReservationErrorKind.RESERVATION_NOT_FOUND, "Reservation not found")
        except LeaseUnavailable:
            record_cancellation("busy")
            return _error(ReservationErrorKind.BUSY, "Garage is handling other bookings, please retry")
        except PersistenceError as e:
            record_cancellation("persistence_failure")
            logger.error("reservation_cancel_failed", reservation_id=reservation_id, error=str(e))
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Reservation could not be cancelled, please retry")

        record_cancellation("cancelled")
        logger.info(
            "reservation_cancelled",
            reservation_id=reservation_id,
            acting_user_id=acting_user_id,
            garage_id=reservation.garage_id,
            capacity_released=1,
        )
        return None

    async def update_status(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
    ) -> Union[Reservation, ReservationError]:
        """Apply an external lifecycle event (completion, refund...)."""
        try:
            reservation = await self.reservations.get_by_id(reservation_id)
            if reservation is None:
                return _error(ReservationErrorKind.RESERVATION_NOT_FOUND, "Reservation not found")
            if not is_valid_transition(reservation.status, new_status):
                return _error(
                    ReservationErrorKind.INVALID_STATUS_TRANSITION,
                    f"Cannot move reservation from {reservation.status.value} to {ReservationStatus(new_status).value}",
                )
            updated = await self.reservations.update_status(reservation_id, new_status)
        except PersistenceError as e:
            logger.error("reservation_status_update_failed", reservation_id=reservation_id, error=str(e))
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Reservation status could not be updated")

        if updated is None:
            return _error(ReservationErrorKind.RESERVATION_NOT_FOUND, "Reservation not found")

        logger.info(
            "reservation_status_changed",
            reservation_id=reservation_id,
            old_status=reservation.status.value,
            new_status=updated.status.value,
        )
        return updated

    async def get_reservation(self, reservation_id: str) -> Union[Reservation, ReservationError]:
        try:
            reservation = await self.reservations.get_by_id(reservation_id)
        except PersistenceError:
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Reservation could not be loaded")
        if reservation is None:
            return _error(ReservationErrorKind.RESERVATION_NOT_FOUND, "Reservation not found")
        return reservation

    async def list_user_reservations(self, user_id: int) -> Union[List[Reservation], ReservationError]:
        try:
            return await self.reservations.list_for_user(user_id)
        except PersistenceError:
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Reservations could not be loaded")

    async def get_availability(self, garage_id: int, start: datetime, end: datetime) -> Union[int, ReservationError]:
        """Free spaces for the window. Availability queries may look at past windows."""
        try:
            window = TimeWindow(start, end)
        except InvalidWindow as e:
            return _error(ReservationErrorKind.INVALID_WINDOW, str(e))
        try:
            return await self.ledger.free_slots(garage_id, window)
        except GarageNotFound as e:
            return _error(ReservationErrorKind.GARAGE_NOT_FOUND, str(e))
        except PersistenceError:
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Availability could not be computed")

    async def quote(self, garage_id: int, start: datetime, end: datetime) -> Union[PriceQuote, ReservationError]:
        """Price a prospective booking at the garage's current rate."""
        window = self.make_window(start, end)
        if isinstance(window, ReservationError):
            return window
        try:
            garage = await self.garages.get_by_id(garage_id)
        except PersistenceError:
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Garage could not be loaded")
        if garage is None:
            return _error(ReservationErrorKind.GARAGE_NOT_FOUND, f"Garage {garage_id} not found")
        return self.pricing.quote(window, garage.price_per_hour)

    async def rank_garages(
        self,
        user_id: Optional[int],
        start: datetime,
        end: datetime,
        weights: Optional[ScoringWeights] = None,
        preferences: Optional[UserPreferences] = None,
    ) -> Union[RankedGarages, ReservationError]:
        """Rank all garages for the user and the window they want to park in."""
        try:
            window = TimeWindow(start, end)
        except InvalidWindow as e:
            return _error(ReservationErrorKind.INVALID_WINDOW, str(e))

        try:
            garages = await self.garages.list_garages()
            history = await self.reservations.list_for_user(user_id) if user_id is not None else []
            counts = await asyncio.gather(*(self._free_slots_or_zero(g.id, window) for g in garages))
        except PersistenceError:
            return _error(ReservationErrorKind.PERSISTENCE_FAILURE, "Recommendations could not be computed")

        recommendation_requests.inc()
        free_slots = {garage.id: free for garage, free in zip(garages, counts)}
        if weights is not None and not has_usable_weight(weights, preferences or UserPreferences()):
            logger.info("ranking_weights_fallback", user_id=user_id, requested=weights.model_dump())
        logger.debug("garages_ranked", user_id=user_id, candidates=len(garages), history=len(history))
        return rank(
            user_id,
            garages,
            history,
            weights,
            free_slots=free_slots,
            preferences=preferences,
        )

    async def _free_slots_or_zero(self, garage_id: int, window: TimeWindow) -> int:
        try:
            return await self.ledger.free_slots(garage_id, window)
        except GarageNotFound:
            return 0
