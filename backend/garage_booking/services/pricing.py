"""
Reservation pricing.

Price = exact duration x hourly rate, rounded to pence with ROUND_HALF_UP.
Everything is Decimal: a float detour would make 2.675 round to 2.67.
The price is computed server-side only; no request schema accepts one.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from garage_booking.services.time_window import TimeWindow

CENT = Decimal("0.01")
_MICROSECONDS_PER_HOUR = Decimal(3_600_000_000)


@dataclass(frozen=True)
class PriceQuote:
    duration_hours: Decimal
    hourly_rate: Decimal
    total: Decimal


class PricingPolicy:
    def price(self, window: TimeWindow, hourly_rate: Decimal) -> Decimal:
        rate = Decimal(hourly_rate)
        if rate < 0:
            raise ValueError(f"Hourly rate cannot be negative: {rate}")
        return (self.exact_hours(window) * rate).quantize(CENT, rounding=ROUND_HALF_UP)

    def quote(self, window: TimeWindow, hourly_rate: Decimal) -> PriceQuote:
        return PriceQuote(
            duration_hours=self.exact_hours(window).quantize(CENT, rounding=ROUND_HALF_UP),
            hourly_rate=Decimal(hourly_rate),
            total=self.price(window, hourly_rate),
        )

    @staticmethod
    def exact_hours(window: TimeWindow) -> Decimal:
        micros = window.duration // timedelta(microseconds=1)
        return Decimal(micros) / _MICROSECONDS_PER_HOUR
