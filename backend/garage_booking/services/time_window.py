"""
Reservation time windows.

A window is the half-open interval [start, end) during which a reservation
holds a space. Half-open means back-to-back bookings (10:00-12:00 followed by
12:00-14:00) never compete for the same space.

Two levels of validation:
  - Every TimeWindow satisfies start < end, whoever builds it.
  - TimeWindow.create() also applies the WindowPolicy (minimum and maximum
    duration, and no start in the past beyond a grace period). Requests
    coming from customers always go through create().
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from garage_booking.core.config import Settings


class InvalidWindow(ValueError):
    """Raised when a requested window fails validation. User-correctable."""


def as_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class WindowPolicy:
    min_duration: timedelta = timedelta(minutes=1)
    max_duration: timedelta = timedelta(hours=168)
    grace_period: timedelta = timedelta(minutes=5)

    @classmethod
    def from_settings(cls, settings: Settings) -> "WindowPolicy":
        return cls(
            min_duration=timedelta(minutes=settings.RESERVATION_MIN_MINUTES),
            max_duration=timedelta(hours=settings.RESERVATION_MAX_HOURS),
            grace_period=timedelta(minutes=settings.RESERVATION_GRACE_MINUTES),
        )


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def __post_init__(self):
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))
        if self.start >= self.end:
            raise InvalidWindow(
                f"Window start {self.start.isoformat()} must be before end {self.end.isoformat()}"
            )

    @classmethod
    def create(
        cls,
        start: datetime,
        end: datetime,
        *,
        now: datetime,
        policy: WindowPolicy = WindowPolicy(),
    ) -> "TimeWindow":
        """Build a window for a new booking, enforcing the booking policy."""
        window = cls(start, end)
        duration = window.duration

        if duration < policy.min_duration:
            raise InvalidWindow(
                f"Reservations must last at least {_describe(policy.min_duration)}"
            )
        if duration > policy.max_duration:
            raise InvalidWindow(
                f"Reservations cannot exceed {_describe(policy.max_duration)}"
            )
        if window.start < as_utc(now) - policy.grace_period:
            raise InvalidWindow("Start time cannot be in the past")
        return window

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def duration_hours(self) -> float:
        """Fractional hours, unrounded. Billing uses the exact value."""
        return self.duration / timedelta(hours=1)

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= as_utc(instant) < self.end

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"


def _describe(delta: timedelta) -> str:
    minutes = int(delta.total_seconds() // 60)
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{minutes} minute{'s' if minutes != 1 else ''}"
