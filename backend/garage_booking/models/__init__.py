from garage_booking.models.garage import Garage
from garage_booking.models.reservation import Reservation

__all__ = ["Garage", "Reservation"]
