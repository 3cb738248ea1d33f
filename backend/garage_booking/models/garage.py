"""
Garage model: capacity, pricing and the attributes recommendations score on.

Key design decisions:
- Garages are administered outside the reservation core; it only reads them
- No denormalized free-space counter: availability depends on the window,
  so it is always derived from the reservations table
- Amenities stored as a comma-separated string, the format the admin side writes
"""

from sqlalchemy import Column, Integer, String, Numeric, Float, CheckConstraint
from sqlalchemy.orm import relationship

from garage_booking.db.base import Base, TimestampMixin


class Garage(Base, TimestampMixin):
    __tablename__ = "garages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=False, default="")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    total_spaces = Column(Integer, nullable=False)
    price_per_hour = Column(Numeric(10, 2), nullable=False)
    rating = Column(Float, nullable=False, default=0.0)
    amenities = Column(String(1000), nullable=False, default="")

    reservations = relationship("Reservation", back_populates="garage", lazy="noload")

    __table_args__ = (
        CheckConstraint("total_spaces > 0", name="check_garage_total_spaces_positive"),
        CheckConstraint("price_per_hour >= 0", name="check_garage_price_non_negative"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="check_garage_rating_range"),
    )

    def __repr__(self) -> str:
        return f"<Garage(id={self.id}, name={self.name}, spaces={self.total_spaces})>"
