"""
Reservation model: one space in one garage for a half-open time window.

Key design decisions:
- `price` is written once at creation and never recomputed from the garage rate
- Status kept as a string with a CHECK constraint; cancelled rows stay for history
- Composite index on (garage_id, status, start_time, end_time) serves the
  overlap query behind every availability check
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from garage_booking.db.base import Base, TimestampMixin


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    garage_id = Column(Integer, ForeignKey("garages.id"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="active")

    garage = relationship("Garage", back_populates="reservations")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_reservation_window_order"),
        CheckConstraint("price >= 0", name="check_reservation_price_non_negative"),
        CheckConstraint(
            "status IN ('active', 'completed', 'cancelled', 'refunded')",
            name="check_reservation_status",
        ),
        Index("ix_reservations_availability", "garage_id", "status", "start_time", "end_time"),
    )

    def __repr__(self) -> str:
        return f"<Reservation(id={self.id}, user={self.user_id}, garage={self.garage_id}, status={self.status})>"
