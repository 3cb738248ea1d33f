"""
Pydantic schemas for garage availability and price quotes.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class AvailabilityResponse(BaseModel):
    garage_id: int
    start_time: datetime
    end_time: datetime
    free_slots: int


class QuoteResponse(BaseModel):
    garage_id: int
    start_time: datetime
    end_time: datetime
    duration_hours: Decimal
    price_per_hour: Decimal
    total_price: Decimal
