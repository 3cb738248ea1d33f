"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from garage_booking.api.routes import garages, recommendations, reservations

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(reservations.router)
api_router.include_router(garages.router)
api_router.include_router(recommendations.router)
