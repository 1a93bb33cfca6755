"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from transit_booking.api.routes import reservations, my_reservations, trips

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(reservations.router)
api_router.include_router(my_reservations.router)
api_router.include_router(trips.router)
