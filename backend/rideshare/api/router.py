"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from rideshare.api.routes import trips, bookings, search

api_router = APIRouter()

# Include all route modules
api_router.include_router(trips.router)
api_router.include_router(bookings.router)
api_router.include_router(search.router)
