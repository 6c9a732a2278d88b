"""
Route Module

Each driver's vehicle serves exactly one fixed route: free-text origin and
destination with a flat price per seat. Rides travel it in either direction.

Key Components:
- service.py: route registration and lookup by id, vehicle or owner
- router.py: FastAPI endpoints for the current driver's route
- schemas.py: Pydantic models for route data
"""

from .router import router
from .service import RouteService
from .schemas import RouteRegistration, RouteOut

__all__ = [
    "router",
    "RouteService",
    "RouteRegistration",
    "RouteOut",
]
