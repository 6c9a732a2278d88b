"""
Ride Module

A ride is one trip of a route in a given direction. Drivers start a ride,
passengers book seats on it, and completing it settles the driver's earnings.

Key Components:
- service.py: start/complete, active ride seat map, available rides
- router.py: FastAPI endpoints for drivers and passengers
- schemas.py: Pydantic models for rides, settlements and seat maps
"""

from .router import router
from .service import RideService, ride_endpoints, is_cash_booking

__all__ = [
    "router",
    "RideService",
    "ride_endpoints",
    "is_cash_booking",
]
