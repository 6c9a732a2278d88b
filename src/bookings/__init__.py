"""
Booking Module

The booking engine and the passenger-facing ways of reaching it.

- Booking lifecycle: book (wallet-paid), cancel (refunded), assign a seat to a
  seatless booking, and driver-recorded cash bookings
- Lookup strategies that resolve passenger input to a route, its active ride
  and a seat: direct pick, QR payload, 14-digit seat code, plate number plus
  seat number

Key Components:
- booking_service.py: atomic booking operations over seats, rides and wallets
- lookup_service.py: resolution strategies returning ScanResult
- router.py: FastAPI endpoints for bookings and lookups
- schemas.py: Pydantic models for booking requests and results

Features:
- One live booking per (ride, seat), enforced by row locks and a partial unique index
- Optional client idempotency key on booking
- Cash bookings excluded from wallet movements and driver earnings
"""

from .router import router
from .booking_service import BookingService
from .lookup_service import LookupService, parse_barcode
from .schemas import (
    BookSeatRequest, BookingOut, PassengerBookingOut, ManualBookingOut,
    ScanRequest, SeatCodeRequest, PlateLookupRequest, ScanResult, ScanData
)

__all__ = [
    "router",
    "BookingService",
    "LookupService",
    "parse_barcode",
    "BookSeatRequest",
    "BookingOut",
    "PassengerBookingOut",
    "ManualBookingOut",
    "ScanRequest",
    "SeatCodeRequest",
    "PlateLookupRequest",
    "ScanResult",
    "ScanData",
]
