"""
Vehicle & Seat Module

Driver vehicles and the numbered seats they own.

Key Components:
- service.py: vehicle registration/update, seat provisioning, seat status
- seat_codes.py: globally unique 14-digit seat codes
- qr_service.py: PNG QR stickers carrying a seat's barcode payload
- router.py: FastAPI endpoints for the current driver's vehicle
- schemas.py: Pydantic models for vehicle and seat data

Seat 1 of every vehicle is the driver's seat and is never bookable.
"""

from .router import router
from .service import VehicleService, normalize_plate
from .seat_codes import generate_seat_code, generate_unique_seat_code, is_valid_seat_code
from .qr_service import SeatQRService, barcode_payload, render_qr_png

__all__ = [
    "router",
    "VehicleService",
    "normalize_plate",
    "generate_seat_code",
    "generate_unique_seat_code",
    "is_valid_seat_code",
    "SeatQRService",
    "barcode_payload",
    "render_qr_png",
]
