from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from src.enums import BookingStatus, RideDirection, SeatStatus

# Request Models
class BookSeatRequest(BaseModel):
    """Direct booking of a ride the passenger is already viewing"""
    ride_id: int
    seat_id: Optional[int] = None
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=64)

class AssignSeatRequest(BaseModel):
    seat_id: int

class ManualBookingRequest(BaseModel):
    """Cash passenger recorded by the driver"""
    ride_id: int
    seat_id: int

class DirectPickRequest(BaseModel):
    ride_id: int
    seat_id: int
    auto_book: bool = True

class ScanRequest(BaseModel):
    """QR payload: JSON ``{"routeId": .., "seatId": ..}`` or ``routeId:seatId``"""
    payload: str = Field(..., min_length=1, max_length=512)
    auto_book: bool = True

class SeatCodeRequest(BaseModel):
    code: str
    auto_book: bool = True

class PlateLookupRequest(BaseModel):
    plate_number: str = Field(..., min_length=1, max_length=32)
    seat_number: int
    auto_book: bool = True

    @validator('seat_number')
    def validate_seat_number(cls, v):
        if v < 1:
            raise ValueError('Seat number must be a positive integer')
        return v

# Response Models
class SeatRef(BaseModel):
    id: int
    seat_number: int

    class Config:
        from_attributes = True

class BookingOut(BaseModel):
    id: int
    ride_id: int
    passenger_id: int
    seat_id: Optional[int] = None
    seat: Optional[SeatRef] = None
    total_price: Decimal
    status: BookingStatus
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PassengerBookingOut(BookingOut):
    """Booking with the trip it belongs to"""
    origin: str
    destination: str
    direction: RideDirection
    departure_time: datetime

class ManualBookingOut(BaseModel):
    success: bool = True
    message: str
    booking_id: int
    seat_number: int
    total_price: Decimal

# Scan / lookup results
class ScanRoute(BaseModel):
    id: int
    origin: str
    destination: str
    price_per_seat: Decimal
    distance: Optional[Decimal] = None
    duration: Optional[int] = None

class ScanRide(BaseModel):
    id: int
    direction: RideDirection
    departure_time: datetime
    available_seats: int

class ScanSeat(BaseModel):
    id: int
    seat_number: int
    status: SeatStatus

class ScanBooking(BaseModel):
    id: int
    total_price: Decimal

class ScanData(BaseModel):
    route: ScanRoute
    active_ride: Optional[ScanRide] = None
    seat: Optional[ScanSeat] = None
    booking: Optional[ScanBooking] = None

class ScanResult(BaseModel):
    """Outcome of a lookup; failures are reported, not raised.

    ``success`` with ``auto_booked`` False means the seat resolved but was not
    booked, either because auto-booking was off or the wallet needs funding.
    """
    success: bool
    auto_booked: bool = False
    message: str
    error: Optional[str] = None
    data: Optional[ScanData] = None
