from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from src.enums import RideDirection, RideStatus, SeatStatus
from src.routes.schemas import RouteOut

class StartRideRequest(BaseModel):
    direction: RideDirection = RideDirection.FORWARD

class RideOut(BaseModel):
    id: int
    route_id: int
    direction: RideDirection
    departure_time: datetime
    available_seats: int
    status: RideStatus
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RideSettlement(BaseModel):
    """Outcome of completing a ride"""
    ride: RideOut
    earnings: Decimal
    completed_bookings: int
    cash_bookings: int
    transaction_id: Optional[int] = None

# Active ride seat map
class SeatBookingInfo(BaseModel):
    booking_id: int
    passenger_id: int
    passenger_name: Optional[str] = None
    total_price: Decimal
    is_cash: bool

class SeatMapEntry(BaseModel):
    id: int
    seat_number: int
    code: str
    status: SeatStatus
    is_driver_seat: bool
    booking: Optional[SeatBookingInfo] = None

class ActiveRideOut(BaseModel):
    ride: RideOut
    route: RouteOut
    origin: str
    destination: str
    vehicle_number: str
    capacity: int
    seats: List[SeatMapEntry]
    seatless_bookings: List[SeatBookingInfo] = []
    pending_earnings: Decimal

class AvailableRideOut(BaseModel):
    """An ACTIVE ride as shown to passengers"""
    ride: RideOut
    route: RouteOut
    origin: str
    destination: str
    vehicle_number: str
    vehicle_type: str
