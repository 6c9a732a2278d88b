from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from src.auth.dependencies import require_driver, require_rider
from src.database import get_db
from src.enums import BookingStatus
from src.bookings.schemas import (
    BookSeatRequest, AssignSeatRequest, ManualBookingRequest, DirectPickRequest,
    ScanRequest, SeatCodeRequest, PlateLookupRequest,
    BookingOut, PassengerBookingOut, ManualBookingOut, ScanResult
)
from src.bookings.booking_service import BookingService
from src.bookings.lookup_service import LookupService
from src.rides.service import ride_endpoints

router = APIRouter()

# Booking lifecycle
@router.post("/", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def book_seat(
    request: BookSeatRequest,
    current_user = Depends(require_rider),
    db: Session = Depends(get_db)
):
    """Book a seat (or a seatless place) on an active ride, paid from the wallet"""
    return BookingService.book_seat(
        db, request.ride_id, current_user.id,
        seat_id=request.seat_id,
        idempotency_key=request.idempotency_key,
    )

@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(
    booking_id: int,
    current_user = Depends(require_rider),
    db: Session = Depends(get_db)
):
    """Cancel a confirmed booking and refund it"""
    return BookingService.cancel_booking(db, booking_id, current_user.id)

@router.post("/{booking_id}/assign-seat", response_model=BookingOut)
def assign_seat(
    booking_id: int,
    request: AssignSeatRequest,
    current_user = Depends(require_driver),
    db: Session = Depends(get_db)
):
    """Seat a passenger who booked without a seat"""
    return BookingService.assign_seat(db, booking_id, request.seat_id, current_user.id)

@router.post("/manual", response_model=ManualBookingOut, status_code=status.HTTP_201_CREATED)
def create_manual_booking(
    request: ManualBookingRequest,
    current_user = Depends(require_driver),
    db: Session = Depends(get_db)
):
    """Mark a seat as paid in cash"""
    booking = BookingService.create_manual_booking(db, request.ride_id, request.seat_id, current_user.id)
    return ManualBookingOut(
        message=f"Seat #{booking.seat.seat_number} marked as paid (cash)",
        booking_id=booking.id,
        seat_number=booking.seat.seat_number,
        total_price=booking.total_price,
    )

@router.get("/me", response_model=List[PassengerBookingOut])
def get_my_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    current_user = Depends(require_rider),
    db: Session = Depends(get_db)
):
    bookings = BookingService.list_passenger_bookings(db, current_user.id, booking_status)
    results = []
    for booking in bookings:
        origin, destination = ride_endpoints(booking.ride)
        results.append(PassengerBookingOut(
            **BookingOut.model_validate(booking).model_dump(),
            origin=origin,
            destination=destination,
            direction=booking.ride.direction,
            departure_time=booking.ride.departure_time,
        ))
    return results

# Lookup entry points
@router.post("/pick", response_model=ScanResult)
def pick_seat(
    request: DirectPickRequest,
    current_user = Depends(require_rider),
    db: Session = Depends(get_db)
):
    return LookupService.pick_seat(db, current_user.id, request.ride_id, request.seat_id, request.auto_book)

@router.post("/scan", response_model=ScanResult)
def scan_barcode(
    request: ScanRequest,
    current_user = Depends(require_rider),
    db: Session = Depends(get_db)
):
    """Resolve a seat QR payload and book it when the wallet covers the fare"""
    return LookupService.scan_barcode(db, current_user.id, request.payload, request.auto_book)

@router.post("/seat-code", response_model=ScanResult)
def book_by_seat_code(
    request: SeatCodeRequest,
    current_user = Depends(require_rider),
    db: Session = Depends(get_db)
):
    return LookupService.book_by_seat_code(db, current_user.id, request.code, request.auto_book)

@router.post("/plate", response_model=ScanResult)
def book_by_plate_number(
    request: PlateLookupRequest,
    current_user = Depends(require_rider),
    db: Session = Depends(get_db)
):
    """Book by vehicle plate number and seat number"""
    return LookupService.book_by_plate_number(
        db, current_user.id, request.plate_number, request.seat_number, request.auto_book
    )
