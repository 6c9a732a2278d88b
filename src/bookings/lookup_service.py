import json
import logging
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from src.bookings.booking_service import BookingService
from src.bookings.schemas import ScanBooking, ScanData, ScanResult, ScanRide, ScanRoute, ScanSeat
from src.database import transaction
from src.enums import RideStatus, SeatStatus
from src.exceptions import (
    AlreadyBooked, APIException, DriverSeatReserved, InvalidSeat, InvalidState, NotFound,
    RideFull, SeatUnavailable, ValidationError, handle
)
from src.loggers import log_event
from src.models import Booking, Ride, Route, Seat
from src.rides.service import RideService
from src.routes.service import RouteService
from src.vehicles.seat_codes import is_valid_seat_code
from src.vehicles.service import VehicleService, normalize_plate
from src.wallets.service import WalletService, format_money

logger = logging.getLogger(__name__)

Resolution = Tuple[Route, Ride, Seat]


def parse_barcode(payload: str) -> Tuple[int, int]:
    """Read ``(route_id, seat_id)`` from a JSON or ``routeId:seatId`` payload"""
    payload = (payload or "").strip()
    if not payload:
        raise ValidationError("Invalid barcode format. Expected format: routeId:seatId")

    try:
        data = json.loads(payload)
    except ValueError:
        data = None
    if isinstance(data, dict):
        route_id, seat_id = data.get("routeId"), data.get("seatId")
    else:
        parts = payload.split(":")
        route_id = parts[0]
        seat_id = parts[1] if len(parts) > 1 else None

    if route_id in (None, ""):
        raise ValidationError("Invalid barcode format. Expected format: routeId:seatId")
    if seat_id in (None, ""):
        raise ValidationError("Seat ID missing in barcode. Expected format: routeId:seatId")
    try:
        return int(str(route_id).strip()), int(str(seat_id).strip())
    except ValueError:
        raise ValidationError("Invalid barcode format. Expected format: routeId:seatId")


def _scan_data(route: Route, ride: Ride, seat: Optional[Seat], booking: Optional[Booking] = None) -> ScanData:
    return ScanData(
        route=ScanRoute(
            id=route.id,
            origin=route.origin,
            destination=route.destination,
            price_per_seat=route.price_per_seat,
            distance=route.distance,
            duration=route.duration,
        ),
        active_ride=ScanRide(
            id=ride.id,
            direction=ride.direction,
            departure_time=ride.departure_time,
            available_seats=ride.available_seats,
        ),
        seat=ScanSeat(id=seat.id, seat_number=seat.seat_number, status=seat.status) if seat else None,
        booking=ScanBooking(id=booking.id, total_price=booking.total_price) if booking else None,
    )


class LookupService:
    """Entry points that resolve passenger input to (route, active ride, seat) and book it.

    Every strategy runs the same checks and the same booking path. Business
    failures and unreadable barcodes come back as ``ScanResult(success=False)``;
    a malformed seat code or plate raises ``ValidationError`` before the store
    is touched.
    """

    # Strategies

    @staticmethod
    def pick_seat(db: Session, user_id: int, ride_id: int, seat_id: int, auto_book: bool = True) -> ScanResult:
        def resolve() -> Resolution:
            ride = RideService.get_ride(db, ride_id)
            if not ride:
                raise NotFound("Ride not found")
            if ride.status != RideStatus.ACTIVE:
                raise InvalidState("This ride is not active")
            seat = VehicleService.get_seat(db, seat_id)
            if not seat:
                raise NotFound("Seat not found")
            if seat.vehicle_id != ride.route.vehicle_id:
                raise InvalidSeat("Seat does not belong to this vehicle")
            return ride.route, ride, seat

        return LookupService._run(db, user_id, resolve, auto_book, "pick")

    @staticmethod
    def scan_barcode(db: Session, user_id: int, payload: str, auto_book: bool = True) -> ScanResult:
        try:
            route_id, seat_id = parse_barcode(payload)
        except ValidationError as exc:
            log_event(logger, "lookup.rejected", strategy="barcode", user_id=user_id, error=exc.error)
            return ScanResult(success=False, auto_booked=False, message=str(exc.detail), error=exc.error)

        def resolve() -> Resolution:
            route = RouteService.get_route(db, route_id)
            if not route:
                raise NotFound("Route not found or inactive")
            ride = RideService.get_active_ride_for_route(db, route.id)
            if not ride:
                raise NotFound("No active ride found for this route")
            seat = VehicleService.get_seat(db, seat_id)
            if not seat or seat.vehicle_id != route.vehicle_id:
                raise NotFound("Seat not found")
            return route, ride, seat

        return LookupService._run(db, user_id, resolve, auto_book, "barcode")

    @staticmethod
    def book_by_seat_code(db: Session, user_id: int, code: str, auto_book: bool = True) -> ScanResult:
        code = (code or "").strip()
        if not is_valid_seat_code(code):
            raise ValidationError("Seat code must be exactly 14 digits")

        def resolve() -> Resolution:
            seat = db.query(Seat).filter(Seat.code == code, Seat.deleted_at.is_(None)).first()
            if not seat:
                raise NotFound("Invalid seat code")
            route = RouteService.get_route_by_vehicle(db, seat.vehicle_id)
            if not route:
                raise NotFound("This vehicle has no registered route")
            ride = RideService.get_active_ride_for_route(db, route.id)
            if not ride:
                raise NotFound("No active ride found for this vehicle")
            return route, ride, seat

        return LookupService._run(db, user_id, resolve, auto_book, "seat_code")

    @staticmethod
    def book_by_plate_number(
        db: Session, user_id: int, plate_number: str, seat_number: int, auto_book: bool = True
    ) -> ScanResult:
        plate = normalize_plate(plate_number)
        if not plate:
            raise ValidationError("Plate number is required")
        try:
            seat_number = int(seat_number)
        except (TypeError, ValueError):
            raise ValidationError("Seat number must be a positive integer")
        if seat_number < 1:
            raise ValidationError("Seat number must be a positive integer")

        def resolve() -> Resolution:
            vehicle = VehicleService.get_vehicle_by_plate(db, plate)
            if not vehicle:
                raise NotFound("No vehicle found with this plate number")
            route = RouteService.get_route_by_vehicle(db, vehicle.id)
            if not route:
                raise NotFound("This vehicle has no registered route")
            ride = RideService.get_active_ride_for_route(db, route.id)
            if not ride:
                raise NotFound("No active ride found for this vehicle")
            seat = db.query(Seat).filter(
                Seat.vehicle_id == vehicle.id,
                Seat.seat_number == seat_number,
                Seat.deleted_at.is_(None)
            ).first()
            if not seat:
                raise NotFound(f"Seat #{seat_number} not found in this vehicle")
            return route, ride, seat

        return LookupService._run(db, user_id, resolve, auto_book, "plate")

    # Shared path

    @staticmethod
    def check_bookable(db: Session, user_id: int, ride: Ride, seat: Optional[Seat]) -> None:
        if BookingService.passenger_booking(db, ride.id, user_id):
            raise AlreadyBooked("You already have a booking for this ride")
        if seat is not None and seat.is_driver_seat:
            raise DriverSeatReserved("Seat 1 is reserved for the driver")
        if ride.available_seats <= 0:
            raise RideFull("No available seats on this ride")
        if seat is not None:
            if BookingService.seat_booking(db, ride.id, seat.id):
                raise SeatUnavailable(f"Seat #{seat.seat_number} is already booked")
            if seat.status != SeatStatus.AVAILABLE:
                raise SeatUnavailable(f"Seat #{seat.seat_number} is {seat.status.value.lower()}")

    @staticmethod
    def _run(
        db: Session,
        user_id: int,
        resolve: Callable[[], Resolution],
        auto_book: bool,
        strategy: str,
    ) -> ScanResult:
        try:
            with transaction(db):
                route, ride, seat = resolve()
                LookupService.check_bookable(db, user_id, ride, seat)

                if not auto_book:
                    return ScanResult(
                        success=True,
                        auto_booked=False,
                        message="Route and ride validated successfully",
                        data=_scan_data(route, ride, seat),
                    )

                wallet = WalletService.get_or_create_wallet(db, user_id)
                if wallet.balance < route.price_per_seat:
                    # Resolved but unpaid: the caller sends the passenger to fund the wallet
                    return ScanResult(
                        success=True,
                        auto_booked=False,
                        message=(
                            f"Insufficient balance. Required: {format_money(route.price_per_seat)}, "
                            f"Available: {format_money(wallet.balance)}"
                        ),
                        error="InsufficientFunds",
                        data=_scan_data(route, ride, seat),
                    )

                booking = BookingService.book_seat(db, ride.id, user_id, seat.id)
                result = ScanResult(
                    success=True,
                    auto_booked=True,
                    message=f"Seat #{seat.seat_number} booked successfully!",
                    data=_scan_data(route, ride, seat, booking),
                )
        except Exception as e:
            try:
                handle(e)
            except APIException as exc:
                log_event(logger, "lookup.rejected", strategy=strategy, user_id=user_id, error=exc.error)
                return ScanResult(success=False, auto_booked=False, message=str(exc.detail), error=exc.error)

        log_event(logger, "lookup.booked", strategy=strategy, user_id=user_id, booking_id=result.data.booking.id)
        return result
