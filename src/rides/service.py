import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from src.database import transaction
from src.enums import BookingStatus, RideDirection, RideStatus, SeatStatus, TransactionType
from src.exceptions import (
    Conflict, Forbidden, InvalidState, NotFound, PreconditionFailed, ValidationError, handle
)
from src.loggers import log_event
from src.models import Booking, Ride, Route, Seat, Vehicle
from src.rides.schemas import (
    ActiveRideOut, AvailableRideOut, RideOut, RideSettlement, SeatBookingInfo, SeatMapEntry
)
from src.routes.schemas import RouteOut
from src.routes.service import RouteService
from src.vehicles.service import VehicleService
from src.wallets.service import WalletService

logger = logging.getLogger(__name__)


def ride_endpoints(ride: Ride) -> Tuple[str, str]:
    """(from, to) for the ride's direction of travel"""
    route = ride.route
    if ride.direction == RideDirection.RETURN:
        return route.destination, route.origin
    return route.origin, route.destination


def is_cash_booking(booking: Booking, driver_id: int) -> bool:
    return booking.passenger_id == driver_id


class RideService:
    """Ride lifecycle: ACTIVE -> COMPLETED"""

    @staticmethod
    def get_ride(db: Session, ride_id: int, lock: bool = False) -> Optional[Ride]:
        query = db.query(Ride).filter(Ride.id == ride_id, Ride.deleted_at.is_(None))
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_active_ride_for_route(db: Session, route_id: int, lock: bool = False) -> Optional[Ride]:
        """Most recent ACTIVE ride on the route"""
        query = db.query(Ride).filter(
            Ride.route_id == route_id,
            Ride.status == RideStatus.ACTIVE,
            Ride.deleted_at.is_(None)
        ).order_by(Ride.departure_time.desc(), Ride.id.desc())
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def start_ride(db: Session, driver_id: int, direction: RideDirection = RideDirection.FORWARD) -> Ride:
        """Open a new ride on the driver's route"""
        try:
            direction = RideDirection(direction)
        except ValueError:
            raise ValidationError("Invalid direction")

        try:
            with transaction(db):
                vehicle = VehicleService.get_vehicle_by_owner(db, driver_id)
                if not vehicle:
                    raise PreconditionFailed("You need to register a vehicle first")
                route = RouteService.get_route_by_vehicle(db, vehicle.id)
                if not route:
                    raise PreconditionFailed("You need to register a route first")

                if RideService.get_active_ride_for_route(db, route.id, lock=True):
                    raise Conflict(
                        "You already have an active ride. "
                        "Please complete it before starting a new one."
                    )

                ride = Ride(
                    route_id=route.id,
                    direction=direction,
                    departure_time=datetime.now(timezone.utc),
                    available_seats=vehicle.capacity,
                    status=RideStatus.ACTIVE,
                )
                db.add(ride)
                db.flush()
        except Exception as e:
            handle(e)

        log_event(logger, "ride.started", ride_id=ride.id, route_id=route.id, direction=direction.value)
        return ride

    @staticmethod
    def complete_ride(db: Session, ride_id: int, requester_id: int) -> RideSettlement:
        """Close the ride and settle the driver's app earnings.

        Every CONFIRMED booking becomes COMPLETED and its seat is released.
        Earnings are the sum of app bookings only; cash bookings carry the
        driver's own id as passenger and the driver already holds that money.
        """
        try:
            with transaction(db):
                ride = RideService.get_ride(db, ride_id, lock=True)
                if not ride:
                    raise NotFound("Ride not found")
                if ride.route.vehicle.user_id != requester_id:
                    raise Forbidden("You can only complete your own rides")
                if ride.status != RideStatus.ACTIVE:
                    raise InvalidState("Only active rides can be completed")

                bookings = db.query(Booking).filter(
                    Booking.ride_id == ride.id,
                    Booking.status == BookingStatus.CONFIRMED,
                    Booking.deleted_at.is_(None)
                ).with_for_update().all()

                app_bookings = [b for b in bookings if not is_cash_booking(b, requester_id)]
                earnings = sum((Decimal(b.total_price) for b in app_bookings), Decimal("0"))

                ride.status = RideStatus.COMPLETED
                ride.completed_at = datetime.now(timezone.utc)
                for booking in bookings:
                    booking.status = BookingStatus.COMPLETED

                seat_ids = [b.seat_id for b in bookings if b.seat_id is not None]
                if seat_ids:
                    seats = db.query(Seat).filter(Seat.id.in_(seat_ids)).with_for_update().all()
                    for seat in seats:
                        seat.status = SeatStatus.AVAILABLE

                entry = None
                if earnings > 0:
                    origin, destination = ride_endpoints(ride)
                    wallet = WalletService.get_or_create_wallet(db, requester_id)
                    entry = WalletService.record(
                        db, wallet, earnings, TransactionType.RIDE_EARNING,
                        description=(
                            f"Earnings from ride {origin} to {destination} "
                            f"({len(app_bookings)} passengers)"
                        ),
                        ride_id=ride.id,
                    )
                db.flush()
        except Exception as e:
            handle(e)

        log_event(
            logger, "ride.completed",
            ride_id=ride_id, bookings=len(bookings), cash_bookings=len(bookings) - len(app_bookings),
            earnings=earnings,
        )
        return RideSettlement(
            ride=RideOut.model_validate(ride),
            earnings=earnings,
            completed_bookings=len(bookings),
            cash_bookings=len(bookings) - len(app_bookings),
            transaction_id=entry.id if entry else None,
        )

    @staticmethod
    def get_active_ride(db: Session, driver_id: int) -> Optional[ActiveRideOut]:
        """The driver's ACTIVE ride with its seat map, or None"""
        route = RouteService.get_route_by_owner(db, driver_id)
        if not route:
            return None
        ride = RideService.get_active_ride_for_route(db, route.id)
        if not ride:
            return None

        vehicle = route.vehicle
        bookings = db.query(Booking).options(joinedload(Booking.passenger)).filter(
            Booking.ride_id == ride.id,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.deleted_at.is_(None)
        ).order_by(Booking.id).all()

        def booking_info(booking: Booking) -> SeatBookingInfo:
            return SeatBookingInfo(
                booking_id=booking.id,
                passenger_id=booking.passenger_id,
                passenger_name=booking.passenger.name if booking.passenger else None,
                total_price=booking.total_price,
                is_cash=is_cash_booking(booking, driver_id),
            )

        by_seat = {b.seat_id: b for b in bookings if b.seat_id is not None}
        seats = [
            SeatMapEntry(
                id=seat.id,
                seat_number=seat.seat_number,
                code=seat.code,
                status=seat.status,
                is_driver_seat=seat.is_driver_seat,
                booking=booking_info(by_seat[seat.id]) if seat.id in by_seat else None,
            )
            for seat in VehicleService.get_seats(db, vehicle.id)
        ]
        pending = sum(
            (Decimal(b.total_price) for b in bookings if not is_cash_booking(b, driver_id)),
            Decimal("0"),
        )
        origin, destination = ride_endpoints(ride)

        return ActiveRideOut(
            ride=RideOut.model_validate(ride),
            route=RouteOut.model_validate(route),
            origin=origin,
            destination=destination,
            vehicle_number=vehicle.vehicle_number,
            capacity=vehicle.capacity,
            seats=seats,
            seatless_bookings=[booking_info(b) for b in bookings if b.seat_id is None],
            pending_earnings=pending,
        )

    @staticmethod
    def list_available_rides(db: Session) -> List[AvailableRideOut]:
        """ACTIVE rides with free seats, newest first"""
        rides = db.query(Ride).join(Route, Ride.route_id == Route.id).join(
            Vehicle, Route.vehicle_id == Vehicle.id
        ).filter(
            Ride.status == RideStatus.ACTIVE,
            Ride.available_seats > 0,
            Ride.deleted_at.is_(None),
            Route.deleted_at.is_(None),
            Vehicle.deleted_at.is_(None)
        ).order_by(Ride.departure_time.desc(), Ride.id.desc()).all()

        available = []
        for ride in rides:
            origin, destination = ride_endpoints(ride)
            available.append(AvailableRideOut(
                ride=RideOut.model_validate(ride),
                route=RouteOut.model_validate(ride.route),
                origin=origin,
                destination=destination,
                vehicle_number=ride.route.vehicle.vehicle_number,
                vehicle_type=ride.route.vehicle.vehicle_type,
            ))
        return available
