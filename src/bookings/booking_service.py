import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from src.database import transaction
from src.enums import BookingStatus, RideStatus, Role, SeatStatus, TransactionType
from src.exceptions import (
    Conflict, DriverSeatReserved, Forbidden, InsufficientFunds, InvalidSeat, InvalidState,
    NotFound, RideFull, SeatUnavailable, ValidationError, handle
)
from src.loggers import log_event
from src.models import Booking, Ride, Seat, User
from src.rides.service import RideService, ride_endpoints
from src.vehicles.service import VehicleService
from src.wallets.service import WalletService, format_money

logger = logging.getLogger(__name__)

# A seat holds at most one of these per ride
LIVE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


class BookingService:
    """Seat bookings: the only place seat status, ride counters and wallets change together"""

    @staticmethod
    def get_booking(db: Session, booking_id: int, lock: bool = False) -> Optional[Booking]:
        query = db.query(Booking).filter(Booking.id == booking_id, Booking.deleted_at.is_(None))
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_by_idempotency_key(db: Session, idempotency_key: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.idempotency_key == idempotency_key).first()

    @staticmethod
    def seat_booking(db: Session, ride_id: int, seat_id: int) -> Optional[Booking]:
        """The live booking holding ``seat_id`` on the ride, if any"""
        return db.query(Booking).filter(
            Booking.ride_id == ride_id,
            Booking.seat_id == seat_id,
            Booking.status.in_(LIVE_STATUSES),
            Booking.deleted_at.is_(None)
        ).first()

    @staticmethod
    def passenger_booking(db: Session, ride_id: int, passenger_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(
            Booking.ride_id == ride_id,
            Booking.passenger_id == passenger_id,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.deleted_at.is_(None)
        ).first()

    @staticmethod
    def claim_seat(db: Session, ride: Ride, seat_id: int) -> Seat:
        """Lock and validate a seat for a new claim on ``ride``"""
        if BookingService.seat_booking(db, ride.id, seat_id):
            raise SeatUnavailable("This seat is already booked for this ride")

        seat = VehicleService.get_seat(db, seat_id, lock=True)
        if not seat:
            raise NotFound("Seat not found")
        if seat.vehicle_id != ride.route.vehicle_id:
            raise InvalidSeat("Seat does not belong to this vehicle")
        if seat.is_driver_seat:
            raise DriverSeatReserved("Seat #1 is reserved for the driver and cannot be booked")
        if seat.status != SeatStatus.AVAILABLE:
            raise SeatUnavailable(f"Seat is not available. Status: {seat.status.value.lower()}")
        return seat

    @staticmethod
    def _load_active_ride(db: Session, ride_id: int) -> Ride:
        ride = RideService.get_ride(db, ride_id, lock=True)
        if not ride:
            raise NotFound("Ride not found")
        if ride.status != RideStatus.ACTIVE:
            raise InvalidState("This ride is not active")
        return ride

    @staticmethod
    def _occupy(db: Session, ride: Ride, seat: Optional[Seat], passenger_id: int,
                price: Decimal, idempotency_key: Optional[str] = None) -> Booking:
        if ride.available_seats <= 0:
            raise RideFull("No available seats on this ride")

        booking = Booking(
            ride_id=ride.id,
            passenger_id=passenger_id,
            seat_id=seat.id if seat else None,
            total_price=price,
            status=BookingStatus.CONFIRMED,
            idempotency_key=idempotency_key,
        )
        db.add(booking)
        if seat:
            seat.status = SeatStatus.OCCUPIED
        ride.available_seats -= 1
        db.flush()
        return booking

    @staticmethod
    def book_seat(
        db: Session,
        ride_id: int,
        passenger_id: int,
        seat_id: Optional[int] = None,
        idempotency_key: Optional[str] = None,
    ) -> Booking:
        """Book a seat on an active ride and pay for it from the passenger's wallet.

        Validation happens before any write, and the booking, seat, ride
        counter and wallet debit commit together or not at all. Without a
        ``seat_id`` the booking is seatless and a seat is assigned on boarding.

        A repeated ``idempotency_key`` from the same passenger returns the
        original booking instead of booking and charging again.
        """
        if idempotency_key is not None:
            idempotency_key = idempotency_key.strip()
            if not idempotency_key:
                raise ValidationError("Idempotency key must not be blank")
            previous = BookingService.get_by_idempotency_key(db, idempotency_key)
            if previous is not None:
                if previous.passenger_id != passenger_id:
                    raise Conflict("Idempotency key already used")
                log_event(logger, "booking.replayed", booking_id=previous.id, passenger_id=passenger_id)
                return previous

        try:
            with transaction(db):
                ride = BookingService._load_active_ride(db, ride_id)
                route = ride.route
                if route.vehicle.user_id == passenger_id:
                    raise Forbidden("Drivers record their own passengers as cash bookings")
                price = Decimal(route.price_per_seat)

                wallet = WalletService.get_or_create_wallet(db, passenger_id)
                if wallet.balance < price:
                    raise InsufficientFunds(
                        f"Insufficient wallet balance. Required: {format_money(price)}, "
                        f"Available: {format_money(wallet.balance)}. Please charge your wallet first."
                    )

                seat = BookingService.claim_seat(db, ride, seat_id) if seat_id is not None else None
                booking = BookingService._occupy(db, ride, seat, passenger_id, price, idempotency_key)

                origin, destination = ride_endpoints(ride)
                WalletService.record(
                    db, wallet, -price, TransactionType.BOOKING_PAYMENT,
                    description=(
                        f"Booking payment for seat #{seat.seat_number} - {origin} to {destination}"
                        if seat else f"Booking payment for ride from {origin} to {destination}"
                    ),
                    booking_id=booking.id,
                    ride_id=ride.id,
                )
        except Exception as e:
            handle(e)

        log_event(
            logger, "booking.created",
            booking_id=booking.id, ride_id=ride_id, passenger_id=passenger_id,
            seat_id=seat_id, price=price,
        )
        return booking

    @staticmethod
    def cancel_booking(db: Session, booking_id: int, requester_id: int) -> Booking:
        """Cancel a CONFIRMED booking, release its seat and refund what was paid.

        Cash bookings were never paid through the wallet, so they are not refunded.
        """
        try:
            with transaction(db):
                booking = BookingService.get_booking(db, booking_id, lock=True)
                if not booking:
                    raise NotFound("Booking not found")
                if booking.passenger_id != requester_id:
                    raise Forbidden("You can only cancel your own bookings")
                if booking.status == BookingStatus.CANCELLED:
                    raise InvalidState("Booking is already cancelled")
                if booking.status == BookingStatus.COMPLETED:
                    raise InvalidState("Cannot cancel a completed booking")

                ride = RideService.get_ride(db, booking.ride_id, lock=True)
                booking.status = BookingStatus.CANCELLED

                if booking.seat_id is not None:
                    seat = db.query(Seat).filter(Seat.id == booking.seat_id).with_for_update().first()
                    if seat is not None:
                        seat.status = SeatStatus.AVAILABLE

                # A completed ride has already released its seats and counter
                if ride.status == RideStatus.ACTIVE:
                    ride.available_seats += 1

                refund = Decimal("0")
                if ride.route.vehicle.user_id != booking.passenger_id:
                    refund = Decimal(booking.total_price)
                    wallet = WalletService.get_or_create_wallet(db, requester_id)
                    WalletService.record(
                        db, wallet, refund, TransactionType.BOOKING_REFUND,
                        description="Refund for cancelled booking",
                        booking_id=booking.id,
                        ride_id=ride.id,
                    )
                db.flush()
        except Exception as e:
            handle(e)

        log_event(logger, "booking.cancelled", booking_id=booking_id, passenger_id=requester_id, refund=refund)
        return booking

    @staticmethod
    def assign_seat(db: Session, booking_id: int, seat_id: int, requester_id: int) -> Booking:
        """Bind a seat to a seatless booking; the ride counter and wallet are untouched"""
        try:
            with transaction(db):
                booking = BookingService.get_booking(db, booking_id, lock=True)
                if not booking:
                    raise NotFound("Booking not found")
                ride = booking.ride
                if ride.route.vehicle.user_id != requester_id:
                    raise Forbidden("You can only assign seats in your own vehicle")
                if booking.seat_id is not None:
                    raise Conflict("Booking already has a seat assigned")
                if booking.status == BookingStatus.CANCELLED:
                    raise InvalidState("Cannot assign seat to a cancelled booking")
                if booking.status == BookingStatus.COMPLETED:
                    raise InvalidState("Cannot assign seat to a completed booking")

                seat = BookingService.claim_seat(db, ride, seat_id)
                booking.seat_id = seat.id
                seat.status = SeatStatus.OCCUPIED
                db.flush()
        except Exception as e:
            handle(e)

        log_event(logger, "booking.seat_assigned", booking_id=booking_id, seat_id=seat_id)
        return booking

    @staticmethod
    def create_manual_booking(db: Session, ride_id: int, seat_id: int, driver_id: int) -> Booking:
        """Record a cash-paying passenger on the driver's own ride.

        The booking carries the driver's id as passenger. No wallet is
        touched and no transaction is written: the driver already holds the cash.
        """
        try:
            with transaction(db):
                driver = db.get(User, driver_id)
                if not driver or driver.role != Role.DRIVER:
                    raise Forbidden("Only drivers can create manual bookings")

                ride = BookingService._load_active_ride(db, ride_id)
                if ride.route.vehicle.user_id != driver_id:
                    raise Forbidden("You can only create manual bookings for your own vehicle")

                seat = BookingService.claim_seat(db, ride, seat_id)
                booking = BookingService._occupy(db, ride, seat, driver_id, Decimal(ride.route.price_per_seat))
        except Exception as e:
            handle(e)

        log_event(
            logger, "booking.manual_created",
            booking_id=booking.id, ride_id=ride_id, seat_id=seat_id, driver_id=driver_id,
        )
        return booking

    @staticmethod
    def list_passenger_bookings(db: Session, passenger_id: int, status: Optional[BookingStatus] = None) -> List[Booking]:
        """The passenger's bookings, newest first"""
        query = db.query(Booking).options(
            joinedload(Booking.ride).joinedload(Ride.route),
            joinedload(Booking.seat)
        ).filter(
            Booking.passenger_id == passenger_id,
            Booking.deleted_at.is_(None)
        )
        if status is not None:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.id.desc()).all()
