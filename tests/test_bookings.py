"""Tests for the booking engine: book, cancel, assign seat and cash bookings."""

from decimal import Decimal

import pytest

from src.bookings.booking_service import BookingService
from src.enums import BookingStatus, Role, SeatStatus, TransactionType
from src.exceptions import (
    Conflict, DriverSeatReserved, Forbidden, InsufficientFunds, InvalidSeat, InvalidState,
    NotFound, RideFull, SeatUnavailable
)
from src.models import Booking, Seat, Transaction
from src.rides.service import RideService, is_cash_booking
from src.vehicles.service import VehicleService
from src.wallets.service import WalletService


def confirmed_count(db, ride_id):
    return db.query(Booking).filter(
        Booking.ride_id == ride_id, Booking.status == BookingStatus.CONFIRMED
    ).count()


class TestBookSeat:

    def test_successful_booking_debits_wallet(self, db, passenger, ride, seats, fund):
        fund(passenger, 100)

        booking = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)

        assert booking.status == BookingStatus.CONFIRMED
        assert booking.total_price == Decimal("60.00")
        assert booking.seat_id == seats[2].id
        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("40.00")
        payment = db.query(Transaction).filter(
            Transaction.user_id == passenger.id,
            Transaction.type == TransactionType.BOOKING_PAYMENT
        ).one()
        assert payment.amount == Decimal("-60.00")
        assert payment.balance_before == Decimal("100.00")
        assert payment.balance_after == Decimal("40.00")
        assert payment.booking_id == booking.id
        db.refresh(seats[2])
        assert seats[2].status == SeatStatus.OCCUPIED
        db.refresh(ride)
        assert ride.available_seats == 6

    def test_insufficient_funds_changes_nothing(self, db, passenger, ride, seats, fund):
        fund(passenger, 30)

        with pytest.raises(InsufficientFunds):
            BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)

        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("30.00")
        assert db.query(Booking).count() == 0
        db.refresh(seats[2])
        assert seats[2].status == SeatStatus.AVAILABLE

    def test_wallet_created_lazily(self, db, passenger, ride, seats):
        with pytest.raises(InsufficientFunds):
            BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)

    def test_missing_ride(self, db, passenger, fund):
        fund(passenger, 100)
        with pytest.raises(NotFound):
            BookingService.book_seat(db, 9999, passenger.id)

    def test_completed_ride(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        RideService.complete_ride(db, ride.id, driver.id)
        with pytest.raises(InvalidState):
            BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)

    def test_driver_seat_never_bookable(self, db, passenger, ride, seats, fund):
        fund(passenger, 100)
        with pytest.raises(DriverSeatReserved):
            BookingService.book_seat(db, ride.id, passenger.id, seats[1].id)
        db.refresh(seats[1])
        assert seats[1].status == SeatStatus.AVAILABLE

    def test_seat_already_booked_on_ride(self, db, make_user, passenger, ride, seats, fund):
        other = make_user()
        fund(passenger, 100)
        fund(other, 100)
        BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)

        with pytest.raises(Conflict):
            BookingService.book_seat(db, ride.id, other.id, seats[2].id)
        assert WalletService.get_wallet(db, other.id).balance == Decimal("100.00")

    def test_seat_under_maintenance(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        VehicleService.update_seat_status(db, seats[4].id, SeatStatus.ON_MAINTENANCE, driver.id)
        with pytest.raises(SeatUnavailable):
            BookingService.book_seat(db, ride.id, passenger.id, seats[4].id)

    def test_missing_seat(self, db, passenger, ride, fund):
        fund(passenger, 100)
        with pytest.raises(NotFound):
            BookingService.book_seat(db, ride.id, passenger.id, 9999)

    def test_seat_from_other_vehicle(self, db, make_user, make_vehicle, passenger, ride, fund):
        other_vehicle = make_vehicle(make_user(Role.DRIVER), capacity=4)
        foreign_seat = VehicleService.get_seats(db, other_vehicle.id)[2]
        fund(passenger, 100)
        with pytest.raises(InvalidSeat):
            BookingService.book_seat(db, ride.id, passenger.id, foreign_seat.id)

    def test_driver_cannot_pay_for_own_ride(self, db, driver, ride, seats, fund):
        fund(driver, 100)
        with pytest.raises(Forbidden):
            BookingService.book_seat(db, ride.id, driver.id, seats[2].id)

    def test_seatless_booking(self, db, passenger, ride, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id)

        assert booking.seat_id is None
        db.refresh(ride)
        assert ride.available_seats == 6
        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("40.00")

    def test_full_vehicle(self, db, make_user, ride, seats, fund):
        """Capacity 7 leaves six bookable seats and one counter slot for the driver."""
        for seat_number in range(2, 8):
            passenger = make_user()
            fund(passenger, 60)
            BookingService.book_seat(db, ride.id, passenger.id, seats[seat_number].id)

        db.refresh(ride)
        assert ride.available_seats == 1

        late = make_user()
        fund(late, 60)
        with pytest.raises(NotFound):
            BookingService.book_seat(db, ride.id, late.id, 9999)
        with pytest.raises(DriverSeatReserved):
            BookingService.book_seat(db, ride.id, late.id, seats[1].id)
        with pytest.raises(Conflict):
            BookingService.book_seat(db, ride.id, late.id, seats[7].id)

    def test_counter_never_negative(self, db, make_user, driver, ride, fund):
        """Seatless bookings are bounded by the counter alone."""
        for _ in range(7):
            passenger = make_user()
            fund(passenger, 60)
            BookingService.book_seat(db, ride.id, passenger.id)

        late = make_user()
        fund(late, 60)
        with pytest.raises(RideFull):
            BookingService.book_seat(db, ride.id, late.id)
        db.refresh(ride)
        assert ride.available_seats == 0
        assert WalletService.get_wallet(db, late.id).balance == Decimal("60.00")

    def test_atomic_when_debit_fails(self, db, passenger, ride, seats, fund, monkeypatch):
        fund(passenger, 100)

        def broken_record(*args, **kwargs):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(WalletService, "record", staticmethod(broken_record))
        with pytest.raises(RuntimeError):
            BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)
        monkeypatch.undo()

        db.refresh(seats[2])
        db.refresh(ride)
        assert seats[2].status == SeatStatus.AVAILABLE
        assert ride.available_seats == 7
        assert db.query(Booking).count() == 0
        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("100.00")

    def test_seat_counter_consistency(self, db, make_user, driver, ride, seats, fund):
        bookings = []
        for seat_number in (2, 3, 4):
            passenger = make_user()
            fund(passenger, 100)
            bookings.append((passenger, BookingService.book_seat(db, ride.id, passenger.id, seats[seat_number].id)))
        BookingService.create_manual_booking(db, ride.id, seats[5].id, driver.id)
        passenger, booking = bookings[0]
        BookingService.cancel_booking(db, booking.id, passenger.id)

        db.refresh(ride)
        assert ride.available_seats == 7 - confirmed_count(db, ride.id) == 4


class TestIdempotency:

    def test_repeated_key_returns_original(self, db, passenger, ride, seats, fund):
        fund(passenger, 200)
        first = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id, idempotency_key="req-1")
        again = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id, idempotency_key="req-1")

        assert again.id == first.id
        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("140.00")
        assert db.query(Booking).count() == 1

    def test_key_reused_by_other_passenger(self, db, make_user, passenger, ride, seats, fund):
        other = make_user()
        fund(passenger, 100)
        fund(other, 100)
        BookingService.book_seat(db, ride.id, passenger.id, seats[2].id, idempotency_key="req-2")

        with pytest.raises(Conflict):
            BookingService.book_seat(db, ride.id, other.id, seats[3].id, idempotency_key="req-2")


class TestCancelBooking:

    def test_cancel_refunds_and_releases(self, db, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)

        BookingService.cancel_booking(db, booking.id, passenger.id)

        db.refresh(booking)
        db.refresh(seats[2])
        db.refresh(ride)
        assert booking.status == BookingStatus.CANCELLED
        assert seats[2].status == SeatStatus.AVAILABLE
        assert ride.available_seats == 7
        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("100.00")
        refund = WalletService.last_transaction(db, passenger.id)
        assert refund.type == TransactionType.BOOKING_REFUND
        assert refund.amount == Decimal("60.00")
        assert refund.booking_id == booking.id

    def test_second_cancel_never_refunds_twice(self, db, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)
        BookingService.cancel_booking(db, booking.id, passenger.id)

        with pytest.raises(InvalidState):
            BookingService.cancel_booking(db, booking.id, passenger.id)
        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("100.00")

    def test_only_passenger_may_cancel(self, db, make_user, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)
        with pytest.raises(Forbidden):
            BookingService.cancel_booking(db, booking.id, make_user().id)

    def test_completed_booking(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)
        RideService.complete_ride(db, ride.id, driver.id)
        with pytest.raises(InvalidState):
            BookingService.cancel_booking(db, booking.id, passenger.id)

    def test_missing_booking(self, db, passenger):
        with pytest.raises(NotFound):
            BookingService.cancel_booking(db, 9999, passenger.id)

    def test_refund_recreates_missing_wallet(self, db, passenger, ride, seats, fund):
        from src.models import Wallet

        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)
        db.query(Transaction).filter(Transaction.user_id == passenger.id).delete()
        db.query(Wallet).filter(Wallet.user_id == passenger.id).delete()
        db.commit()

        BookingService.cancel_booking(db, booking.id, passenger.id)

        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("60.00")

    def test_cash_booking_cancel_has_no_refund(self, db, driver, ride, seats):
        booking = BookingService.create_manual_booking(db, ride.id, seats[3].id, driver.id)

        BookingService.cancel_booking(db, booking.id, driver.id)

        db.refresh(ride)
        assert ride.available_seats == 7
        assert db.query(Transaction).filter(Transaction.user_id == driver.id).count() == 0


class TestAssignSeat:

    def test_assigns_seat_without_touching_money(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id)

        BookingService.assign_seat(db, booking.id, seats[4].id, driver.id)

        db.refresh(booking)
        db.refresh(seats[4])
        db.refresh(ride)
        assert booking.seat_id == seats[4].id
        assert seats[4].status == SeatStatus.OCCUPIED
        assert ride.available_seats == 6
        assert WalletService.get_wallet(db, passenger.id).balance == Decimal("40.00")

    def test_booking_already_seated(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)
        with pytest.raises(Conflict):
            BookingService.assign_seat(db, booking.id, seats[3].id, driver.id)

    def test_cancelled_booking(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id)
        BookingService.cancel_booking(db, booking.id, passenger.id)
        with pytest.raises(InvalidState):
            BookingService.assign_seat(db, booking.id, seats[3].id, driver.id)

    def test_seat_of_other_vehicle(self, db, make_user, make_vehicle, driver, passenger, ride, fund):
        other_vehicle = make_vehicle(make_user(Role.DRIVER), capacity=4)
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id)
        with pytest.raises(InvalidSeat):
            BookingService.assign_seat(db, booking.id, VehicleService.get_seats(db, other_vehicle.id)[1].id, driver.id)

    def test_seat_taken_on_ride(self, db, make_user, driver, passenger, ride, seats, fund):
        other = make_user()
        fund(passenger, 100)
        fund(other, 100)
        BookingService.book_seat(db, ride.id, other.id, seats[3].id)
        booking = BookingService.book_seat(db, ride.id, passenger.id)
        with pytest.raises(Conflict):
            BookingService.assign_seat(db, booking.id, seats[3].id, driver.id)

    def test_driver_seat(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id)
        with pytest.raises(DriverSeatReserved):
            BookingService.assign_seat(db, booking.id, seats[1].id, driver.id)

    def test_other_driver_forbidden(self, db, make_user, passenger, ride, seats, fund):
        fund(passenger, 100)
        booking = BookingService.book_seat(db, ride.id, passenger.id)
        with pytest.raises(Forbidden):
            BookingService.assign_seat(db, booking.id, seats[3].id, make_user(Role.DRIVER).id)


class TestManualBooking:

    def test_cash_booking_has_no_transaction(self, db, driver, ride, seats):
        booking = BookingService.create_manual_booking(db, ride.id, seats[3].id, driver.id)

        assert booking.passenger_id == driver.id
        assert booking.total_price == Decimal("60.00")
        assert is_cash_booking(booking, driver.id)
        db.refresh(seats[3])
        db.refresh(ride)
        assert seats[3].status == SeatStatus.OCCUPIED
        assert ride.available_seats == 6
        assert db.query(Transaction).count() == 0

    def test_requires_driver_role(self, db, passenger, ride, seats):
        with pytest.raises(Forbidden):
            BookingService.create_manual_booking(db, ride.id, seats[3].id, passenger.id)

    def test_only_own_vehicle(self, db, make_user, ride, seats):
        with pytest.raises(Forbidden):
            BookingService.create_manual_booking(db, ride.id, seats[3].id, make_user(Role.DRIVER).id)

    def test_driver_seat(self, db, driver, ride, seats):
        with pytest.raises(DriverSeatReserved):
            BookingService.create_manual_booking(db, ride.id, seats[1].id, driver.id)

    def test_seat_taken(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        BookingService.book_seat(db, ride.id, passenger.id, seats[3].id)
        with pytest.raises(Conflict):
            BookingService.create_manual_booking(db, ride.id, seats[3].id, driver.id)

    def test_inactive_ride(self, db, driver, ride, seats):
        RideService.complete_ride(db, ride.id, driver.id)
        with pytest.raises(InvalidState):
            BookingService.create_manual_booking(db, ride.id, seats[3].id, driver.id)


class TestNoDoubleBooking:

    def test_at_most_one_live_booking_per_seat(self, db, make_user, driver, ride, seats, fund):
        first = make_user()
        second = make_user()
        fund(first, 100)
        fund(second, 100)
        booking = BookingService.book_seat(db, ride.id, first.id, seats[2].id)
        BookingService.cancel_booking(db, booking.id, first.id)
        BookingService.book_seat(db, ride.id, second.id, seats[2].id)
        with pytest.raises(Conflict):
            BookingService.create_manual_booking(db, ride.id, seats[2].id, driver.id)

        live = db.query(Booking).filter(
            Booking.ride_id == ride.id,
            Booking.seat_id == seats[2].id,
            Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.COMPLETED])
        ).count()
        assert live == 1

    def test_driver_seat_never_occupied(self, db, driver, passenger, ride, seats, fund):
        fund(passenger, 100)
        for attempt in (
            lambda: BookingService.book_seat(db, ride.id, passenger.id, seats[1].id),
            lambda: BookingService.create_manual_booking(db, ride.id, seats[1].id, driver.id),
        ):
            with pytest.raises(InvalidSeat):
                attempt()
        db.refresh(seats[1])
        assert seats[1].status == SeatStatus.AVAILABLE
        assert db.query(Seat).filter(Seat.seat_number == 1, Seat.status == SeatStatus.OCCUPIED).count() == 0

    def test_listing_newest_first(self, db, passenger, ride, seats, fund):
        fund(passenger, 200)
        first = BookingService.book_seat(db, ride.id, passenger.id, seats[2].id)
        second = BookingService.book_seat(db, ride.id, passenger.id, seats[3].id)
        BookingService.cancel_booking(db, first.id, passenger.id)

        assert [b.id for b in BookingService.list_passenger_bookings(db, passenger.id)] == [second.id, first.id]
        confirmed = BookingService.list_passenger_bookings(db, passenger.id, BookingStatus.CONFIRMED)
        assert [b.id for b in confirmed] == [second.id]
