import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from src.config import settings
from src.database import transaction
from src.enums import RideStatus, SeatStatus
from src.exceptions import Conflict, Forbidden, NotFound, ValidationError
from src.loggers import log_event
from src.models import Ride, Route, Seat, User, Vehicle
from src.vehicles.schemas import VehicleRegistration
from src.vehicles.seat_codes import generate_unique_seat_code

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_plate(plate: str) -> str:
    """Plates are stored and looked up upper-cased with all whitespace removed"""
    return _WHITESPACE.sub("", plate or "").upper()


class VehicleService:
    """Driver vehicles and the seats they own"""

    @staticmethod
    def get_vehicle_by_owner(db: Session, user_id: int) -> Optional[Vehicle]:
        return db.query(Vehicle).filter(
            Vehicle.user_id == user_id,
            Vehicle.deleted_at.is_(None)
        ).first()

    @staticmethod
    def get_vehicle_by_plate(db: Session, plate: str) -> Optional[Vehicle]:
        return db.query(Vehicle).filter(
            Vehicle.vehicle_number == normalize_plate(plate),
            Vehicle.deleted_at.is_(None)
        ).first()

    @staticmethod
    def get_seat(db: Session, seat_id: int, lock: bool = False) -> Optional[Seat]:
        query = db.query(Seat).filter(Seat.id == seat_id, Seat.deleted_at.is_(None))
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_seats(db: Session, vehicle_id: int) -> List[Seat]:
        return db.query(Seat).filter(
            Seat.vehicle_id == vehicle_id,
            Seat.deleted_at.is_(None)
        ).order_by(Seat.seat_number).all()

    @staticmethod
    def register_vehicle(db: Session, user_id: int, registration: VehicleRegistration) -> Vehicle:
        """Create the user's vehicle, or update it if one is already registered.

        Seats are (re)provisioned when the vehicle is created and whenever the
        capacity changes.
        """
        vehicle_number = normalize_plate(registration.vehicle_number)
        vehicle_type = (registration.vehicle_type or "").strip()
        if not vehicle_number or not vehicle_type:
            raise ValidationError("Vehicle number, type, and seating capacity are required")
        capacity = registration.capacity
        if not settings.MIN_VEHICLE_CAPACITY <= capacity <= settings.MAX_VEHICLE_CAPACITY:
            raise ValidationError(
                f"Seating capacity must be between {settings.MIN_VEHICLE_CAPACITY} "
                f"and {settings.MAX_VEHICLE_CAPACITY}"
            )

        with transaction(db):
            if db.get(User, user_id) is None:
                raise NotFound("User not found")

            plate_owner = VehicleService.get_vehicle_by_plate(db, vehicle_number)
            if plate_owner and plate_owner.user_id != user_id:
                raise Conflict("A vehicle with this plate number is already registered")

            vehicle = db.query(Vehicle).filter(
                Vehicle.user_id == user_id,
                Vehicle.deleted_at.is_(None)
            ).with_for_update().first()

            if vehicle is None:
                vehicle = Vehicle(
                    user_id=user_id,
                    vehicle_number=vehicle_number,
                    vehicle_type=vehicle_type,
                    model=(registration.model or "").strip() or None,
                    capacity=capacity,
                )
                db.add(vehicle)
                db.flush()
                VehicleService.provision_seats(db, vehicle.id, capacity)
                event = "vehicle.registered"
            else:
                capacity_changed = vehicle.capacity != capacity or len(VehicleService.get_seats(db, vehicle.id)) != capacity
                if capacity_changed:
                    VehicleService._ensure_no_active_ride(db, vehicle.id)
                vehicle.vehicle_number = vehicle_number
                vehicle.vehicle_type = vehicle_type
                vehicle.model = (registration.model or "").strip() or None
                vehicle.capacity = capacity
                if capacity_changed:
                    VehicleService.provision_seats(db, vehicle.id, capacity)
                event = "vehicle.updated"

        log_event(logger, event, vehicle_id=vehicle.id, user_id=user_id, capacity=capacity)
        return vehicle

    @staticmethod
    def _ensure_no_active_ride(db: Session, vehicle_id: int) -> None:
        active = db.query(Ride.id).join(Route, Ride.route_id == Route.id).filter(
            Route.vehicle_id == vehicle_id,
            Ride.status == RideStatus.ACTIVE,
            Ride.deleted_at.is_(None)
        ).first()
        if active is not None:
            raise Conflict("Cannot change seating capacity while a ride is active")

    @staticmethod
    def provision_seats(db: Session, vehicle_id: int, capacity: int) -> List[Seat]:
        """Replace the vehicle's seats with ``capacity`` fresh AVAILABLE seats.

        Previous seats are soft-deleted so bookings that reference them keep a
        valid foreign key. Seat 1 is the driver's seat.
        """
        now = datetime.now(timezone.utc)
        for seat in VehicleService.get_seats(db, vehicle_id):
            seat.deleted_at = now
        db.flush()

        taken = set()
        seats = []
        for seat_number in range(1, capacity + 1):
            seat = Seat(
                vehicle_id=vehicle_id,
                seat_number=seat_number,
                code=generate_unique_seat_code(db, taken),
                status=SeatStatus.AVAILABLE,
            )
            db.add(seat)
            seats.append(seat)
        db.flush()
        return seats

    @staticmethod
    def update_seat_status(db: Session, seat_id: int, new_status: SeatStatus, requester_id: int) -> Seat:
        """Set a seat's status; only the vehicle owner may do so"""
        try:
            new_status = SeatStatus(new_status)
        except ValueError:
            raise ValidationError("Invalid seat status")

        with transaction(db):
            seat = VehicleService.get_seat(db, seat_id, lock=True)
            if not seat:
                raise NotFound("Seat not found")
            if seat.vehicle.user_id != requester_id:
                raise Forbidden("You can only update seats in your own vehicle")
            seat.status = new_status

        log_event(logger, "seat.status_updated", seat_id=seat_id, status=new_status.value)
        return seat
