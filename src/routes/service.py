import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from src.database import transaction
from src.exceptions import Conflict, PreconditionFailed, ValidationError
from src.loggers import log_event
from src.models import Route, Vehicle
from src.routes.schemas import RouteRegistration
from src.vehicles.service import VehicleService

logger = logging.getLogger(__name__)


class RouteService:
    """A driver's single fixed route"""

    @staticmethod
    def get_route(db: Session, route_id: int) -> Optional[Route]:
        return db.query(Route).filter(
            Route.id == route_id,
            Route.deleted_at.is_(None)
        ).first()

    @staticmethod
    def get_route_by_vehicle(db: Session, vehicle_id: int) -> Optional[Route]:
        return db.query(Route).filter(
            Route.vehicle_id == vehicle_id,
            Route.deleted_at.is_(None)
        ).first()

    @staticmethod
    def get_route_by_owner(db: Session, user_id: int) -> Optional[Route]:
        return db.query(Route).join(Vehicle, Route.vehicle_id == Vehicle.id).filter(
            Vehicle.user_id == user_id,
            Vehicle.deleted_at.is_(None),
            Route.deleted_at.is_(None)
        ).first()

    @staticmethod
    def register_route(db: Session, user_id: int, registration: RouteRegistration) -> Route:
        """Register the route for the user's vehicle; a vehicle has at most one"""
        origin = (registration.origin or "").strip()
        destination = (registration.destination or "").strip()
        if not origin or not destination or registration.price_per_seat is None:
            raise ValidationError("Origin, destination, and price per seat are required")
        price = Decimal(registration.price_per_seat)
        if not price.is_finite() or price < 0:
            raise ValidationError("Price must be a valid positive number")
        if registration.distance is not None and registration.distance < 0:
            raise ValidationError("Distance must be a valid positive number")
        if registration.duration is not None and registration.duration < 0:
            raise ValidationError("Duration must be a valid positive number")

        with transaction(db):
            vehicle = VehicleService.get_vehicle_by_owner(db, user_id)
            if not vehicle:
                raise PreconditionFailed("You need to register a vehicle first")
            # The unique vehicle_id catches a concurrent registration at commit
            if RouteService.get_route_by_vehicle(db, vehicle.id):
                raise Conflict(
                    "You can only register one route for your vehicle. "
                    "Please update your existing route instead."
                )

            route = Route(
                vehicle_id=vehicle.id,
                origin=origin,
                destination=destination,
                price_per_seat=price,
                distance=registration.distance,
                duration=registration.duration,
                description=(registration.description or "").strip() or None,
            )
            db.add(route)

        log_event(logger, "route.registered", route_id=route.id, vehicle_id=vehicle.id, price=price)
        return route
