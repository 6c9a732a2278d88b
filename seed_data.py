#!/usr/bin/env python3
"""
Demo data for the SeatRide platform.

Creates an admin, a driver with a registered vehicle and route, and a
passenger with a funded wallet. Safe to run more than once: existing demo
users are left untouched.

Usage:
    python seed_data.py
"""

from decimal import Decimal

from src.auth.utils import get_password_hash
from src.database import SessionLocal, init_db
from src.enums import PaymentMethod, Role
from src.models import User
from src.routes.schemas import RouteRegistration
from src.routes.service import RouteService
from src.vehicles.schemas import VehicleRegistration
from src.vehicles.service import VehicleService
from src.wallets.service import WalletService

DEMO_PASSWORD = "password123"

def get_or_create_user(db, name: str, email: str, role: Role, phone: str = None) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        print(f"✅ {email} already exists, skipping...")
        return user

    user = User(
        name=name,
        email=email,
        password=get_password_hash(DEMO_PASSWORD),
        role=role,
        phone=phone,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"Created {role.value.lower()} {email}")
    return user

def create_seed_data():
    init_db()
    db = SessionLocal()

    try:
        print("🚀 Creating seed data for SeatRide...")

        get_or_create_user(db, "Platform Admin", "admin@seatride.example", Role.ADMIN)
        driver = get_or_create_user(db, "Demo Driver", "driver@seatride.example", Role.DRIVER, "01000000001")
        passenger = get_or_create_user(db, "Demo Passenger", "passenger@seatride.example", Role.PASSENGER, "01000000002")

        print("Registering vehicle...")
        vehicle = VehicleService.get_vehicle_by_owner(db, driver.id)
        if not vehicle:
            vehicle = VehicleService.register_vehicle(db, driver.id, VehicleRegistration(
                vehicle_number="ABC 1234",
                vehicle_type="Microbus",
                model="Toyota HiAce",
                capacity=14,
            ))

        print("Registering route...")
        route = RouteService.get_route_by_vehicle(db, vehicle.id)
        if not route:
            route = RouteService.register_route(db, driver.id, RouteRegistration(
                origin="Ramses Square",
                destination="Nasr City",
                price_per_seat=Decimal("15.00"),
                distance=Decimal("12.5"),
                duration=40,
                description="Via 6th of October Bridge",
            ))

        print("Funding passenger wallet...")
        wallet = WalletService.get_wallet(db, passenger.id)
        if not wallet or wallet.balance == 0:
            WalletService.charge_wallet(db, passenger.id, Decimal("200.00"), PaymentMethod.DEBIT_CARD)

        seats = VehicleService.get_seats(db, vehicle.id)
        print("✅ Successfully created seed data for SeatRide!")
        print(f"Created:")
        print(f"  - vehicle {vehicle.vehicle_number} with {len(seats)} seats")
        print(f"  - route {route.origin} -> {route.destination} at {route.price_per_seat} per seat")
        print(f"  - demo users share the password '{DEMO_PASSWORD}'")
        for seat in seats[:3]:
            print(f"  - seat #{seat.seat_number} code {seat.code}")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
