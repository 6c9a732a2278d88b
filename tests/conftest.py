"""Shared fixtures: an in-memory database, user/vehicle/route/ride factories and an API client."""

import itertools
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from src import models  # noqa: F401
from src.auth.utils import create_access_token, get_password_hash
from src.database import Base, build_engine, get_db
from src.enums import Role
from src.routes.schemas import RouteRegistration
from src.routes.service import RouteService
from src.rides.service import RideService
from src.vehicles.schemas import VehicleRegistration
from src.vehicles.service import VehicleService
from src.wallets.service import WalletService

TEST_PASSWORD = "secret123"
ROUTE_PRICE = Decimal("60.00")

_counter = itertools.count(1)


@pytest.fixture(scope="session")
def password_hash():
    """Hashing is slow, so every test user shares one hash."""
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def make_user(db, password_hash):
    """Factory for committed users."""
    def _make_user(role=Role.PASSENGER, name=None, email=None):
        n = next(_counter)
        user = models.User(
            name=name or f"{role.value.title()} {n}",
            email=email or f"{role.value.lower()}{n}@example.com",
            password=password_hash,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def driver(make_user):
    return make_user(Role.DRIVER)


@pytest.fixture
def passenger(make_user):
    return make_user(Role.PASSENGER)


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN)


@pytest.fixture
def fund(db):
    """Factory topping up a user's wallet through the ledger."""
    def _fund(user, amount):
        WalletService.add_test_funds(db, user.id, Decimal(str(amount)))
        return WalletService.get_wallet(db, user.id)
    return _fund


@pytest.fixture
def make_vehicle(db):
    def _make_vehicle(owner, capacity=7, plate=None):
        return VehicleService.register_vehicle(db, owner.id, VehicleRegistration(
            vehicle_number=plate or f"ABC {next(_counter)}",
            vehicle_type="Microbus",
            model="Toyota HiAce",
            capacity=capacity,
        ))
    return _make_vehicle


@pytest.fixture
def vehicle(make_vehicle, driver):
    """Seven seats: the driver's plus six bookable ones."""
    return make_vehicle(driver, capacity=7, plate="ABC 123")


@pytest.fixture
def make_route(db):
    def _make_route(owner, price=ROUTE_PRICE):
        return RouteService.register_route(db, owner.id, RouteRegistration(
            origin="Ramses",
            destination="Nasr City",
            price_per_seat=Decimal(str(price)),
            distance=Decimal("12.5"),
            duration=40,
        ))
    return _make_route


@pytest.fixture
def route(make_route, driver, vehicle):
    return make_route(driver)


@pytest.fixture
def ride(db, driver, route):
    return RideService.start_ride(db, driver.id)


@pytest.fixture
def seats(db, vehicle):
    """The vehicle's seats indexed by seat number."""
    return {seat.seat_number: seat for seat in VehicleService.get_seats(db, vehicle.id)}


@pytest.fixture
def client(db):
    """API client sharing the test session."""
    from src.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token({"sub": str(user.id), "role": user.role.value})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
