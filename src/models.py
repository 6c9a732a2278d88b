from sqlalchemy import Column, Integer, BigInteger, String, Date, DateTime, Text, ForeignKey, Numeric, Index, Enum, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from src.database import Base
from src.enums import (
    Role, SeatStatus, RideStatus, RideDirection, BookingStatus,
    TransactionType, TransactionStatus, PaymentMethod
)

# SQLite only autoincrements INTEGER PRIMARY KEY columns
Identifier = BigInteger().with_variant(Integer, "sqlite")


def enum_column(enum_class, **kwargs):
    return Column(Enum(enum_class, native_enum=False, length=32, validate_strings=True), **kwargs)

# ================================
# Users & Wallets
# ================================
class User(Base):
    __tablename__ = "users"

    id = Column(Identifier, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    role = enum_column(Role, nullable=False, default=Role.PASSENGER, index=True)
    phone = Column(String(32))
    address = Column(String(255))
    city = Column(String(100))
    state = Column(String(100))
    date_of_birth = Column(Date)
    # Driver credentials
    driver_id_number = Column(String(64))
    driver_license_number = Column(String(64))
    car_license_number = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    wallet = relationship("Wallet", back_populates="user", uselist=False)
    vehicle = relationship("Vehicle", back_populates="owner", uselist=False)
    bookings = relationship("Booking", back_populates="passenger")
    transactions = relationship("Transaction", back_populates="user", foreign_keys="Transaction.user_id")

class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(Identifier, primary_key=True, index=True)
    user_id = Column(Identifier, ForeignKey("users.id"), unique=True, nullable=False)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="wallet")

    __mapper_args__ = {"version_id_col": version}

class Transaction(Base):
    """Immutable ledger entry; balance_after == balance_before + amount"""
    __tablename__ = "transactions"

    id = Column(Identifier, primary_key=True, index=True)
    user_id = Column(Identifier, ForeignKey("users.id"), nullable=False, index=True)
    type = enum_column(TransactionType, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    balance_before = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    status = enum_column(TransactionStatus, nullable=False, default=TransactionStatus.COMPLETED)
    description = Column(Text)
    payment_method = enum_column(PaymentMethod)
    booking_id = Column(Identifier, ForeignKey("bookings.id"), index=True)
    ride_id = Column(Identifier, ForeignKey("rides.id"), index=True)
    recipient_id = Column(Identifier, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    deleted_at = Column(DateTime(timezone=True))

    # Relationships
    user = relationship("User", back_populates="transactions", foreign_keys=[user_id])
    recipient = relationship("User", foreign_keys=[recipient_id])
    booking = relationship("Booking")
    ride = relationship("Ride")

# ================================
# Vehicles, Seats & Routes
# ================================
class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Identifier, primary_key=True, index=True)
    user_id = Column(Identifier, ForeignKey("users.id"), unique=True, nullable=False)
    vehicle_number = Column(String(32), nullable=False, index=True)
    vehicle_type = Column(String(50), nullable=False)
    model = Column(String(100))
    capacity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True))

    # Relationships
    owner = relationship("User", back_populates="vehicle")
    route = relationship("Route", back_populates="vehicle", uselist=False)
    seats = relationship(
        "Seat",
        primaryjoin="and_(Vehicle.id == Seat.vehicle_id, Seat.deleted_at.is_(None))",
        order_by="Seat.seat_number",
        viewonly=True,
    )

class Seat(Base):
    __tablename__ = "seats"

    id = Column(Identifier, primary_key=True, index=True)
    vehicle_id = Column(Identifier, ForeignKey("vehicles.id"), nullable=False, index=True)
    seat_number = Column(Integer, nullable=False)
    code = Column(String(32), unique=True, nullable=False, index=True)
    status = enum_column(SeatStatus, nullable=False, default=SeatStatus.AVAILABLE)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True))

    # Relationships
    vehicle = relationship("Vehicle")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_driver_seat(self) -> bool:
        return self.seat_number == 1

class Route(Base):
    __tablename__ = "routes"

    id = Column(Identifier, primary_key=True, index=True)
    vehicle_id = Column(Identifier, ForeignKey("vehicles.id"), unique=True, nullable=False)
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    price_per_seat = Column(Numeric(10, 2), nullable=False)
    distance = Column(Numeric(8, 2))
    duration = Column(Integer)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True))

    # Relationships
    vehicle = relationship("Vehicle", back_populates="route")
    rides = relationship("Ride", back_populates="route")

# ================================
# Rides & Bookings
# ================================
class Ride(Base):
    __tablename__ = "rides"

    id = Column(Identifier, primary_key=True, index=True)
    route_id = Column(Identifier, ForeignKey("routes.id"), nullable=False, index=True)
    direction = enum_column(RideDirection, nullable=False, default=RideDirection.FORWARD)
    departure_time = Column(DateTime(timezone=True), nullable=False)
    available_seats = Column(Integer, nullable=False)
    status = enum_column(RideStatus, nullable=False, default=RideStatus.ACTIVE, index=True)
    completed_at = Column(DateTime(timezone=True))
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True))

    # Relationships
    route = relationship("Route", back_populates="rides")
    bookings = relationship("Booking", back_populates="ride")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        # At most one ACTIVE ride per route
        Index(
            "uq_rides_active_route",
            "route_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Identifier, primary_key=True, index=True)
    ride_id = Column(Identifier, ForeignKey("rides.id"), nullable=False, index=True)
    passenger_id = Column(Identifier, ForeignKey("users.id"), nullable=False, index=True)
    seat_id = Column(Identifier, ForeignKey("seats.id"), index=True)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = enum_column(BookingStatus, nullable=False, default=BookingStatus.CONFIRMED, index=True)
    idempotency_key = Column(String(64), unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True))

    # Relationships
    ride = relationship("Ride", back_populates="bookings")
    passenger = relationship("User", back_populates="bookings")
    seat = relationship("Seat")

    __table_args__ = (
        # A seat holds at most one live booking per ride
        Index(
            "uq_bookings_ride_seat_live",
            "ride_id",
            "seat_id",
            unique=True,
            sqlite_where=text("status IN ('CONFIRMED', 'COMPLETED') AND seat_id IS NOT NULL"),
            postgresql_where=text("status IN ('CONFIRMED', 'COMPLETED') AND seat_id IS NOT NULL"),
        ),
    )
