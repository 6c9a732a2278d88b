from enum import Enum


class Role(str, Enum):
    """User role enumeration"""
    DRIVER = "DRIVER"
    PASSENGER = "PASSENGER"
    ADMIN = "ADMIN"


class SeatStatus(str, Enum):
    """Vehicle-level seat status"""
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    ON_MAINTENANCE = "ON_MAINTENANCE"


class RideStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class RideDirection(str, Enum):
    """FORWARD runs origin -> destination, RETURN the reverse"""
    FORWARD = "FORWARD"
    RETURN = "RETURN"


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class TransactionType(str, Enum):
    """Ledger entry types"""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    BOOKING_PAYMENT = "BOOKING_PAYMENT"
    BOOKING_REFUND = "BOOKING_REFUND"
    RIDE_EARNING = "RIDE_EARNING"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    """Payment method tags recorded on ledger entries"""
    DEBIT_CARD = "DEBIT_CARD"
    CREDIT_CARD = "CREDIT_CARD"
    INSTAPAY = "INSTAPAY"
    VODAFONE_CASH = "VODAFONE_CASH"
    ETISALAT_CASH = "ETISALAT_CASH"
    ORANGE_CASH = "ORANGE_CASH"
    WALLET_TRANSFER = "WALLET_TRANSFER"
    ATM = "ATM"


# Methods a passenger may pick when charging a wallet
CHARGE_METHODS = (
    PaymentMethod.DEBIT_CARD,
    PaymentMethod.CREDIT_CARD,
    PaymentMethod.INSTAPAY,
    PaymentMethod.VODAFONE_CASH,
    PaymentMethod.ETISALAT_CASH,
    PaymentMethod.ORANGE_CASH,
)


class TransferDestination(str, Enum):
    WALLET = "WALLET"
    VODAFONE_CASH = "VODAFONE_CASH"
    ETISALAT_CASH = "ETISALAT_CASH"
    ORANGE_CASH = "ORANGE_CASH"
