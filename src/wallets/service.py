import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.config import settings
from src.database import transaction
from src.enums import (
    CHARGE_METHODS, PaymentMethod, TransactionStatus, TransactionType, TransferDestination
)
from src.exceptions import InsufficientFunds, NotFound, ValidationError
from src.loggers import log_event
from src.models import Transaction, User, Wallet

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Parse ``value`` as a positive amount rounded to cents"""
    try:
        amount = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Amount must be a positive number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be a positive number")
    return amount


def format_money(amount: Decimal) -> str:
    return f"{Decimal(amount):.2f} {settings.CURRENCY}"


class WalletService:
    """Wallet balances and their append-only transaction ledger"""

    @staticmethod
    def get_wallet(db: Session, user_id: int, lock: bool = False) -> Optional[Wallet]:
        query = db.query(Wallet).filter(Wallet.user_id == user_id)
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_or_create_wallet(db: Session, user_id: int, lock: bool = True) -> Wallet:
        """Return the user's wallet, creating an empty one on first use.

        Two requests racing to create the same wallet collide on the unique
        ``user_id``; the loser rolls back its savepoint and reads the winner's row.
        """
        wallet = WalletService.get_wallet(db, user_id, lock=lock)
        if wallet:
            return wallet

        if db.get(User, user_id) is None:
            raise NotFound("User not found")

        try:
            with db.begin_nested():
                wallet = Wallet(user_id=user_id, balance=Decimal("0"))
                db.add(wallet)
                db.flush()
        except IntegrityError:
            wallet = WalletService.get_wallet(db, user_id, lock=lock)
        return wallet

    @staticmethod
    def record(
        db: Session,
        wallet: Wallet,
        amount: Decimal,
        transaction_type: TransactionType,
        description: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None,
        booking_id: Optional[int] = None,
        ride_id: Optional[int] = None,
        recipient_id: Optional[int] = None,
    ) -> Transaction:
        """Apply a signed ``amount`` to ``wallet`` and append its ledger row.

        This is the only place a wallet balance changes. The caller is
        expected to hold a lock on ``wallet`` and to run inside ``transaction()``.
        """
        balance_before = Decimal(wallet.balance)
        balance_after = balance_before + Decimal(amount)

        wallet.balance = balance_after
        entry = Transaction(
            user_id=wallet.user_id,
            type=transaction_type,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            status=TransactionStatus.COMPLETED,
            description=description,
            payment_method=payment_method,
            booking_id=booking_id,
            ride_id=ride_id,
            recipient_id=recipient_id,
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def charge_wallet(db: Session, user_id: int, amount, payment_method: PaymentMethod) -> Transaction:
        """Deposit money through one of the supported payment methods"""
        amount = to_money(amount)
        try:
            payment_method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError("Invalid payment method")
        if payment_method not in CHARGE_METHODS:
            raise ValidationError("Invalid payment method")

        with transaction(db):
            wallet = WalletService.get_or_create_wallet(db, user_id)
            entry = WalletService.record(
                db, wallet, amount, TransactionType.DEPOSIT,
                description=f"Deposit via {payment_method.value.replace('_', ' ')}",
                payment_method=payment_method,
            )

        log_event(logger, "wallet.charged", user_id=user_id, amount=amount, method=payment_method.value)
        return entry

    @staticmethod
    def add_test_funds(db: Session, user_id: int, amount) -> Transaction:
        """Test-mode top-up without a payment method"""
        amount = to_money(amount)
        if amount > settings.MAX_TEST_CHARGE_AMOUNT:
            raise ValidationError(f"Maximum charge amount is {format_money(settings.MAX_TEST_CHARGE_AMOUNT)}")

        with transaction(db):
            wallet = WalletService.get_or_create_wallet(db, user_id)
            entry = WalletService.record(
                db, wallet, amount, TransactionType.DEPOSIT,
                description=f"Test wallet charge - Added {format_money(amount)}",
            )

        log_event(logger, "wallet.test_funds", user_id=user_id, amount=amount)
        return entry

    @staticmethod
    def withdraw(db: Session, user_id: int, amount) -> Transaction:
        amount = to_money(amount)

        with transaction(db):
            wallet = WalletService.get_wallet(db, user_id, lock=True)
            if not wallet:
                raise NotFound("Wallet not found. Please create a wallet first.")
            if wallet.balance < amount:
                raise InsufficientFunds(f"Insufficient balance. Available: {format_money(wallet.balance)}")

            entry = WalletService.record(
                db, wallet, -amount, TransactionType.WITHDRAWAL,
                description="ATM Withdrawal",
                payment_method=PaymentMethod.ATM,
            )

        log_event(logger, "wallet.withdrawn", user_id=user_id, amount=amount)
        return entry

    @staticmethod
    def transfer(
        db: Session,
        sender_id: int,
        amount,
        destination: TransferDestination,
        recipient_identifier: str,
    ) -> Transaction:
        """Move money to another user's wallet (by email) or out to an e-wallet (by phone)"""
        amount = to_money(amount)
        try:
            destination = TransferDestination(destination)
        except ValueError:
            raise ValidationError("Invalid transfer destination")
        if not recipient_identifier or not recipient_identifier.strip():
            raise ValidationError("Amount, destination, and recipient identifier are required")
        recipient_identifier = recipient_identifier.strip()

        with transaction(db):
            if destination == TransferDestination.WALLET:
                entry = WalletService._transfer_to_wallet(db, sender_id, amount, recipient_identifier)
            else:
                sender_wallet = WalletService._sender_wallet(db, sender_id, amount)
                entry = WalletService.record(
                    db, sender_wallet, -amount, TransactionType.TRANSFER_OUT,
                    description=f"Transfer to {destination.value.replace('_', ' ')} ({recipient_identifier})",
                    payment_method=PaymentMethod(destination.value),
                )

        log_event(
            logger, "wallet.transferred",
            sender_id=sender_id, amount=amount, destination=destination.value,
        )
        return entry

    @staticmethod
    def _sender_wallet(db: Session, sender_id: int, amount: Decimal) -> Wallet:
        wallet = WalletService.get_wallet(db, sender_id, lock=True)
        if not wallet:
            raise NotFound("Wallet not found. Please create a wallet first.")
        if wallet.balance < amount:
            raise InsufficientFunds(f"Insufficient balance. Available: {format_money(wallet.balance)}")
        return wallet

    @staticmethod
    def _transfer_to_wallet(db: Session, sender_id: int, amount: Decimal, email: str) -> Transaction:
        recipient = db.query(User).filter(User.email == email.lower()).first()
        if not recipient:
            raise NotFound("Recipient not found")
        if recipient.id == sender_id:
            raise ValidationError("Cannot transfer to yourself")
        sender = db.get(User, sender_id)

        # Lock both wallets in id order so opposite transfers cannot deadlock
        if sender_id < recipient.id:
            sender_wallet = WalletService._sender_wallet(db, sender_id, amount)
            recipient_wallet = WalletService.get_or_create_wallet(db, recipient.id)
        else:
            recipient_wallet = WalletService.get_or_create_wallet(db, recipient.id)
            sender_wallet = WalletService._sender_wallet(db, sender_id, amount)

        entry = WalletService.record(
            db, sender_wallet, -amount, TransactionType.TRANSFER_OUT,
            description=f"Transfer to {recipient.name} ({recipient.email})",
            payment_method=PaymentMethod.WALLET_TRANSFER,
            recipient_id=recipient.id,
        )
        WalletService.record(
            db, recipient_wallet, amount, TransactionType.TRANSFER_IN,
            description=f"Transfer from {sender.name} ({sender.email})",
            payment_method=PaymentMethod.WALLET_TRANSFER,
        )
        return entry

    @staticmethod
    def get_wallet_data(db: Session, user_id: int, limit: int = None) -> Tuple[Wallet, List[Transaction]]:
        """Balance plus the most recent transactions, newest first"""
        with transaction(db):
            wallet = WalletService.get_or_create_wallet(db, user_id, lock=False)
            transactions = db.query(Transaction).filter(
                Transaction.user_id == user_id,
                Transaction.deleted_at.is_(None)
            ).order_by(Transaction.id.desc()).limit(limit or settings.TRANSACTION_HISTORY_LIMIT).all()
        return wallet, transactions

    @staticmethod
    def last_transaction(db: Session, user_id: int) -> Optional[Transaction]:
        return db.query(Transaction).filter(
            Transaction.user_id == user_id
        ).order_by(Transaction.id.desc()).first()

    @staticmethod
    def find_discrepancies(db: Session) -> List[Dict]:
        """Wallets whose balance differs from their last ledger entry's balance_after"""
        discrepancies = []
        for wallet in db.query(Wallet).order_by(Wallet.user_id).all():
            last = WalletService.last_transaction(db, wallet.user_id)
            expected = Decimal(last.balance_after) if last else Decimal("0")
            if Decimal(wallet.balance) != expected:
                discrepancies.append({
                    "user_id": wallet.user_id,
                    "balance": Decimal(wallet.balance),
                    "expected_balance": expected,
                    "last_transaction_id": last.id if last else None,
                })

        if discrepancies:
            logger.warning(f"wallet.reconcile found {len(discrepancies)} discrepancies")
        return discrepancies
