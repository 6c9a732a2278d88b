from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from src.enums import PaymentMethod, TransactionStatus, TransactionType, TransferDestination

# Request Models
class ChargeRequest(BaseModel):
    """Deposit through a payment method"""
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod

class TestFundsRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)

class WithdrawRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)

class TransferRequest(BaseModel):
    """Email for WALLET transfers, phone number for e-wallet destinations"""
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    destination: TransferDestination
    recipient_identifier: str = Field(..., min_length=1, max_length=255)

# Response Models
class TransactionOut(BaseModel):
    id: int
    type: TransactionType
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    status: TransactionStatus
    description: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    booking_id: Optional[int] = None
    ride_id: Optional[int] = None
    recipient_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class WalletOut(BaseModel):
    user_id: int
    balance: Decimal
    transactions: List[TransactionOut] = []

class WalletActionResult(BaseModel):
    success: bool
    message: str
    new_balance: Optional[Decimal] = None
    transaction: Optional[TransactionOut] = None

class WalletDiscrepancy(BaseModel):
    user_id: int
    balance: Decimal
    expected_balance: Decimal
    last_transaction_id: Optional[int] = None

class ReconciliationReport(BaseModel):
    consistent: bool
    discrepancies: List[WalletDiscrepancy]
