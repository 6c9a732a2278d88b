from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user, require_admin
from src.database import get_db
from src.wallets.schemas import (
    ChargeRequest, TestFundsRequest, WithdrawRequest, TransferRequest,
    WalletOut, WalletActionResult, ReconciliationReport, TransactionOut
)
from src.wallets.service import WalletService, format_money

router = APIRouter()

def _result(db: Session, user_id: int, message: str, entry) -> WalletActionResult:
    wallet = WalletService.get_wallet(db, user_id)
    return WalletActionResult(
        success=True,
        message=message,
        new_balance=wallet.balance if wallet else None,
        transaction=TransactionOut.model_validate(entry),
    )

@router.get("/", response_model=WalletOut)
def get_wallet(current_user = Depends(get_current_user), db: Session = Depends(get_db)):
    """Wallet balance and recent transactions"""
    wallet, transactions = WalletService.get_wallet_data(db, current_user.id)
    return WalletOut(
        user_id=current_user.id,
        balance=wallet.balance,
        transactions=[TransactionOut.model_validate(t) for t in transactions],
    )

@router.post("/charge", response_model=WalletActionResult)
def charge_wallet(
    request: ChargeRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Deposit money through a payment method"""
    entry = WalletService.charge_wallet(db, current_user.id, request.amount, request.payment_method)
    return _result(db, current_user.id, f"Successfully added {format_money(entry.amount)} to your wallet", entry)

@router.post("/test-funds", response_model=WalletActionResult)
def add_test_funds(
    request: TestFundsRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Test-mode top-up, no payment processing"""
    entry = WalletService.add_test_funds(db, current_user.id, request.amount)
    return _result(db, current_user.id, f"Successfully added {format_money(entry.amount)} to your wallet!", entry)

@router.post("/withdraw", response_model=WalletActionResult)
def withdraw_money(
    request: WithdrawRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    entry = WalletService.withdraw(db, current_user.id, request.amount)
    return _result(db, current_user.id, f"Successfully withdrew {format_money(-entry.amount)} from your wallet", entry)

@router.post("/transfer", response_model=WalletActionResult)
def transfer_money(
    request: TransferRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    entry = WalletService.transfer(
        db, current_user.id, request.amount, request.destination, request.recipient_identifier
    )
    return _result(db, current_user.id, f"Successfully transferred {format_money(-entry.amount)}", entry)

@router.get("/reconcile", response_model=ReconciliationReport)
def reconcile_wallets(current_user = Depends(require_admin), db: Session = Depends(get_db)):
    """Check every wallet against its ledger"""
    discrepancies = WalletService.find_discrepancies(db)
    return ReconciliationReport(consistent=not discrepancies, discrepancies=discrepancies)
