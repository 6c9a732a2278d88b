"""
Wallet & Ledger Module

Per-user wallet balances and the append-only transaction ledger behind them.

Key Components:
- service.py: get-or-create wallet, the single balance-changing primitive
  (``WalletService.record``), deposits, withdrawals, transfers, reconciliation
- router.py: FastAPI endpoints for the current user's wallet
- schemas.py: Pydantic models for wallet requests and responses

Every balance change appends a Transaction whose ``balance_after`` equals
``balance_before + amount``; a wallet's balance always equals the
``balance_after`` of its user's newest transaction, or 0 when there is none.
"""

from .router import router
from .service import WalletService, to_money, format_money

__all__ = [
    "router",
    "WalletService",
    "to_money",
    "format_money",
]
