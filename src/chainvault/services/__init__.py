"""Application services."""

from chainvault.services.reconciler import ReconciliationRunner
from chainvault.services.swaps import COARSE_STATUS, SwapOrchestrator
from chainvault.services.transactions import TransactionService
from chainvault.services.wallets import WalletService

__all__ = [
    "COARSE_STATUS",
    "ReconciliationRunner",
    "SwapOrchestrator",
    "TransactionService",
    "WalletService",
]
