"""Wallet and transaction persistence."""

from chainvault.store.base import (
    NewTransaction,
    NewWallet,
    TransactionKind,
    TransactionRecord,
    TransactionStatus,
    WalletRecord,
    WalletStore,
)
from chainvault.store.factory import create_store
from chainvault.store.memory import InMemoryWalletStore
from chainvault.store.sql import SqlWalletStore

__all__ = [
    "InMemoryWalletStore",
    "NewTransaction",
    "NewWallet",
    "SqlWalletStore",
    "TransactionKind",
    "TransactionRecord",
    "TransactionStatus",
    "WalletRecord",
    "WalletStore",
    "create_store",
]
