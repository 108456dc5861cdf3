"""In-memory wallet store for development and tests.

Records live in dicts guarded by a single asyncio.Lock. Callers always get
copies, so mutating a returned record never changes stored state.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from chainvault.exceptions import StoreNotConnected, WalletNotFound
from chainvault.keygen.base import BitcoinNetwork
from chainvault.store.base import (
    TRANSACTION_UPDATE_FIELDS,
    WALLET_UPDATE_FIELDS,
    NewTransaction,
    NewWallet,
    TransactionRecord,
    TransactionStatus,
    WalletRecord,
    WalletStore,
    check_status_transition,
    check_update_fields,
    normalize_amount,
    validate_new_transaction,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryWalletStore(WalletStore):
    """Wallet store kept entirely in process memory."""

    def __init__(self):
        self._wallets: dict[int, WalletRecord] = {}
        self._transactions: dict[int, TransactionRecord] = {}
        self._wallet_id_counter = 1
        self._transaction_id_counter = 1
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "memory"

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._connected:
            return
        self._connected = True
        logger.info("Connected to in-memory wallet store")

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        logger.info("Disconnected from in-memory wallet store")

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise StoreNotConnected("Wallet store not connected. Call connect() first.")

    # Wallet operations
    async def create_wallet(self, owner_id: str, wallet: NewWallet) -> WalletRecord:
        self._ensure_connected()
        async with self._lock:
            now = _now()
            record = WalletRecord(
                id=self._wallet_id_counter,
                owner_id=owner_id,
                chain_kind=wallet.chain_kind,
                public_address=wallet.public_address,
                encrypted_secret=wallet.encrypted_secret,
                network=wallet.network,
                evm_chain_id=wallet.evm_chain_id,
                created_at=now,
                updated_at=now,
            )
            self._wallet_id_counter += 1
            self._wallets[record.id] = record
            return replace(record)

    async def get_wallet_by_id(self, wallet_id: int) -> Optional[WalletRecord]:
        self._ensure_connected()
        async with self._lock:
            wallet = self._wallets.get(wallet_id)
            return replace(wallet) if wallet else None

    async def get_wallet(self, owner_id: str, address: str) -> Optional[WalletRecord]:
        self._ensure_connected()
        async with self._lock:
            for wallet in self._wallets.values():
                if wallet.owner_id == owner_id and wallet.public_address.lower() == address.lower():
                    return replace(wallet)
            return None

    async def get_wallets_by_owner(self, owner_id: str) -> list[WalletRecord]:
        self._ensure_connected()
        async with self._lock:
            return [replace(w) for w in self._wallets.values() if w.owner_id == owner_id]

    async def get_wallets_by_evm_chain_id(self, owner_id: str, chain_id: int) -> list[WalletRecord]:
        self._ensure_connected()
        async with self._lock:
            return [
                replace(w)
                for w in self._wallets.values()
                if w.owner_id == owner_id and w.evm_chain_id == chain_id
            ]

    async def update_wallet(self, wallet_id: int, **fields) -> bool:
        self._ensure_connected()
        check_update_fields(fields, WALLET_UPDATE_FIELDS, "wallet")
        async with self._lock:
            wallet = self._wallets.get(wallet_id)
            if wallet is None:
                return False
            if fields.get("network"):
                fields["network"] = BitcoinNetwork(fields["network"])
            self._wallets[wallet_id] = replace(wallet, **fields, updated_at=_now())
            return True

    async def delete_wallet(self, wallet_id: int) -> bool:
        self._ensure_connected()
        async with self._lock:
            if self._wallets.pop(wallet_id, None) is None:
                return False

            orphaned = [tx_id for tx_id, tx in self._transactions.items() if tx.wallet_id == wallet_id]
            for tx_id in orphaned:
                del self._transactions[tx_id]

            logger.info(f"Deleted wallet {wallet_id} and {len(orphaned)} transaction(s)")
            return True

    # Transaction operations
    async def record_transaction(self, transaction: NewTransaction) -> TransactionRecord:
        self._ensure_connected()
        tx = validate_new_transaction(transaction)
        async with self._lock:
            if tx.wallet_id not in self._wallets:
                raise WalletNotFound(tx.wallet_id)

            record = TransactionRecord(
                id=self._transaction_id_counter,
                wallet_id=tx.wallet_id,
                kind=tx.kind,
                from_address=tx.from_address,
                to_address=tx.to_address,
                amount=tx.amount,
                currency_symbol=tx.currency_symbol,
                fee=tx.fee,
                status=tx.status,
                external_hash=tx.external_hash,
                evm_chain_id=tx.evm_chain_id,
                source_evm_chain_id=tx.source_evm_chain_id,
                destination_evm_chain_id=tx.destination_evm_chain_id,
                timestamp=_now(),
            )
            self._transaction_id_counter += 1
            self._transactions[record.id] = record
            return replace(record)

    async def get_transactions_by_wallet(self, wallet_id: int) -> list[TransactionRecord]:
        self._ensure_connected()
        async with self._lock:
            return [replace(t) for t in self._transactions.values() if t.wallet_id == wallet_id]

    async def get_transactions_by_owner(self, owner_id: str) -> list[TransactionRecord]:
        self._ensure_connected()
        async with self._lock:
            wallet_ids = {w.id for w in self._wallets.values() if w.owner_id == owner_id}
            return [replace(t) for t in self._transactions.values() if t.wallet_id in wallet_ids]

    async def get_transaction_by_id(self, transaction_id: int) -> Optional[TransactionRecord]:
        self._ensure_connected()
        async with self._lock:
            tx = self._transactions.get(transaction_id)
            return replace(tx) if tx else None

    async def get_transaction_by_external_hash(self, external_hash: str) -> Optional[TransactionRecord]:
        self._ensure_connected()
        async with self._lock:
            for tx in self._transactions.values():
                if tx.external_hash.lower() == external_hash.lower():
                    return replace(tx)
            return None

    async def get_transactions_by_status(self, status: TransactionStatus) -> list[TransactionRecord]:
        self._ensure_connected()
        status = TransactionStatus(status)
        async with self._lock:
            return [replace(t) for t in self._transactions.values() if t.status == status]

    async def update_transaction(self, transaction_id: int, **fields) -> bool:
        self._ensure_connected()
        check_update_fields(fields, TRANSACTION_UPDATE_FIELDS, "transaction")
        if "status" in fields:
            fields["status"] = TransactionStatus(fields["status"])
        if "fee" in fields:
            fields["fee"] = normalize_amount(fields["fee"], "fee")

        async with self._lock:
            tx = self._transactions.get(transaction_id)
            if tx is None:
                return False
            if "status" in fields:
                check_status_transition(tx.status, fields["status"])
            self._transactions[transaction_id] = replace(tx, **fields)
            return True
