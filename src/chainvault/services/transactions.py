"""Transaction history service."""

import logging
from typing import Optional

from chainvault.store.base import (
    NewTransaction,
    TransactionKind,
    TransactionRecord,
    TransactionStatus,
    WalletStore,
)

logger = logging.getLogger(__name__)


class TransactionService:
    """Records and queries send, receive and swap transactions."""

    def __init__(self, store: WalletStore):
        self.store = store

    async def record_transaction(
        self,
        wallet_id: int,
        kind: TransactionKind,
        from_address: str,
        to_address: str,
        amount: str,
        currency_symbol: str,
        fee: str,
        status: TransactionStatus,
        external_hash: str,
        evm_chain_id: Optional[int] = None,
        source_evm_chain_id: Optional[int] = None,
        destination_evm_chain_id: Optional[int] = None,
    ) -> TransactionRecord:
        """Record a transaction for a wallet.

        Amounts and fees are decimal strings. Source and destination chain
        ids are only accepted for swaps.

        Raises:
            WalletNotFound: If the wallet does not exist
            ValueError: If amounts or chain ids are invalid
            TypeError: If an amount is passed as a float
        """
        record = await self.store.record_transaction(
            NewTransaction(
                wallet_id=wallet_id,
                kind=kind,
                from_address=from_address,
                to_address=to_address,
                amount=amount,
                currency_symbol=currency_symbol,
                fee=fee,
                status=status,
                external_hash=external_hash,
                evm_chain_id=evm_chain_id,
                source_evm_chain_id=source_evm_chain_id,
                destination_evm_chain_id=destination_evm_chain_id,
            )
        )
        logger.info(
            f"Recorded {record.kind.value} {record.amount} {record.currency_symbol} "
            f"for wallet {wallet_id} ({record.status.value})"
        )
        return record

    async def get_transactions_by_wallet(self, wallet_id: int) -> list[TransactionRecord]:
        return await self.store.get_transactions_by_wallet(wallet_id)

    async def get_transactions_by_owner(self, owner_id: str) -> list[TransactionRecord]:
        return await self.store.get_transactions_by_owner(owner_id)

    async def get_transaction_by_external_hash(self, external_hash: str) -> Optional[TransactionRecord]:
        return await self.store.get_transaction_by_external_hash(external_hash)

    async def update_transaction_status(self, transaction_id: int, status: TransactionStatus) -> bool:
        """Update status (forward-only)."""
        return await self.store.update_transaction(transaction_id, status=status)

    async def update_transaction_hash(self, transaction_id: int, external_hash: str) -> bool:
        return await self.store.update_transaction(transaction_id, external_hash=external_hash)

    async def update_transaction_fee(self, transaction_id: int, fee: str) -> bool:
        return await self.store.update_transaction(transaction_id, fee=fee)
