"""Swap lifecycle orchestration.

A swap is created at the exchange provider, recorded locally as a pending
transaction, and later reconciled against the provider's order status:

    waiting / confirming / exchanging / sending -> pending
    finished                                    -> completed
    failed / refunded                           -> failed

Local status only moves forward. Reconciliation writes a record at most once.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from chainvault.exceptions import (
    ExternalGatewayError,
    PartialSwapCreationFailure,
    WalletNotFound,
)
from chainvault.gateway.base import ExchangeGateway, FineStatus, OrderStatus, SwapRate
from chainvault.store.base import (
    NewTransaction,
    TransactionKind,
    TransactionRecord,
    TransactionStatus,
    WalletStore,
    normalize_amount,
)
from chainvault.utils.locks import RecordLock, try_record_lock

logger = logging.getLogger(__name__)

T = TypeVar("T")

COARSE_STATUS: dict[FineStatus, TransactionStatus] = {
    FineStatus.WAITING: TransactionStatus.PENDING,
    FineStatus.CONFIRMING: TransactionStatus.PENDING,
    FineStatus.EXCHANGING: TransactionStatus.PENDING,
    FineStatus.SENDING: TransactionStatus.PENDING,
    FineStatus.FINISHED: TransactionStatus.COMPLETED,
    FineStatus.FAILED: TransactionStatus.FAILED,
    FineStatus.REFUNDED: TransactionStatus.FAILED,
}


def coarse_status(fine_status: FineStatus) -> TransactionStatus:
    """Map a provider order status to the locally stored status."""
    return COARSE_STATUS[FineStatus(fine_status)]


def _swap_lock_key(transaction_id: int) -> str:
    return f"swap:{transaction_id}"


class SwapOrchestrator:
    """Creates swaps at the exchange and keeps their local records in sync."""

    def __init__(self, store: WalletStore, gateway: ExchangeGateway, call_timeout: float = 30.0):
        """Initialize orchestrator.

        Args:
            store: Wallet store holding wallets and swap records
            gateway: Exchange provider
            call_timeout: Seconds allowed for each gateway call
        """
        self.store = store
        self.gateway = gateway
        self.call_timeout = call_timeout

    async def _call(self, operation: str, call: Awaitable[T]) -> T:
        """Await a gateway call with the configured timeout."""
        try:
            return await asyncio.wait_for(call, timeout=self.call_timeout)
        except asyncio.TimeoutError:
            raise ExternalGatewayError(
                f"{self.gateway.name} {operation} timed out after {self.call_timeout}s"
            ) from None

    async def quote(
        self,
        from_currency: str,
        to_currency: str,
        amount: str,
        from_evm_chain_id: Optional[int] = None,
        to_evm_chain_id: Optional[int] = None,
    ) -> SwapRate:
        """Get an estimated rate without creating anything."""
        return await self._call(
            "get_rate",
            self.gateway.get_rate(
                from_currency, to_currency, amount, from_evm_chain_id, to_evm_chain_id
            ),
        )

    async def create_swap(
        self,
        wallet_id: int,
        from_currency: str,
        to_currency: str,
        amount: str,
        destination_address: str,
        refund_address: str,
        from_evm_chain_id: Optional[int] = None,
        to_evm_chain_id: Optional[int] = None,
    ) -> TransactionRecord:
        """Create a swap order and record it as a pending transaction.

        Args:
            wallet_id: Source wallet
            from_currency: Source currency ticker
            to_currency: Target currency ticker
            amount: Amount in source currency, as a decimal string
            destination_address: Address receiving the exchanged funds
            refund_address: Address receiving refunds
            from_evm_chain_id: EVM chain id of the source network
            to_evm_chain_id: EVM chain id of the target network

        Returns:
            The stored swap transaction (external_hash is the order id)

        Raises:
            WalletNotFound: If the wallet does not exist
            ExternalGatewayError: If the order could not be created
            PartialSwapCreationFailure: If the order exists but was not recorded
        """
        amount = normalize_amount(amount)

        wallet = await self.store.get_wallet_by_id(wallet_id)
        if wallet is None:
            raise WalletNotFound(wallet_id)

        order = await self._call(
            "create_order",
            self.gateway.create_order(
                from_currency,
                to_currency,
                amount,
                destination_address,
                refund_address,
                from_evm_chain_id,
                to_evm_chain_id,
            ),
        )
        logger.info(
            f"Swap order {order.external_id} created for wallet {wallet_id}: "
            f"{amount} {from_currency} -> {to_currency}"
        )

        # The order now exists remotely; anything failing below leaves it unrecorded
        try:
            rate = await self.quote(
                from_currency, to_currency, amount, from_evm_chain_id, to_evm_chain_id
            )
            return await self.store.record_transaction(
                NewTransaction(
                    wallet_id=wallet_id,
                    kind=TransactionKind.SWAP,
                    from_address=wallet.public_address,
                    to_address=destination_address,
                    amount=amount,
                    currency_symbol=from_currency,
                    fee=rate.fee,
                    status=TransactionStatus.PENDING,
                    external_hash=order.external_id,
                    evm_chain_id=from_evm_chain_id,
                    source_evm_chain_id=from_evm_chain_id,
                    destination_evm_chain_id=to_evm_chain_id,
                )
            )
        except Exception as e:
            logger.error(
                f"Swap order {order.external_id} for wallet {wallet_id} was created "
                f"but not recorded: {type(e).__name__}: {e}"
            )
            raise PartialSwapCreationFailure(order.external_id, wallet_id, str(e)) from e

    async def get_swap_status(self, external_id: str) -> OrderStatus:
        """Get the provider's current status for an order."""
        return await self._call("get_order_status", self.gateway.get_order_status(external_id))

    async def update_swap_status(self, transaction_id: int, status: TransactionStatus) -> bool:
        """Set the local status of a swap record (forward-only).

        Raises:
            InvalidStatusTransition: If the record already has a different final status
        """
        async with RecordLock(_swap_lock_key(transaction_id), operation="update_swap_status"):
            return await self.store.update_transaction(transaction_id, status=TransactionStatus(status))

    async def get_swaps_by_wallet(self, wallet_id: int) -> list[TransactionRecord]:
        transactions = await self.store.get_transactions_by_wallet(wallet_id)
        return [tx for tx in transactions if tx.kind == TransactionKind.SWAP]

    async def get_swaps_by_owner(self, owner_id: str) -> list[TransactionRecord]:
        transactions = await self.store.get_transactions_by_owner(owner_id)
        return [tx for tx in transactions if tx.kind == TransactionKind.SWAP]

    async def _still_pending(self, tx: TransactionRecord) -> bool:
        current = await self.store.get_transaction_by_id(tx.id)
        return current is not None and current.status == TransactionStatus.PENDING

    async def _reconcile_one(self, tx: TransactionRecord) -> bool:
        """Check one pending swap and write its final status if it has one.

        Returns:
            True if the record was written
        """
        async with try_record_lock(_swap_lock_key(tx.id), operation="reconcile") as acquired:
            if not acquired:
                logger.debug(f"Swap {tx.id} is being reconciled elsewhere, skipping")
                return False

            # A previous overlapping pass may have finished this record already
            if not await self._still_pending(tx):
                return False

            order_status = await self.get_swap_status(tx.external_hash)
            new_status = coarse_status(order_status.fine_status)

            if not new_status.is_terminal or new_status == tx.status:
                return False

            updated = await self.store.update_transaction(tx.id, status=new_status)
            if updated:
                logger.info(
                    f"Swap {tx.id} ({tx.external_hash}) is now {new_status.value} "
                    f"(provider status: {order_status.fine_status.value})"
                )
            return updated

    async def reconcile_pending(self) -> int:
        """Sync every pending swap with its provider status.

        A failure on one record is logged and does not stop the pass.

        Returns:
            Number of records written
        """
        pending = await self.store.get_transactions_by_status(TransactionStatus.PENDING)
        swaps = [tx for tx in pending if tx.kind == TransactionKind.SWAP]

        if not swaps:
            logger.debug("No pending swaps to reconcile")
            return 0

        logger.info(f"Reconciling {len(swaps)} pending swaps...")

        written = 0
        for tx in swaps:
            try:
                if await self._reconcile_one(tx):
                    written += 1
            except Exception as e:
                logger.error(f"Error reconciling swap {tx.id} ({tx.external_hash}): {e}")

        return written
