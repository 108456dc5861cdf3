"""Composition root.

Builds every component from Settings and hands each its collaborators.

Usage:
    container = Container(get_settings())
    await container.start()
    record = await container.wallets.create_wallet("user-1", ChainKind.ETHEREUM, "pw")
    await container.stop()
"""

import asyncio
import logging
from typing import Optional

from chainvault.config import Settings, get_settings
from chainvault.crypto import SecretCipher
from chainvault.gateway.base import ExchangeGateway
from chainvault.gateway.factory import create_gateway
from chainvault.services.reconciler import ReconciliationRunner
from chainvault.services.swaps import SwapOrchestrator
from chainvault.services.transactions import TransactionService
from chainvault.services.wallets import WalletService
from chainvault.store.base import WalletStore
from chainvault.store.factory import create_store
from chainvault.vault import WalletVault

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging (DEBUG when settings.debug is set)."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=LOG_FORMAT,
    )


class Container:
    """Holds the wired application components."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[WalletStore] = None,
        gateway: Optional[ExchangeGateway] = None,
    ):
        """Wire components.

        Args:
            settings: Settings (defaults to get_settings())
            store: Store override, otherwise chosen by settings.store_backend
            gateway: Gateway override, otherwise chosen by settings.exchange_provider
        """
        self.settings = settings or get_settings()

        self.cipher = SecretCipher(iterations=self.settings.kdf_iterations)
        self.vault = WalletVault(self.cipher, default_evm_chain_id=self.settings.default_evm_chain_id)
        self.store = store or create_store(self.settings)
        self.gateway = gateway or create_gateway(self.settings)

        self.wallets = WalletService(self.store, self.vault)
        self.transactions = TransactionService(self.store)
        self.swaps = SwapOrchestrator(
            self.store, self.gateway, call_timeout=self.settings.gateway_timeout
        )
        self.reconciler = ReconciliationRunner(self.swaps, interval=self.settings.reconcile_interval)

        self._reconcile_task: Optional[asyncio.Task] = None

    async def start(self, run_reconciler: bool = False) -> None:
        """Connect the store and optionally start background reconciliation."""
        await self.store.connect()
        logger.info(
            f"chainvault started (environment: {self.settings.environment}, "
            f"store: {self.store.name}, exchange: {self.gateway.name})"
        )
        if run_reconciler and self._reconcile_task is None:
            self._reconcile_task = asyncio.create_task(self.reconciler.run())

    async def stop(self) -> None:
        """Stop background work and disconnect the store."""
        if self._reconcile_task is not None:
            self.reconciler.stop()
            await self._reconcile_task
            self._reconcile_task = None
        await self.store.disconnect()
        logger.info("chainvault stopped")

    async def __aenter__(self) -> "Container":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
        return False
