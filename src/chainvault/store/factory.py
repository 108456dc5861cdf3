"""Wallet store factory."""

import logging
from typing import Optional

from chainvault.config import Settings, get_settings
from chainvault.store.base import WalletStore
from chainvault.store.memory import InMemoryWalletStore
from chainvault.store.sql import SqlWalletStore

logger = logging.getLogger(__name__)


def create_store(settings: Optional[Settings] = None) -> WalletStore:
    """Create the wallet store selected by settings.store_backend.

    Raises:
        ValueError: If the backend name is unknown
    """
    settings = settings or get_settings()
    backend = settings.store_backend.lower()

    if backend == "memory":
        store: WalletStore = InMemoryWalletStore()
    elif backend == "sql":
        store = SqlWalletStore(
            settings.database_url,
            echo=settings.debug and not settings.is_production,
        )
    else:
        raise ValueError(f"Unknown store backend: {settings.store_backend}")

    logger.info(f"Using {store.name} wallet store")
    return store
