"""Pytest configuration and fixtures."""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["STORE_BACKEND"] = "memory"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["EXCHANGE_PROVIDER"] = "dryrun"
os.environ["CHANGENOW_API_KEY"] = ""
os.environ["DEBUG"] = "false"

from chainvault.crypto import SecretCipher
from chainvault.gateway.dryrun import DryRunGateway
from chainvault.keygen import ChainKind
from chainvault.services.swaps import SwapOrchestrator
from chainvault.services.transactions import TransactionService
from chainvault.services.wallets import WalletService
from chainvault.store.base import WalletRecord, WalletStore
from chainvault.store.memory import InMemoryWalletStore
from chainvault.store.sql import SqlWalletStore
from chainvault.utils.locks import clear_record_locks
from chainvault.vault import WalletVault

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "correct horse battery staple"


@pytest.fixture(autouse=True)
def reset_record_locks():
    """Start every test with an empty lock registry."""
    clear_record_locks()
    yield
    clear_record_locks()


@pytest.fixture
def cipher() -> SecretCipher:
    return SecretCipher()


@pytest.fixture
def vault(cipher: SecretCipher) -> WalletVault:
    return WalletVault(cipher)


@pytest.fixture
def gateway() -> DryRunGateway:
    return DryRunGateway()


@pytest_asyncio.fixture
async def memory_store() -> AsyncGenerator[InMemoryWalletStore, None]:
    """Connected in-memory store."""
    store = InMemoryWalletStore()
    await store.connect()
    yield store
    await store.disconnect()


@pytest_asyncio.fixture
async def sql_store() -> AsyncGenerator[SqlWalletStore, None]:
    """Connected SQL store on an in-memory SQLite database."""
    store = SqlWalletStore(TEST_DATABASE_URL)
    await store.connect()
    yield store
    await store.disconnect()


@pytest_asyncio.fixture
async def file_sql_store(tmp_path) -> AsyncGenerator[SqlWalletStore, None]:
    """Connected SQL store on a SQLite file, with a real connection pool."""
    store = SqlWalletStore(f"sqlite+aiosqlite:///{tmp_path / 'chainvault.db'}")
    await store.connect()
    yield store
    await store.disconnect()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request) -> AsyncGenerator[WalletStore, None]:
    """Every store implementation, connected."""
    if request.param == "memory":
        store = InMemoryWalletStore()
    else:
        store = SqlWalletStore(TEST_DATABASE_URL)
    await store.connect()
    yield store
    await store.disconnect()


@pytest.fixture
def orchestrator(memory_store: InMemoryWalletStore, gateway: DryRunGateway) -> SwapOrchestrator:
    return SwapOrchestrator(memory_store, gateway, call_timeout=5.0)


@pytest.fixture
def wallet_service(memory_store: InMemoryWalletStore, vault: WalletVault) -> WalletService:
    return WalletService(memory_store, vault)


@pytest.fixture
def transaction_service(memory_store: InMemoryWalletStore) -> TransactionService:
    return TransactionService(memory_store)


@pytest_asyncio.fixture
async def eth_wallet(memory_store: InMemoryWalletStore, vault: WalletVault) -> WalletRecord:
    """Stored Ethereum wallet owned by user-1."""
    new_wallet = vault.create_encrypted_wallet(ChainKind.ETHEREUM, PASSWORD)
    return await memory_store.create_wallet("user-1", new_wallet)
