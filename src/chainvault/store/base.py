"""Wallet store interface and record types.

Every store keeps two collections:
- wallets: one encrypted keypair per row, owned by an opaque owner id
- transactions: send/receive/swap events, each owned by a wallet

Deleting a wallet deletes its transactions. Private keys only ever appear
here as EncryptedSecret.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from chainvault.crypto import EncryptedSecret
from chainvault.exceptions import InvalidStatusTransition
from chainvault.keygen.base import BitcoinNetwork, ChainKind


class TransactionKind(str, Enum):
    """Kind of a recorded transaction."""

    SEND = "send"
    RECEIVE = "receive"
    SWAP = "swap"


class TransactionStatus(str, Enum):
    """Locally persisted transaction status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


@dataclass
class NewWallet:
    """Fields needed to store a freshly generated wallet."""

    chain_kind: ChainKind
    public_address: str
    encrypted_secret: EncryptedSecret
    network: Optional[BitcoinNetwork] = None  # Bitcoin only
    evm_chain_id: Optional[int] = None  # Ethereum-compatible only


@dataclass
class WalletRecord:
    """A stored wallet."""

    id: int
    owner_id: str
    chain_kind: ChainKind
    public_address: str
    encrypted_secret: EncryptedSecret
    network: Optional[BitcoinNetwork] = None
    evm_chain_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class NewTransaction:
    """Fields needed to record a transaction."""

    wallet_id: int
    kind: TransactionKind
    from_address: str
    to_address: str
    amount: str
    currency_symbol: str
    fee: str
    status: TransactionStatus
    external_hash: str
    evm_chain_id: Optional[int] = None
    source_evm_chain_id: Optional[int] = None  # Swaps only
    destination_evm_chain_id: Optional[int] = None  # Swaps only


@dataclass
class TransactionRecord:
    """A stored transaction."""

    id: int
    wallet_id: int
    kind: TransactionKind
    from_address: str
    to_address: str
    amount: str
    currency_symbol: str
    fee: str
    status: TransactionStatus
    external_hash: str
    evm_chain_id: Optional[int] = None
    source_evm_chain_id: Optional[int] = None
    destination_evm_chain_id: Optional[int] = None
    timestamp: Optional[datetime] = None


WALLET_UPDATE_FIELDS = frozenset({"public_address", "encrypted_secret", "network", "evm_chain_id"})
TRANSACTION_UPDATE_FIELDS = frozenset({"status", "external_hash", "fee"})


def normalize_amount(value, field_name: str = "amount") -> str:
    """Validate a monetary value and return it as an exact decimal string.

    Raises:
        TypeError: For floats (they cannot carry exact decimal amounts)
        ValueError: For non-numeric, NaN or infinite values
    """
    if isinstance(value, float):
        raise TypeError(f"{field_name} must be a decimal string, not float")
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be a decimal string")

    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"{field_name} is not a decimal number: {value!r}") from None

    if not parsed.is_finite():
        raise ValueError(f"{field_name} must be finite")
    if parsed < 0:
        raise ValueError(f"{field_name} must not be negative")

    return str(value).strip() if isinstance(value, str) else str(parsed)


def validate_new_transaction(tx: NewTransaction) -> NewTransaction:
    """Check record rules before a transaction is written.

    Returns a copy with normalized enums and amounts.
    """
    kind = TransactionKind(tx.kind)
    status = TransactionStatus(tx.status)

    if kind != TransactionKind.SWAP and (
        tx.source_evm_chain_id is not None or tx.destination_evm_chain_id is not None
    ):
        raise ValueError("source/destination EVM chain ids are only valid for swaps")

    return NewTransaction(
        wallet_id=tx.wallet_id,
        kind=kind,
        from_address=tx.from_address,
        to_address=tx.to_address,
        amount=normalize_amount(tx.amount, "amount"),
        currency_symbol=tx.currency_symbol,
        fee=normalize_amount(tx.fee, "fee"),
        status=status,
        external_hash=tx.external_hash,
        evm_chain_id=tx.evm_chain_id,
        source_evm_chain_id=tx.source_evm_chain_id,
        destination_evm_chain_id=tx.destination_evm_chain_id,
    )


def check_update_fields(fields: dict, allowed: frozenset, record: str) -> None:
    """Reject updates to fields that are not allowed to change."""
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update {record} fields: {', '.join(sorted(unknown))}")


def check_status_transition(current: TransactionStatus, new: TransactionStatus) -> None:
    """Enforce forward-only status changes: pending -> completed | failed."""
    if current == new:
        return
    if current.is_terminal:
        raise InvalidStatusTransition(
            f"Cannot change transaction status from {current.value} to {new.value}"
        )


class WalletStore(ABC):
    """Abstract base class for wallet and transaction persistence.

    Usage:
        store = InMemoryWalletStore()
        await store.connect()
        wallet = await store.create_wallet("user-1", new_wallet)
    """

    # Connection management
    @abstractmethod
    async def connect(self) -> None:
        """Open the store. Safe to call twice."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the store. Safe to call twice."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass

    # Wallet operations
    @abstractmethod
    async def create_wallet(self, owner_id: str, wallet: NewWallet) -> WalletRecord:
        pass

    @abstractmethod
    async def get_wallet_by_id(self, wallet_id: int) -> Optional[WalletRecord]:
        pass

    @abstractmethod
    async def get_wallet(self, owner_id: str, address: str) -> Optional[WalletRecord]:
        """Get an owner's wallet by address (case-insensitive)."""
        pass

    @abstractmethod
    async def get_wallets_by_owner(self, owner_id: str) -> list[WalletRecord]:
        pass

    @abstractmethod
    async def get_wallets_by_evm_chain_id(self, owner_id: str, chain_id: int) -> list[WalletRecord]:
        pass

    @abstractmethod
    async def update_wallet(self, wallet_id: int, **fields) -> bool:
        """Update chain-specific wallet metadata.

        Only public_address, encrypted_secret, network and evm_chain_id may change.

        Returns:
            False if no wallet has this id
        """
        pass

    @abstractmethod
    async def delete_wallet(self, wallet_id: int) -> bool:
        """Delete a wallet and all of its transactions."""
        pass

    # Transaction operations
    @abstractmethod
    async def record_transaction(self, transaction: NewTransaction) -> TransactionRecord:
        pass

    @abstractmethod
    async def get_transactions_by_wallet(self, wallet_id: int) -> list[TransactionRecord]:
        pass

    @abstractmethod
    async def get_transactions_by_owner(self, owner_id: str) -> list[TransactionRecord]:
        pass

    @abstractmethod
    async def get_transaction_by_id(self, transaction_id: int) -> Optional[TransactionRecord]:
        pass

    @abstractmethod
    async def get_transaction_by_external_hash(self, external_hash: str) -> Optional[TransactionRecord]:
        pass

    @abstractmethod
    async def get_transactions_by_status(self, status: TransactionStatus) -> list[TransactionRecord]:
        pass

    @abstractmethod
    async def update_transaction(self, transaction_id: int, **fields) -> bool:
        """Update status, external_hash or fee of a transaction.

        Status changes are forward-only.

        Returns:
            False if no transaction has this id
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Store backend name."""
        pass
