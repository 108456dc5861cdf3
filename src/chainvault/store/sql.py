"""SQLAlchemy-backed wallet store."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from chainvault.crypto import EncryptedSecret
from chainvault.exceptions import StoreNotConnected, WalletNotFound
from chainvault.keygen.base import BitcoinNetwork, ChainKind
from chainvault.store.base import (
    TRANSACTION_UPDATE_FIELDS,
    WALLET_UPDATE_FIELDS,
    NewTransaction,
    NewWallet,
    TransactionKind,
    TransactionRecord,
    TransactionStatus,
    WalletRecord,
    WalletStore,
    check_status_transition,
    check_update_fields,
    normalize_amount,
    validate_new_transaction,
)
from chainvault.store.models import Base, Transaction, Wallet

logger = logging.getLogger(__name__)


def _normalize_url(database_url: str) -> str:
    # Convert sqlite:/// to sqlite+aiosqlite:/// if needed
    if database_url.startswith("sqlite:///") and "aiosqlite" not in database_url:
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return database_url


def _to_wallet_record(row: Wallet) -> WalletRecord:
    return WalletRecord(
        id=row.id,
        owner_id=row.owner_id,
        chain_kind=ChainKind(row.chain_kind),
        public_address=row.public_address,
        encrypted_secret=EncryptedSecret(
            ciphertext=bytes.fromhex(row.ciphertext),
            salt=bytes.fromhex(row.salt),
            iv=bytes.fromhex(row.iv),
            mac=bytes.fromhex(row.mac),
            version=row.secret_version,
            iterations=row.kdf_iterations,
        ),
        network=BitcoinNetwork(row.network) if row.network else None,
        evm_chain_id=row.evm_chain_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_transaction_record(row: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        wallet_id=row.wallet_id,
        kind=TransactionKind(row.kind),
        from_address=row.from_address,
        to_address=row.to_address,
        amount=row.amount,
        currency_symbol=row.currency_symbol,
        fee=row.fee,
        status=TransactionStatus(row.status),
        external_hash=row.external_hash,
        evm_chain_id=row.evm_chain_id,
        source_evm_chain_id=row.source_evm_chain_id,
        destination_evm_chain_id=row.destination_evm_chain_id,
        timestamp=row.timestamp,
    )


def _secret_columns(sealed: EncryptedSecret) -> dict:
    return {
        "ciphertext": sealed.ciphertext.hex(),
        "salt": sealed.salt.hex(),
        "iv": sealed.iv.hex(),
        "mac": sealed.mac.hex(),
        "secret_version": sealed.version,
        "kdf_iterations": sealed.iterations,
    }


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


class SqlWalletStore(WalletStore):
    """Wallet store on any SQLAlchemy async database (SQLite via aiosqlite by default).

    Tables are created on connect().
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = _normalize_url(database_url)
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def name(self) -> str:
        return "sql"

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> None:
        if self._engine is not None:
            return

        _ensure_sqlite_directory(self.database_url)

        engine_kwargs = {"echo": self.echo}
        if ":memory:" in self.database_url:
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_async_engine(self.database_url, **engine_kwargs)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(f"Connected to wallet database ({engine.url.get_backend_name()})")

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Disconnected from wallet database")

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on error."""
        if self._session_factory is None:
            raise StoreNotConnected("Wallet store not connected. Call connect() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # Wallet operations
    async def create_wallet(self, owner_id: str, wallet: NewWallet) -> WalletRecord:
        async with self._session() as session:
            row = Wallet(
                owner_id=owner_id,
                chain_kind=ChainKind(wallet.chain_kind).value,
                public_address=wallet.public_address,
                network=BitcoinNetwork(wallet.network).value if wallet.network else None,
                evm_chain_id=wallet.evm_chain_id,
                **_secret_columns(wallet.encrypted_secret),
            )
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return _to_wallet_record(row)

    async def get_wallet_by_id(self, wallet_id: int) -> Optional[WalletRecord]:
        async with self._session() as session:
            row = await session.get(Wallet, wallet_id)
            return _to_wallet_record(row) if row else None

    async def get_wallet(self, owner_id: str, address: str) -> Optional[WalletRecord]:
        async with self._session() as session:
            stmt = (
                select(Wallet)
                .where(
                    Wallet.owner_id == owner_id,
                    func.lower(Wallet.public_address) == address.lower(),
                )
                .order_by(Wallet.id)
                .limit(1)
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return _to_wallet_record(row) if row else None

    async def get_wallets_by_owner(self, owner_id: str) -> list[WalletRecord]:
        async with self._session() as session:
            stmt = select(Wallet).where(Wallet.owner_id == owner_id).order_by(Wallet.id)
            result = await session.execute(stmt)
            return [_to_wallet_record(row) for row in result.scalars().all()]

    async def get_wallets_by_evm_chain_id(self, owner_id: str, chain_id: int) -> list[WalletRecord]:
        async with self._session() as session:
            stmt = (
                select(Wallet)
                .where(Wallet.owner_id == owner_id, Wallet.evm_chain_id == chain_id)
                .order_by(Wallet.id)
            )
            result = await session.execute(stmt)
            return [_to_wallet_record(row) for row in result.scalars().all()]

    async def update_wallet(self, wallet_id: int, **fields) -> bool:
        check_update_fields(fields, WALLET_UPDATE_FIELDS, "wallet")
        async with self._session() as session:
            row = await session.get(Wallet, wallet_id)
            if row is None:
                return False

            if "encrypted_secret" in fields:
                for column, value in _secret_columns(fields["encrypted_secret"]).items():
                    setattr(row, column, value)
            if "public_address" in fields:
                row.public_address = fields["public_address"]
            if "network" in fields:
                network = fields["network"]
                row.network = BitcoinNetwork(network).value if network else None
            if "evm_chain_id" in fields:
                row.evm_chain_id = fields["evm_chain_id"]

            await session.flush()
            return True

    async def delete_wallet(self, wallet_id: int) -> bool:
        async with self._session() as session:
            row = await session.get(Wallet, wallet_id)
            if row is None:
                return False

            # SQLite only enforces ON DELETE CASCADE with foreign_keys=ON
            result = await session.execute(
                delete(Transaction).where(Transaction.wallet_id == wallet_id)
            )
            await session.execute(delete(Wallet).where(Wallet.id == wallet_id))

            logger.info(f"Deleted wallet {wallet_id} and {result.rowcount} transaction(s)")
            return True

    # Transaction operations
    async def record_transaction(self, transaction: NewTransaction) -> TransactionRecord:
        tx = validate_new_transaction(transaction)
        async with self._session() as session:
            if await session.get(Wallet, tx.wallet_id) is None:
                raise WalletNotFound(tx.wallet_id)

            row = Transaction(
                wallet_id=tx.wallet_id,
                kind=tx.kind.value,
                from_address=tx.from_address,
                to_address=tx.to_address,
                amount=tx.amount,
                currency_symbol=tx.currency_symbol,
                fee=tx.fee,
                status=tx.status.value,
                external_hash=tx.external_hash,
                evm_chain_id=tx.evm_chain_id,
                source_evm_chain_id=tx.source_evm_chain_id,
                destination_evm_chain_id=tx.destination_evm_chain_id,
            )
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return _to_transaction_record(row)

    async def get_transactions_by_wallet(self, wallet_id: int) -> list[TransactionRecord]:
        async with self._session() as session:
            stmt = (
                select(Transaction)
                .where(Transaction.wallet_id == wallet_id)
                .order_by(Transaction.id)
            )
            result = await session.execute(stmt)
            return [_to_transaction_record(row) for row in result.scalars().all()]

    async def get_transactions_by_owner(self, owner_id: str) -> list[TransactionRecord]:
        async with self._session() as session:
            stmt = (
                select(Transaction)
                .join(Wallet, Transaction.wallet_id == Wallet.id)
                .where(Wallet.owner_id == owner_id)
                .order_by(Transaction.id)
            )
            result = await session.execute(stmt)
            return [_to_transaction_record(row) for row in result.scalars().all()]

    async def get_transaction_by_id(self, transaction_id: int) -> Optional[TransactionRecord]:
        async with self._session() as session:
            row = await session.get(Transaction, transaction_id)
            return _to_transaction_record(row) if row else None

    async def get_transaction_by_external_hash(self, external_hash: str) -> Optional[TransactionRecord]:
        async with self._session() as session:
            stmt = (
                select(Transaction)
                .where(func.lower(Transaction.external_hash) == external_hash.lower())
                .order_by(Transaction.id)
                .limit(1)
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return _to_transaction_record(row) if row else None

    async def get_transactions_by_status(self, status: TransactionStatus) -> list[TransactionRecord]:
        status = TransactionStatus(status)
        async with self._session() as session:
            stmt = (
                select(Transaction)
                .where(Transaction.status == status.value)
                .order_by(Transaction.id)
            )
            result = await session.execute(stmt)
            return [_to_transaction_record(row) for row in result.scalars().all()]

    async def update_transaction(self, transaction_id: int, **fields) -> bool:
        check_update_fields(fields, TRANSACTION_UPDATE_FIELDS, "transaction")

        values = {}
        new_status = None
        if "status" in fields:
            new_status = TransactionStatus(fields["status"])
            values["status"] = new_status.value
        if "external_hash" in fields:
            values["external_hash"] = fields["external_hash"]
        if "fee" in fields:
            values["fee"] = normalize_amount(fields["fee"], "fee")

        async with self._session() as session:
            if not values:
                return await session.get(Transaction, transaction_id) is not None

            # The WHERE clause applies the forward-only status rule atomically
            stmt = update(Transaction).where(Transaction.id == transaction_id)
            if new_status is not None:
                stmt = stmt.where(
                    or_(
                        Transaction.status == TransactionStatus.PENDING.value,
                        Transaction.status == new_status.value,
                    )
                )
            result = await session.execute(stmt.values(**values))
            if result.rowcount:
                return True

            row = await session.get(Transaction, transaction_id)
            if row is None:
                return False

            check_status_transition(TransactionStatus(row.status), new_status)
            return True
