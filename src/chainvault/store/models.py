"""SQLAlchemy models for the wallet store."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Wallet(Base):
    """Encrypted keypair for one chain."""

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(128), index=True)
    chain_kind: Mapped[str] = mapped_column(String(20))
    public_address: Mapped[str] = mapped_column(String(128))

    # Encrypted private key, hex-encoded
    ciphertext: Mapped[str] = mapped_column(Text)
    salt: Mapped[str] = mapped_column(String(64))
    iv: Mapped[str] = mapped_column(String(64))
    mac: Mapped[str] = mapped_column(String(128))
    secret_version: Mapped[int] = mapped_column(Integer, default=1)
    kdf_iterations: Mapped[int] = mapped_column(Integer)

    network: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    evm_chain_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="wallet",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_wallets_owner_address", "owner_id", "public_address"),
        Index("ix_wallets_owner_chain_id", "owner_id", "evm_chain_id"),
    )

    def __repr__(self) -> str:
        return f"<Wallet {self.chain_kind} {self.public_address}>"


class Transaction(Base):
    """Send, receive or swap event belonging to a wallet."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    wallet_id: Mapped[int] = mapped_column(
        ForeignKey("wallets.id", ondelete="CASCADE"), index=True
    )
    kind: Mapped[str] = mapped_column(String(20))
    from_address: Mapped[str] = mapped_column(String(128))
    to_address: Mapped[str] = mapped_column(String(128))

    # Exact decimal strings
    amount: Mapped[str] = mapped_column(String(78))
    currency_symbol: Mapped[str] = mapped_column(String(20))
    fee: Mapped[str] = mapped_column(String(78))

    status: Mapped[str] = mapped_column(String(20), index=True)
    external_hash: Mapped[str] = mapped_column(String(256), index=True)

    evm_chain_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source_evm_chain_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    destination_evm_chain_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    wallet: Mapped["Wallet"] = relationship(back_populates="transactions")

    def __repr__(self) -> str:
        return f"<Transaction {self.kind} {self.amount} {self.currency_symbol} ({self.status})>"
