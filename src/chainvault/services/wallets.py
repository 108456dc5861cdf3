"""Wallet service: creates, lists and unlocks an owner's wallets."""

import logging
from typing import Optional

from chainvault.chains import EVM_CHAIN_IDS
from chainvault.exceptions import WalletNotFound
from chainvault.keygen import BitcoinNetwork, ChainKind, get_supported_chains
from chainvault.store.base import WalletRecord, WalletStore
from chainvault.vault import WalletVault

logger = logging.getLogger(__name__)


class WalletService:
    """Wallet operations on top of a vault and a store."""

    def __init__(self, store: WalletStore, vault: WalletVault):
        self.store = store
        self.vault = vault

    async def create_wallet(
        self,
        owner_id: str,
        chain_kind: ChainKind,
        password: str,
        evm_chain_id: Optional[int] = None,
        network: Optional[BitcoinNetwork] = None,
    ) -> WalletRecord:
        """Generate, encrypt and store a wallet for one chain."""
        new_wallet = self.vault.create_encrypted_wallet(
            chain_kind, password, evm_chain_id=evm_chain_id, network=network
        )
        record = await self.store.create_wallet(owner_id, new_wallet)
        logger.info(f"Stored {record.chain_kind.value} wallet {record.id} for owner {owner_id}")
        return record

    async def create_all_wallets(
        self,
        owner_id: str,
        password: str,
        evm_chain_id: Optional[int] = None,
    ) -> dict[ChainKind, WalletRecord]:
        """Create one wallet per supported chain, all under the same password."""
        wallets: dict[ChainKind, WalletRecord] = {}
        for chain_kind in get_supported_chains():
            wallets[chain_kind] = await self.create_wallet(
                owner_id,
                chain_kind,
                password,
                evm_chain_id=evm_chain_id if chain_kind == ChainKind.ETHEREUM else None,
            )
        return wallets

    async def get_wallets(self, owner_id: str) -> list[WalletRecord]:
        return await self.store.get_wallets_by_owner(owner_id)

    async def get_wallets_by_chain(self, owner_id: str, evm_chain_id: int) -> list[WalletRecord]:
        return await self.store.get_wallets_by_evm_chain_id(owner_id, evm_chain_id)

    async def get_wallet_by_address(self, owner_id: str, address: str) -> Optional[WalletRecord]:
        return await self.store.get_wallet(owner_id, address)

    async def delete_wallet(self, wallet_id: int) -> bool:
        """Delete a wallet together with its transactions."""
        return await self.store.delete_wallet(wallet_id)

    async def unlock_wallet(self, wallet_id: int, password: str) -> bytes:
        """Decrypt a wallet's private key.

        The returned bytes are plaintext key material. Use them and drop them.

        Raises:
            WalletNotFound: If the wallet does not exist
            WrongPasswordOrCorruptData: Wrong password or damaged ciphertext
            CorruptRecord: The secret does not belong to the stored address
        """
        record = await self.store.get_wallet_by_id(wallet_id)
        if record is None:
            raise WalletNotFound(wallet_id)
        return self.vault.decrypt_wallet(record, password)

    async def change_password(self, wallet_id: int, old_password: str, new_password: str) -> WalletRecord:
        """Re-encrypt a wallet's key under a new password.

        Raises:
            WalletNotFound: If the wallet does not exist
            WrongPasswordOrCorruptData: If old_password is wrong
        """
        record = await self.store.get_wallet_by_id(wallet_id)
        if record is None:
            raise WalletNotFound(wallet_id)

        # Verifies the key against the stored address before re-encrypting
        self.vault.decrypt_wallet(record, old_password)
        sealed = self.vault.cipher.rotate_password(record.encrypted_secret, old_password, new_password)

        if not await self.store.update_wallet(wallet_id, encrypted_secret=sealed):
            raise WalletNotFound(wallet_id)

        logger.info(f"Password changed for wallet {wallet_id}")
        updated = await self.store.get_wallet_by_id(wallet_id)
        if updated is None:
            raise WalletNotFound(wallet_id)
        return updated

    def get_chain_ids(self) -> dict[str, int]:
        """Known EVM chain ids by name."""
        return dict(EVM_CHAIN_IDS)
