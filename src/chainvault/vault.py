"""Wallet vault: key generation plus encryption at rest.

The vault is the only place where plaintext key material exists. A generated
secret is encrypted before it leaves create_encrypted_wallet(), and a
decrypted secret is checked against the stored address before it is
returned.
"""

import logging
from typing import Optional

from bip_utils import Base58ChecksumError

from chainvault.chains import DEFAULT_EVM_CHAIN_ID, get_evm_chain
from chainvault.crypto import SecretCipher
from chainvault.exceptions import CorruptRecord
from chainvault.keygen import (
    BitcoinNetwork,
    ChainKind,
    derive_address,
    generate_key,
    validate_tron_address,
)
from chainvault.store.base import NewWallet, WalletRecord

logger = logging.getLogger(__name__)


class WalletVault:
    """Creates encrypted wallets and unlocks them again.

    Usage:
        vault = WalletVault(SecretCipher())
        new_wallet = vault.create_encrypted_wallet(ChainKind.ETHEREUM, "hunter2")
        secret = vault.decrypt_wallet(record, "hunter2")
    """

    def __init__(self, cipher: SecretCipher, default_evm_chain_id: int = DEFAULT_EVM_CHAIN_ID):
        self.cipher = cipher
        self.default_evm_chain_id = default_evm_chain_id

    def create_encrypted_wallet(
        self,
        chain_kind: ChainKind,
        password: str,
        evm_chain_id: Optional[int] = None,
        network: Optional[BitcoinNetwork] = None,
    ) -> NewWallet:
        """Generate a keypair and encrypt its secret.

        Args:
            chain_kind: Chain to generate for
            password: Password protecting the secret
            evm_chain_id: EVM chain id (Ethereum only, defaults to mainnet)
            network: Bitcoin network (Bitcoin only, defaults to mainnet)

        Returns:
            NewWallet ready to be stored

        Raises:
            ValueError: If an option does not apply to the chain kind
            InvalidAddressFormat: If generation produced a malformed address
        """
        chain_kind = ChainKind(chain_kind)

        if evm_chain_id is not None and chain_kind != ChainKind.ETHEREUM:
            raise ValueError(f"evm_chain_id only applies to ethereum wallets, not {chain_kind.value}")
        if network is not None and chain_kind != ChainKind.BITCOIN:
            raise ValueError(f"network only applies to bitcoin wallets, not {chain_kind.value}")

        if chain_kind == ChainKind.ETHEREUM:
            evm_chain_id = evm_chain_id if evm_chain_id is not None else self.default_evm_chain_id
            if get_evm_chain(evm_chain_id) is None:
                logger.warning(f"Creating wallet for unknown EVM chain id {evm_chain_id}")
        if chain_kind == ChainKind.BITCOIN:
            network = BitcoinNetwork(network or BitcoinNetwork.MAINNET)

        key = generate_key(chain_kind, network=network)
        encrypted = self.cipher.encrypt(key.secret, password)

        logger.info(f"Created encrypted {chain_kind.value} wallet {key.public_address}")

        return NewWallet(
            chain_kind=chain_kind,
            public_address=key.public_address,
            encrypted_secret=encrypted,
            network=network,
            evm_chain_id=evm_chain_id,
        )

    def decrypt_wallet(self, record: WalletRecord, password: str) -> bytes:
        """Decrypt a stored wallet's secret and verify it.

        Raises:
            WrongPasswordOrCorruptData: Wrong password or damaged ciphertext
            CorruptRecord: The secret does not belong to the stored address
        """
        chain_kind = ChainKind(record.chain_kind)

        if chain_kind == ChainKind.TRON and not validate_tron_address(record.public_address):
            raise CorruptRecord(f"Wallet {record.id} has a malformed Tron address")

        secret = self.cipher.decrypt(record.encrypted_secret, password)

        try:
            derived = derive_address(chain_kind, secret, network=record.network)
        except (ValueError, TypeError, Base58ChecksumError):
            raise CorruptRecord(f"Wallet {record.id} holds an unreadable {chain_kind.value} key") from None

        if not _same_address(chain_kind, derived, record.public_address):
            logger.error(f"Wallet {record.id} secret does not match address {record.public_address}")
            raise CorruptRecord(f"Wallet {record.id} secret does not match its address")

        return secret


def _same_address(chain_kind: ChainKind, derived: str, stored: str) -> bool:
    # Hex addresses may be stored without their checksum casing
    if chain_kind == ChainKind.ETHEREUM:
        return derived.lower() == stored.lower()
    return derived == stored
