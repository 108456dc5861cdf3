"""Key generator dispatch.

Maps each ChainKind to its generation and address-recovery functions.
"""

import logging
from typing import Callable, Optional

from chainvault.keygen.base import BitcoinNetwork, ChainKind, GeneratedKey
from chainvault.keygen.btc import bitcoin_address_from_secret, generate_bitcoin_key
from chainvault.keygen.evm import (
    ethereum_address_from_secret,
    generate_ethereum_key,
    generate_tron_key,
    tron_address_from_secret,
)
from chainvault.keygen.sol import generate_solana_key, solana_address_from_secret

logger = logging.getLogger(__name__)

# Chain kind to generator mapping
GENERATORS: dict[ChainKind, Callable[..., GeneratedKey]] = {
    ChainKind.ETHEREUM: generate_ethereum_key,
    ChainKind.BITCOIN: generate_bitcoin_key,
    ChainKind.SOLANA: generate_solana_key,
    ChainKind.TRON: generate_tron_key,
}

ADDRESS_RECOVERY: dict[ChainKind, Callable[..., str]] = {
    ChainKind.ETHEREUM: ethereum_address_from_secret,
    ChainKind.BITCOIN: bitcoin_address_from_secret,
    ChainKind.SOLANA: solana_address_from_secret,
    ChainKind.TRON: tron_address_from_secret,
}


def get_supported_chains() -> list[ChainKind]:
    """Get list of chain kinds that can be generated."""
    return list(GENERATORS.keys())


def generate_key(chain_kind: ChainKind, network: Optional[BitcoinNetwork] = None) -> GeneratedKey:
    """Generate a keypair for a chain.

    Args:
        chain_kind: Chain to generate for
        network: Bitcoin network (ignored for other chains)

    Returns:
        GeneratedKey with address, plaintext secret and chain metadata

    Raises:
        ValueError: If chain kind is not supported
        InvalidAddressFormat: If the generator produced a malformed address
    """
    chain_kind = ChainKind(chain_kind)
    generator = GENERATORS.get(chain_kind)
    if generator is None:
        raise ValueError(f"Unsupported chain kind: {chain_kind}")

    if chain_kind == ChainKind.BITCOIN:
        key = generator(network)
    else:
        key = generator()

    logger.debug(f"Generated {chain_kind.value} address {key.public_address}")
    return key


def derive_address(
    chain_kind: ChainKind,
    secret: bytes,
    network: Optional[BitcoinNetwork] = None,
) -> str:
    """Recompute the public address belonging to a decrypted secret.

    Raises:
        ValueError: If the secret cannot be parsed for this chain
    """
    chain_kind = ChainKind(chain_kind)
    recover = ADDRESS_RECOVERY[chain_kind]
    if chain_kind == ChainKind.BITCOIN:
        return recover(secret, network)
    return recover(secret)
