"""Key generation base types.

Each supported chain is one ChainKind value. Generators are plain functions
registered per value in keygen.factory, not subclasses.

Security: GeneratedKey.secret is plaintext key material. It must go straight
into SecretCipher.encrypt and is never logged or stored as-is.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum

from bip_utils import Secp256k1PrivateKey


class ChainKind(str, Enum):
    """Blockchain family a wallet belongs to."""

    ETHEREUM = "ethereum"  # Any EVM-compatible chain
    BITCOIN = "bitcoin"
    SOLANA = "solana"
    TRON = "tron"


class BitcoinNetwork(str, Enum):
    """Bitcoin network a wallet's address is encoded for."""

    MAINNET = "mainnet"
    TESTNET = "testnet"


@dataclass
class GeneratedKey:
    """A freshly generated keypair for one chain."""

    public_address: str
    secret: bytes = field(repr=False)
    metadata: dict = field(default_factory=dict)


# Tron addresses: 'T' + 33 Base58 characters
TRON_ADDRESS_RE = re.compile(r"^T[1-9A-HJ-NP-Za-km-z]{33}$")


def validate_tron_address(address: str) -> bool:
    """Check the Tron address format.

    A valid address starts with 'T', is 34 characters long and uses only
    the Base58 alphabet.
    """
    if not address:
        return False
    return TRON_ADDRESS_RE.match(address) is not None


def random_secp256k1_key(max_attempts: int = 8) -> Secp256k1PrivateKey:
    """Draw a random secp256k1 private key.

    Random 32-byte strings outside the curve order are rejected by bip_utils;
    that happens with negligible probability, so a few retries suffice.
    """
    for _ in range(max_attempts):
        try:
            return Secp256k1PrivateKey.FromBytes(os.urandom(32))
        except ValueError:
            continue
    raise RuntimeError("Could not generate a valid secp256k1 private key")
