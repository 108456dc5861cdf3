"""Ethereum and Tron key generation.

Both chains use secp256k1 keys and derive the address from the keccak256
hash of the uncompressed public key:
- Ethereum: 0x... (EIP-55 checksum), valid on every EVM-compatible chain
- Tron: T... (Base58Check with 0x41 prefix)
"""

from bip_utils import EthAddrEncoder, Secp256k1PrivateKey, TrxAddrEncoder
from eth_utils import is_checksum_address

from chainvault.exceptions import InvalidAddressFormat
from chainvault.keygen.base import GeneratedKey, random_secp256k1_key, validate_tron_address


def generate_ethereum_key() -> GeneratedKey:
    """Generate a new Ethereum-compatible keypair.

    The secret is the 0x-prefixed hex private key.
    """
    priv = random_secp256k1_key()
    address = EthAddrEncoder.EncodeKey(priv.PublicKey())

    if not is_checksum_address(address):
        raise InvalidAddressFormat("Generated Ethereum address failed checksum validation")

    secret = "0x" + priv.Raw().ToHex()
    return GeneratedKey(public_address=address, secret=secret.encode())


def ethereum_address_from_secret(secret: bytes) -> str:
    """Recompute the Ethereum address for a decrypted private key."""
    key_hex = secret.decode().removeprefix("0x")
    priv = Secp256k1PrivateKey.FromBytes(bytes.fromhex(key_hex))
    return EthAddrEncoder.EncodeKey(priv.PublicKey())


def generate_tron_key() -> GeneratedKey:
    """Generate a new Tron keypair.

    The secret is the hex private key (no prefix), as TronWeb exports it.

    Raises:
        InvalidAddressFormat: If the encoder produced a malformed address
    """
    priv = random_secp256k1_key()
    address = TrxAddrEncoder.EncodeKey(priv.PublicKey())

    if not validate_tron_address(address):
        raise InvalidAddressFormat("Generated Tron address is invalid")

    return GeneratedKey(public_address=address, secret=priv.Raw().ToHex().encode())


def tron_address_from_secret(secret: bytes) -> str:
    """Recompute the Tron address for a decrypted private key."""
    priv = Secp256k1PrivateKey.FromBytes(bytes.fromhex(secret.decode()))
    return TrxAddrEncoder.EncodeKey(priv.PublicKey())
