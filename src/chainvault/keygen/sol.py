"""Solana key generation.

Uses the Ed25519 curve. The address is the Base58-encoded 32-byte public key.
The secret matches the Solana CLI keypair layout: Base58(seed || pubkey).
"""

import os

from bip_utils import Base58Decoder, Base58Encoder, Ed25519PrivateKey, SolAddrEncoder

from chainvault.keygen.base import GeneratedKey

SEED_SIZE = 32


def _raw_public_key(priv: Ed25519PrivateKey) -> bytes:
    # bip_utils prefixes Ed25519 public keys with 0x00
    return priv.PublicKey().RawCompressed().ToBytes()[1:]


def generate_solana_key() -> GeneratedKey:
    """Generate a new Solana keypair."""
    seed = os.urandom(SEED_SIZE)
    priv = Ed25519PrivateKey.FromBytes(seed)

    address = SolAddrEncoder.EncodeKey(priv.PublicKey())
    keypair = seed + _raw_public_key(priv)

    return GeneratedKey(public_address=address, secret=Base58Encoder.Encode(keypair).encode())


def solana_address_from_secret(secret: bytes) -> str:
    """Recompute the Solana address for a decrypted keypair."""
    keypair = Base58Decoder.Decode(secret.decode())
    if len(keypair) != SEED_SIZE * 2:
        raise ValueError("Solana keypair must be 64 bytes")

    priv = Ed25519PrivateKey.FromBytes(keypair[:SEED_SIZE])
    if _raw_public_key(priv) != keypair[SEED_SIZE:]:
        raise ValueError("Solana keypair public half does not match its seed")
    return SolAddrEncoder.EncodeKey(priv.PublicKey())
