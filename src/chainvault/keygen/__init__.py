"""Key generation for the supported chains."""

from chainvault.keygen.base import BitcoinNetwork, ChainKind, GeneratedKey, validate_tron_address
from chainvault.keygen.factory import derive_address, generate_key, get_supported_chains

__all__ = [
    "BitcoinNetwork",
    "ChainKind",
    "GeneratedKey",
    "derive_address",
    "generate_key",
    "get_supported_chains",
    "validate_tron_address",
]
