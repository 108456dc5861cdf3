"""Bitcoin key generation.

Address format: legacy P2PKH (1... on mainnet, m/n... on testnet),
Base58Check over RIPEMD160(SHA256(compressed pubkey)).
Secret format: compressed WIF.
"""

from typing import Optional

from bip_utils import P2PKHAddrEncoder, Secp256k1PrivateKey, WifDecoder, WifEncoder, WifPubKeyModes

from chainvault.keygen.base import BitcoinNetwork, GeneratedKey, random_secp256k1_key

# Network version bytes (P2PKH address, WIF)
NET_VERSIONS = {
    BitcoinNetwork.MAINNET: {"p2pkh": b"\x00", "wif": b"\x80"},
    BitcoinNetwork.TESTNET: {"p2pkh": b"\x6f", "wif": b"\xef"},
}


def generate_bitcoin_key(network: Optional[BitcoinNetwork] = None) -> GeneratedKey:
    """Generate a new Bitcoin keypair.

    Args:
        network: mainnet (default) or testnet
    """
    network = BitcoinNetwork(network or BitcoinNetwork.MAINNET)
    versions = NET_VERSIONS[network]

    priv = random_secp256k1_key()
    address = P2PKHAddrEncoder.EncodeKey(priv.PublicKey(), net_ver=versions["p2pkh"])
    wif = WifEncoder.Encode(priv.Raw().ToBytes(), net_ver=versions["wif"], pub_key_mode=WifPubKeyModes.COMPRESSED)

    return GeneratedKey(
        public_address=address,
        secret=wif.encode(),
        metadata={"network": network},
    )


def bitcoin_address_from_secret(secret: bytes, network: Optional[BitcoinNetwork] = None) -> str:
    """Recompute the P2PKH address for a decrypted WIF key."""
    network = BitcoinNetwork(network or BitcoinNetwork.MAINNET)
    versions = NET_VERSIONS[network]

    key_bytes, _ = WifDecoder.Decode(secret.decode(), net_ver=versions["wif"])
    priv = Secp256k1PrivateKey.FromBytes(key_bytes)
    return P2PKHAddrEncoder.EncodeKey(priv.PublicKey(), net_ver=versions["p2pkh"])
