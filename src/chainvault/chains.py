"""EVM network reference data.

An Ethereum-compatible wallet is scoped to one EVM chain id. The id is
advisory metadata: the same key and address work on every network.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EvmChain:
    """An EVM-compatible network."""

    name: str
    chain_id: int
    symbol: str
    testnet: bool = False
    exchange_network: Optional[str] = None  # Exchange provider network code


# ======================
# Known EVM networks
# ======================

EVM_CHAINS: dict[str, EvmChain] = {
    "ETHEREUM_MAINNET": EvmChain("Ethereum", 1, "ETH", exchange_network="eth"),
    "ETHEREUM_GOERLI": EvmChain("Goerli", 5, "ETH", testnet=True),
    "ETHEREUM_SEPOLIA": EvmChain("Sepolia", 11155111, "ETH", testnet=True),
    "BSC_MAINNET": EvmChain("BNB Smart Chain", 56, "BNB", exchange_network="bsc"),
    "BSC_TESTNET": EvmChain("BNB Smart Chain Testnet", 97, "BNB", testnet=True),
    "POLYGON_MAINNET": EvmChain("Polygon", 137, "MATIC", exchange_network="polygon"),
    "POLYGON_MUMBAI": EvmChain("Mumbai", 80001, "MATIC", testnet=True),
    "ARBITRUM_ONE": EvmChain("Arbitrum One", 42161, "ETH", exchange_network="arbitrum"),
    "ARBITRUM_NOVA": EvmChain("Arbitrum Nova", 42170, "ETH"),
    "OPTIMISM": EvmChain("Optimism", 10, "ETH", exchange_network="optimism"),
    "AVALANCHE_C": EvmChain("Avalanche C-Chain", 43114, "AVAX", exchange_network="avalanche"),
    "FANTOM": EvmChain("Fantom", 250, "FTM"),
}

# Chain name -> chain id
EVM_CHAIN_IDS: dict[str, int] = {key: chain.chain_id for key, chain in EVM_CHAINS.items()}

DEFAULT_EVM_CHAIN_ID = EVM_CHAIN_IDS["ETHEREUM_MAINNET"]

# Chain id -> exchange provider network name
DEFAULT_EVM_NETWORK_NAMES: dict[int, str] = {
    chain.chain_id: chain.exchange_network
    for chain in EVM_CHAINS.values()
    if chain.exchange_network
}


def get_evm_chain(chain_id: int) -> Optional[EvmChain]:
    """Look up an EVM network by chain id."""
    for chain in EVM_CHAINS.values():
        if chain.chain_id == chain_id:
            return chain
    return None
