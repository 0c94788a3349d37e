# ABOUTME: Supported blockchain networks and their identifiers.
# ABOUTME: Maps chain names to chain ids and the discovery family they belong to.

from dataclasses import dataclass
from typing import Literal

ChainType = Literal["evm", "tezos"]


@dataclass(frozen=True)
class ChainConfig:
    """A supported blockchain network."""
    name: str
    display_name: str
    chain_type: ChainType
    chain_id: int


SUPPORTED_CHAINS: dict[str, ChainConfig] = {
    "ethereum": ChainConfig("ethereum", "Ethereum", "evm", 1),
    "base": ChainConfig("base", "Base", "evm", 8453),
    "zora": ChainConfig("zora", "Zora", "evm", 7777777),
    "optimism": ChainConfig("optimism", "Optimism", "evm", 10),
    "arbitrum": ChainConfig("arbitrum", "Arbitrum", "evm", 42161),
    "polygon": ChainConfig("polygon", "Polygon", "evm", 137),
    # Tezos has no EVM chain id
    "tezos": ChainConfig("tezos", "Tezos", "tezos", -1),
}


def get_supported_chain_names() -> list[str]:
    return list(SUPPORTED_CHAINS)


def get_chain_config(chain_name: str) -> ChainConfig:
    """Look up a chain by name (case-insensitive).

    Raises:
        ValueError: If the chain is not supported.
    """
    chain = SUPPORTED_CHAINS.get(chain_name.strip().lower())
    if chain is None:
        supported = ", ".join(get_supported_chain_names())
        raise ValueError(f"Unsupported chain: {chain_name}. Supported chains: {supported}")
    return chain
