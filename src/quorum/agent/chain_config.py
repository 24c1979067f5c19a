"""evm chain table used by the contract fetcher"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ChainCfg:
    chain_id: int
    rpc_env: str
    default_rpc: str
    etherscan_api_env: str
    etherscan_base: str

    def rpc_url(self) -> str:
        return os.environ.get(self.rpc_env) or self.default_rpc

    def etherscan_key(self) -> str:
        return os.environ.get(self.etherscan_api_env, "")


CHAINS = {
    "ethereum": ChainCfg(
        1,
        "ETHEREUM_RPC_URL",
        "https://eth.llamarpc.com",
        "ETHERSCAN_API_KEY",
        "https://api.etherscan.io/api",
    ),
    "polygon": ChainCfg(
        137,
        "POLYGON_RPC_URL",
        "https://polygon.llamarpc.com",
        "POLYGONSCAN_API_KEY",
        "https://api.polygonscan.com/api",
    ),
    "arbitrum": ChainCfg(
        42161,
        "ARBITRUM_RPC_URL",
        "https://arb1.arbitrum.io/rpc",
        "ARBISCAN_API_KEY",
        "https://api.arbiscan.io/api",
    ),
    "optimism": ChainCfg(
        10,
        "OPTIMISM_RPC_URL",
        "https://mainnet.optimism.io",
        "OPSCAN_API_KEY",
        "https://api-optimistic.etherscan.io/api",
    ),
    "base": ChainCfg(
        8453,
        "BASE_RPC_URL",
        "https://mainnet.base.org",
        "BASESCAN_API_KEY",
        "https://api.basescan.org/api",
    ),
    "bsc": ChainCfg(
        56,
        "BSC_RPC_URL",
        "https://bsc-dataseed.binance.org/",
        "BSCSCAN_API_KEY",
        "https://api.bscscan.com/api",
    ),
}

CHAIN_ALIASES = {
    "mainnet": "ethereum",
    "eth": "ethereum",
    "matic": "polygon",
    "arb": "arbitrum",
    "op": "optimism",
    "bnb": "bsc",
    "binance": "bsc",
}


def normalize_chain(chain_key: str) -> str:
    """Normalize chain name using aliases."""
    key = chain_key.strip().lower()
    return CHAIN_ALIASES.get(key, key)


def get_chain(chain_key: str) -> ChainCfg:
    """Return chain configuration, raising KeyError for unknown chains."""
    return CHAINS[normalize_chain(chain_key)]
