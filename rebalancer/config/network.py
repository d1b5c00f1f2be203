"""
Network configuration for the batch rebalancer.

Contains RPC URLs, explorers, the 1inch AggregationRouterV6 address and the
deployed BatchSwapperV2 address per chain. Supports Base, Arbitrum,
Optimism and Ethereum mainnet (no batch swapper deployed there yet).
"""

import os
from typing import Any


# =============================================================================
# CHAIN CONFIGURATIONS
# =============================================================================

ONEINCH_ROUTER_V6 = "0x111111125421cA6dc452d289314280a0f8842A65"

CHAINS: dict[str, dict[str, Any]] = {
    "base": {
        "chain_id": 8453,
        "name": "Base",
        "currency": "ETH",
        "block_time": 2,
        "rpc_urls": [
            "https://mainnet.base.org",
            "https://base.publicnode.com",
        ],
        "explorer": {
            "name": "Basescan",
            "url": "https://basescan.org",
        },
        "oneinch_router": ONEINCH_ROUTER_V6,
        "batch_swapper": "0xf84DA33B69Fb92F28997B1aB9Ad755d4E4E14D06",
    },
    "arbitrum": {
        "chain_id": 42161,
        "name": "Arbitrum",
        "currency": "ETH",
        "block_time": 1,
        "rpc_urls": [
            "https://arb1.arbitrum.io/rpc",
            "https://arbitrum.publicnode.com",
        ],
        "explorer": {
            "name": "Arbiscan",
            "url": "https://arbiscan.io",
        },
        "oneinch_router": ONEINCH_ROUTER_V6,
        "batch_swapper": "0x5821173b323022dFc1549Be1a6Dee657997Ec5Db",
    },
    "optimism": {
        "chain_id": 10,
        "name": "Optimism",
        "currency": "ETH",
        "block_time": 2,
        "rpc_urls": [
            "https://mainnet.optimism.io",
            "https://optimism.publicnode.com",
        ],
        "explorer": {
            "name": "Optimistic Etherscan",
            "url": "https://optimistic.etherscan.io",
        },
        "oneinch_router": ONEINCH_ROUTER_V6,
        "batch_swapper": "0x5821173b323022dFc1549Be1a6Dee657997Ec5Db",
    },
    "ethereum": {
        "chain_id": 1,
        "name": "Ethereum",
        "currency": "ETH",
        "block_time": 12,
        "rpc_urls": [
            "https://eth.llamarpc.com",
        ],
        "explorer": {
            "name": "Etherscan",
            "url": "https://etherscan.io",
        },
        "oneinch_router": ONEINCH_ROUTER_V6,
        "batch_swapper": None,
    },
}

DEFAULT_CHAIN = "base"

# Chain ID to name mapping
CHAIN_ID_TO_NAME: dict[int, str] = {
    config["chain_id"]: name for name, config in CHAINS.items()
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_chain_config(chain: str | int | None = None) -> dict[str, Any]:
    """Get configuration for a specific chain.

    Args:
        chain: Chain name (e.g., 'base', 'arbitrum') or chain ID.
               If None, uses CHAIN environment variable or defaults to 'base'.

    Returns:
        Chain configuration dictionary.

    Raises:
        ValueError: If chain is not supported.
    """
    if chain is None:
        chain = os.getenv("CHAIN", DEFAULT_CHAIN).lower()

    if isinstance(chain, int):
        name = CHAIN_ID_TO_NAME.get(chain)
        if name is None:
            raise ValueError(f"Unsupported chain ID: {chain}")
        chain = name

    chain = chain.lower()
    if chain not in CHAINS:
        raise ValueError(f"Unsupported chain: {chain}. Supported: {list(CHAINS.keys())}")

    return CHAINS[chain]


def get_chain_id(chain: str | int | None = None) -> int:
    return get_chain_config(chain)["chain_id"]


def get_rpc_url(chain: str | int | None = None) -> str:
    """RPC_URL from the environment wins over the chain's public endpoints."""
    return os.getenv("RPC_URL") or get_chain_config(chain)["rpc_urls"][0]


def get_explorer_tx_url(tx_hash: str, chain: str | int | None = None) -> str:
    return f"{get_chain_config(chain)['explorer']['url']}/tx/{tx_hash}"


def get_batch_swapper_address(chain: str | int | None = None) -> str:
    """Resolve the BatchSwapperV2 address from BATCH_SWAPPER_ADDRESS or the chain table.

    Raises:
        ValueError: If the contract is not deployed on the chain.
    """
    override = os.getenv("BATCH_SWAPPER_ADDRESS")
    if override:
        return override
    config = get_chain_config(chain)
    address = config.get("batch_swapper")
    if not address:
        raise ValueError(f"BatchSwapper contract not deployed on {config['name']}")
    return address


def is_batch_supported(chain: str | int) -> bool:
    try:
        return bool(get_chain_config(chain).get("batch_swapper"))
    except ValueError:
        return False
