"""
Configuration package for the batch rebalancer.

Chain table, contract addresses, ABIs, token constants and runtime settings.
"""

from rebalancer.config.network import (
    CHAINS,
    DEFAULT_CHAIN,
    ONEINCH_ROUTER_V6,
    get_chain_config,
    get_chain_id,
    get_rpc_url,
    get_explorer_tx_url,
    get_batch_swapper_address,
    is_batch_supported,
)

from rebalancer.config.tokens import (
    NATIVE_TOKEN_ADDRESS,
    ZERO_ADDRESS,
    MAX_UINT256,
    is_native_address,
    native_symbol,
)

from rebalancer.config.abis import (
    ERC20_ABI,
    BATCH_SWAPPER_ABI,
    MAX_SWAPS_PER_BATCH,
)

from rebalancer.config.settings import RebalanceSettings

__all__ = [
    # Network
    'CHAINS',
    'DEFAULT_CHAIN',
    'ONEINCH_ROUTER_V6',
    'get_chain_config',
    'get_chain_id',
    'get_rpc_url',
    'get_explorer_tx_url',
    'get_batch_swapper_address',
    'is_batch_supported',

    # Tokens
    'NATIVE_TOKEN_ADDRESS',
    'ZERO_ADDRESS',
    'MAX_UINT256',
    'is_native_address',
    'native_symbol',

    # ABIs
    'ERC20_ABI',
    'BATCH_SWAPPER_ABI',
    'MAX_SWAPS_PER_BATCH',

    # Settings
    'RebalanceSettings',
]
