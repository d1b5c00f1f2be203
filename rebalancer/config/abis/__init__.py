from .erc20 import ERC20_ABI
from .batch_swapper import (
    BATCH_SWAPPER_ABI,
    BATCH_SWAP_SIGNATURE,
    MAX_SWAPS_PER_BATCH,
    SWAP_PARAMS_TUPLE,
)

__all__ = [
    "ERC20_ABI",
    "BATCH_SWAPPER_ABI",
    "BATCH_SWAP_SIGNATURE",
    "MAX_SWAPS_PER_BATCH",
    "SWAP_PARAMS_TUPLE",
]
