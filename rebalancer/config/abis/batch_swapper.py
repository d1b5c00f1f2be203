"""
BatchSwapperV2 interface ABI.

batchSwap executes up to MAX_SWAPS_PER_BATCH 1inch routes atomically and
forwards every output to ``recipient``. The call is payable so native-currency
legs can be funded with msg.value.
"""

from typing import Any

SWAP_PARAMS_TUPLE = "(address,address,uint256,uint256,bytes)"
BATCH_SWAP_SIGNATURE = f"batchSwap({SWAP_PARAMS_TUPLE}[],address)"

MAX_SWAPS_PER_BATCH = 10

BATCH_SWAPPER_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "batchSwap",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "swaps",
                "type": "tuple[]",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "minAmountOut", "type": "uint256"},
                    {"name": "swapData", "type": "bytes"},
                ],
            },
            {"name": "recipient", "type": "address"},
        ],
        "outputs": [{"name": "amountsOut", "type": "uint256[]"}],
    },
    {
        "type": "function",
        "name": "MAX_SWAPS_PER_BATCH",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "oneInchRouter",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "event",
        "name": "SwapExecuted",
        "inputs": [
            {"indexed": True, "name": "user", "type": "address"},
            {"indexed": True, "name": "tokenIn", "type": "address"},
            {"indexed": True, "name": "tokenOut", "type": "address"},
            {"indexed": False, "name": "amountIn", "type": "uint256"},
            {"indexed": False, "name": "amountOut", "type": "uint256"},
        ],
        "anonymous": False,
    },
    {
        "type": "event",
        "name": "BatchSwapExecuted",
        "inputs": [
            {"indexed": True, "name": "user", "type": "address"},
            {"indexed": False, "name": "swapCount", "type": "uint256"},
            {"indexed": False, "name": "totalGasUsed", "type": "uint256"},
        ],
        "anonymous": False,
    },
]
