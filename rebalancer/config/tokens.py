"""
Token constants shared across the rebalancer.

The 1inch API and the BatchSwapperV2 contract both represent the chain's
native currency with the 0xEeee... sentinel address; some balance sources
report it as the zero address instead.
"""

from __future__ import annotations

NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MAX_UINT256 = (1 << 256) - 1

# Default token metadata when a token list lookup misses
DEFAULT_DECIMALS = 18

NATIVE_SYMBOLS: dict[int, str] = {
    1: "ETH",
    10: "ETH",
    8453: "ETH",
    42161: "ETH",
    100: "xDAI",
}


def is_native_address(address: str | None) -> bool:
    """Return True for the native-currency sentinel or the zero address."""
    if not address:
        return False
    lowered = address.lower()
    return lowered in (NATIVE_TOKEN_ADDRESS.lower(), ZERO_ADDRESS)


def native_symbol(chain_id: int) -> str:
    return NATIVE_SYMBOLS.get(chain_id, "ETH")
