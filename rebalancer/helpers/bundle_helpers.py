"""
Helper functions for encoding the calls that make up a rebalance.

This module provides calldata encoding for ERC20 approvals and the
BatchSwapperV2.batchSwap entry point, plus revert-reason decoding for
failed submissions.
"""

from __future__ import annotations

from typing import Any, Sequence

from web3 import Web3
from eth_abi import encode, decode
from eth_utils import keccak, to_bytes

from rebalancer.config.abis import BATCH_SWAP_SIGNATURE, SWAP_PARAMS_TUPLE
from rebalancer.types import LegDescriptor

# Standard Error(string) and Panic(uint256) selectors
ERROR_STRING_SELECTOR = bytes.fromhex('08c379a0')
PANIC_SELECTOR = bytes.fromhex('4e487b71')


def encode_approval_call(token: str, spender: str, amount: int) -> dict[str, Any]:
    """
    Encode an ERC20 approval call.

    Args:
        token: Token contract address
        spender: Address to approve
        amount: Amount to approve (use 2**256-1 for max)

    Returns:
        Call dictionary with target, value, and data
    """
    # approve(address,uint256)
    function_selector = keccak(text="approve(address,uint256)")[:4]
    encoded_params = encode(['address', 'uint256'], [Web3.to_checksum_address(spender), amount])

    return {
        'target': Web3.to_checksum_address(token),
        'value': 0,
        'data': function_selector + encoded_params
    }


def hex_to_bytes(data: str | bytes | None) -> bytes:
    """Accept 0x-prefixed hex, bare hex, bytes or None (empty)."""
    if data is None:
        return b''
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if data in ('', '0x'):
        return b''
    return to_bytes(hexstr=data)


def encode_batch_swap_call(
    contract: str,
    legs: Sequence[LegDescriptor],
    recipient: str,
    value: int = 0,
) -> dict[str, Any]:
    """
    Encode a BatchSwapperV2.batchSwap call.

    Args:
        contract: BatchSwapperV2 address
        legs: Ordered swap descriptors
        recipient: Address receiving every output token
        value: Native currency forwarded with the call (wei)

    Returns:
        Call dictionary with target, value, and data
    """
    # batchSwap((address,address,uint256,uint256,bytes)[],address)
    function_selector = keccak(text=BATCH_SWAP_SIGNATURE)[:4]
    swaps = [
        (
            Web3.to_checksum_address(leg.token_in),
            Web3.to_checksum_address(leg.token_out),
            int(leg.amount_in),
            int(leg.min_amount_out),
            leg.swap_data,
        )
        for leg in legs
    ]
    encoded_params = encode(
        [f'{SWAP_PARAMS_TUPLE}[]', 'address'],
        [swaps, Web3.to_checksum_address(recipient)]
    )

    return {
        'target': Web3.to_checksum_address(contract),
        'value': int(value),
        'data': function_selector + encoded_params
    }


def decode_batch_swap_call(data: bytes | str) -> tuple[list[tuple], str]:
    """Inverse of encode_batch_swap_call: returns (swaps, recipient)."""
    raw = hex_to_bytes(data)
    selector = keccak(text=BATCH_SWAP_SIGNATURE)[:4]
    if raw[:4] != selector:
        raise ValueError(f"Not a batchSwap call (selector 0x{raw[:4].hex()})")
    swaps, recipient = decode([f'{SWAP_PARAMS_TUPLE}[]', 'address'], raw[4:])
    return list(swaps), recipient


def decode_revert_reason(error_data) -> str:
    """
    Decode revert reason from transaction error.

    Args:
        error_data: Error data from failed transaction (bytes or hex string)

    Returns:
        Human-readable error message
    """
    try:
        error_data = hex_to_bytes(error_data)
    except ValueError:
        return f"Unknown error ({error_data})"

    if len(error_data) < 4:
        return "Unknown error (no data)"

    if error_data[:4] == ERROR_STRING_SELECTOR:
        try:
            error_msg = decode(['string'], error_data[4:])[0]
            return f"Error: {error_msg}"
        except Exception:
            return "Error: Failed to decode error message"

    if error_data[:4] == PANIC_SELECTOR:
        try:
            code = decode(['uint256'], error_data[4:])[0]
            return f"Panic: 0x{code:02x}"
        except Exception:
            return "Panic: undecodable code"

    # Custom errors raised by BatchSwapperV2
    error_selectors = {
        keccak(text="TooManySwaps()")[:4]: 'TooManySwaps',
        keccak(text="NoSwaps()")[:4]: 'NoSwaps',
        keccak(text="InvalidRecipient()")[:4]: 'InvalidRecipient',
        keccak(text="SwapFailed(uint256)")[:4]: 'SwapFailed(uint256)',
        keccak(text="InsufficientOutput(uint256)")[:4]: 'InsufficientOutput(uint256)',
    }

    selector = error_data[:4]
    if selector in error_selectors:
        return f"Custom Error: {error_selectors[selector]}"

    return f"Unknown error (selector: 0x{selector.hex()})"
