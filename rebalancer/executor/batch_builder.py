"""
Batch transaction builder for BatchSwapperV2.batchSwap.

Turns the finalized (quoted, slippage-bounded) legs of a plan into the
ordered swaps array, the native value to forward, and a gas limit with a
safety buffer over the estimate. The contract accepts at most
MAX_SWAPS_PER_BATCH swaps; a larger plan is rejected here rather than split
or truncated, the caller has to request several batches.
"""

from __future__ import annotations

import logging
from typing import Sequence

from eth_utils import is_hex_address
from web3 import Web3

from rebalancer.config.abis import MAX_SWAPS_PER_BATCH
from rebalancer.config.tokens import ZERO_ADDRESS
from rebalancer.errors import PlanningError
from rebalancer.helpers.bundle_helpers import encode_batch_swap_call, hex_to_bytes
from rebalancer.types import BatchTransaction, LegDescriptor, QuotedLeg

logger = logging.getLogger(__name__)

GAS_BUFFER_PERCENT = 20


def to_leg_descriptors(legs: Sequence[QuotedLeg]) -> list[LegDescriptor]:
    return [
        LegDescriptor(
            token_in=leg.instruction.from_token.address,
            token_out=leg.instruction.to_token.address,
            amount_in=leg.instruction.amount,
            min_amount_out=leg.min_amount_out,
            swap_data=hex_to_bytes(leg.route_data),
        )
        for leg in legs
    ]


def native_value(legs: Sequence[QuotedLeg]) -> int:
    """Sum of amounts sold from the chain's native asset (forwarded as msg.value)."""
    return sum(leg.instruction.amount for leg in legs if leg.instruction.from_token.is_native)


def apply_gas_buffer(gas_estimate: int, buffer_percent: int = GAS_BUFFER_PERCENT) -> int:
    return int(gas_estimate) * (100 + buffer_percent) // 100


def validate_legs(legs: Sequence[QuotedLeg], max_batch_size: int = MAX_SWAPS_PER_BATCH) -> None:
    """
    Check that ``legs`` can be submitted as one batch.

    Raises:
        PlanningError: empty batch, too many legs, or an invalid leg
    """
    if not legs:
        raise PlanningError("No swaps provided for batch")

    if len(legs) > max_batch_size:
        raise PlanningError(
            f"Batch has {len(legs)} legs, maximum is {max_batch_size}; "
            "request multiple batches"
        )

    for index, leg in enumerate(legs):
        instruction = leg.instruction
        if not leg.ok:
            raise PlanningError(
                f"Leg {index} ({leg.pair}) has no usable quote: {leg.error}",
                token=instruction.from_token.address,
                leg_index=index,
            )
        if instruction.from_token.key == instruction.to_token.key:
            raise PlanningError(
                f"Leg {index}: cannot swap {instruction.from_token.symbol} to itself",
                token=instruction.from_token.address,
                leg_index=index,
            )
        if instruction.amount <= 0:
            raise PlanningError(
                f"Leg {index}: amount must be greater than 0",
                token=instruction.from_token.address,
                leg_index=index,
            )
        if leg.min_amount_out <= 0:
            raise PlanningError(
                f"Leg {index}: min amount out must be greater than 0",
                token=instruction.to_token.address,
                leg_index=index,
            )
        # a built route must forward exactly what the leg sells from the native asset
        expected_value = instruction.amount if instruction.from_token.is_native else 0
        if hex_to_bytes(leg.route_data) and leg.native_value != expected_value:
            raise PlanningError(
                f"Leg {index}: route forwards {leg.native_value} wei but leg sells {expected_value} native",
                token=instruction.from_token.address,
                leg_index=index,
            )


class BatchTransactionBuilder:
    """Assembles the batchSwap call for a set of finalized legs."""

    def __init__(
        self,
        contract_address: str,
        *,
        max_batch_size: int = MAX_SWAPS_PER_BATCH,
        gas_buffer_percent: int = GAS_BUFFER_PERCENT,
    ) -> None:
        if not is_hex_address(contract_address):
            raise ValueError(f"Invalid batch swapper address: {contract_address}")
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.max_batch_size = max_batch_size
        self.gas_buffer_percent = gas_buffer_percent

    def build(self, legs: Sequence[QuotedLeg], recipient: str, gas_estimate: int) -> BatchTransaction:
        """
        Build the batch transaction.

        Args:
            legs: Finalized legs in execution order
            recipient: Address receiving every output token
            gas_estimate: Estimated gas for the batch (live or fallback)

        Returns:
            BatchTransaction with calldata, native value and buffered gas limit

        Raises:
            PlanningError: if the legs or recipient are not valid for one batch
        """
        validate_legs(legs, self.max_batch_size)

        if not is_hex_address(recipient) or recipient.lower() == ZERO_ADDRESS:
            raise PlanningError(f"Invalid recipient: {recipient}")

        descriptors = to_leg_descriptors(legs)
        value = native_value(legs)
        call = encode_batch_swap_call(self.contract_address, descriptors, recipient, value)
        gas_limit = apply_gas_buffer(gas_estimate, self.gas_buffer_percent)

        logger.info(
            "Built batch of %d legs (value=%d wei, gas=%d, limit=%d)",
            len(descriptors), value, gas_estimate, gas_limit,
        )

        return BatchTransaction(
            to=call['target'],
            recipient=Web3.to_checksum_address(recipient),
            legs=tuple(descriptors),
            value=value,
            gas_estimate=int(gas_estimate),
            gas_limit=gas_limit,
            data=Web3.to_hex(call['data']),
        )
