"""
Approval coordinator.

Required allowances are summed per sell token across every leg, so two legs
selling the same token produce one approval for the combined amount. The
native currency needs no approval and is skipped.

Approvals are submitted one at a time; each must be mined successfully
before the next is sent. Any failure here is fatal for the session.
"""

from __future__ import annotations

import logging
from typing import Sequence, Union

from web3 import Web3

from rebalancer.config.tokens import MAX_UINT256
from rebalancer.errors import ApprovalError
from rebalancer.helpers.bundle_helpers import encode_approval_call
from rebalancer.protocols import AllowanceSource, TransactionSender
from rebalancer.types import ApprovalRequirement, QuotedLeg, SwapInstruction, Token

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT = 60.0

LegLike = Union[QuotedLeg, SwapInstruction]


def aggregate_sell_amounts(legs: Sequence[LegLike]) -> dict[str, tuple[Token, int]]:
    """Sum raw sell amounts per token, keyed by lowercased address in first-appearance order."""
    totals: dict[str, tuple[Token, int]] = {}
    for leg in legs:
        instruction = leg.instruction if isinstance(leg, QuotedLeg) else leg
        token = instruction.from_token
        if token.is_native:
            continue
        _, running = totals.get(token.key, (token, 0))
        totals[token.key] = (token, running + instruction.amount)
    return totals


class ApprovalCoordinator:
    def __init__(
        self,
        allowance_source: AllowanceSource,
        spender: str,
        unlimited_approval: bool = False,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
    ) -> None:
        self.allowance_source = allowance_source
        self.spender = Web3.to_checksum_address(spender)
        self.unlimited_approval = unlimited_approval
        self.confirmation_timeout = confirmation_timeout

    def check_approvals(self, legs: Sequence[LegLike], owner: str) -> list[ApprovalRequirement]:
        """
        Return the approvals still missing for ``owner``.

        Allowances are read fresh on every call, so running this again after
        approvals land returns an empty list.

        Raises:
            ApprovalError: an allowance could not be read
        """
        requirements: list[ApprovalRequirement] = []
        for token, required in aggregate_sell_amounts(legs).values():
            try:
                current = int(self.allowance_source.get_allowance(token.address, owner, self.spender))
            except Exception as e:
                raise ApprovalError(
                    f"Could not read {token.symbol} allowance: {e}", token=token.address
                ) from e

            if current >= required:
                logger.debug("%s allowance %d covers %d", token.symbol, current, required)
                continue

            requirements.append(ApprovalRequirement(
                token=token,
                spender=self.spender,
                required_amount=required,
                current_allowance=current,
                approve_amount=MAX_UINT256 if self.unlimited_approval else required,
            ))

        if requirements:
            logger.info("%d approval(s) needed: %s", len(requirements),
                        ", ".join(r.token.symbol for r in requirements))
        return requirements

    def submit_approvals(
        self,
        requirements: Sequence[ApprovalRequirement],
        sender: TransactionSender,
    ) -> list[str]:
        """
        Send approvals sequentially, waiting for each confirmation.

        Returns:
            Transaction hashes in submission order

        Raises:
            ApprovalError: send failure, revert, or no confirmation within the timeout
        """
        tx_hashes: list[str] = []
        for requirement in requirements:
            token = requirement.token
            call = encode_approval_call(token.address, requirement.spender, requirement.approve_amount)

            try:
                tx_hash = sender.send_transaction({
                    "to": call["target"],
                    "data": Web3.to_hex(call["data"]),
                    "value": call["value"],
                })
            except Exception as e:
                raise ApprovalError(f"Failed to send {token.symbol} approval: {e}", token=token.address) from e

            logger.info("→ approve %s for %d [%s]", token.symbol, requirement.approve_amount, tx_hash)

            try:
                receipt = sender.wait_for_receipt(tx_hash, self.confirmation_timeout)
            except TimeoutError as e:
                raise ApprovalError(
                    f"{token.symbol} approval not confirmed within {self.confirmation_timeout}s",
                    token=token.address,
                    tx_hash=tx_hash,
                ) from e
            except Exception as e:
                raise ApprovalError(
                    f"Could not confirm {token.symbol} approval: {e}", token=token.address, tx_hash=tx_hash
                ) from e

            if receipt.get("status") != 1:
                raise ApprovalError(f"{token.symbol} approval reverted", token=token.address, tx_hash=tx_hash)

            tx_hashes.append(tx_hash)

        return tx_hashes
