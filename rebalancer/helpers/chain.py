"""
web3-backed implementations of the chain-facing collaborators.

  • Web3AllowanceReader     ERC20 allowance(owner, spender)
  • Web3BatchGasEstimator   eth_estimateGas for a batchSwap over quoted legs
  • Web3TransactionSender   EIP-1559 fee fill, local signing, broadcast, receipt wait

Receipt waits use web3's wait_for_transaction_receipt with an explicit
timeout; a timeout surfaces as the builtin TimeoutError.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TimeExhausted

from rebalancer.config.abis import ERC20_ABI
from rebalancer.errors import GasEstimationError
from rebalancer.executor.batch_builder import native_value, to_leg_descriptors
from rebalancer.helpers.bundle_helpers import encode_batch_swap_call
from rebalancer.types import QuotedLeg

logger = logging.getLogger(__name__)

# Fallback gas limit when eth_estimateGas fails for a plain transaction
DEFAULT_TX_GAS = 1_500_000


class Web3AllowanceReader:
    def __init__(self, w3: Web3) -> None:
        self.w3 = w3

    def get_allowance(self, token: str, owner: str, spender: str) -> int:
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)
        return int(
            contract.functions.allowance(
                Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
            ).call()
        )


class Web3BatchGasEstimator:
    """Live estimate of batchSwap gas, run from ``owner`` against ``contract``."""

    def __init__(self, w3: Web3, contract: str, owner: str, recipient: str | None = None) -> None:
        self.w3 = w3
        self.contract = Web3.to_checksum_address(contract)
        self.owner = Web3.to_checksum_address(owner)
        self.recipient = Web3.to_checksum_address(recipient or owner)

    def __call__(self, legs: Sequence[QuotedLeg]) -> int:
        call = encode_batch_swap_call(
            self.contract, to_leg_descriptors(legs), self.recipient, native_value(legs)
        )
        try:
            return int(self.w3.eth.estimate_gas({
                "from": self.owner,
                "to": call["target"],
                "data": Web3.to_hex(call["data"]),
                "value": call["value"],
            }))
        except Exception as e:
            raise GasEstimationError(f"batchSwap estimate_gas failed: {e}") from e


class Web3TransactionSender:
    """Signs with a local account and broadcasts through ``w3``."""

    def __init__(self, w3: Web3, account: LocalAccount, priority_fee_gwei: float = 2) -> None:
        self.w3 = w3
        self.account = account
        self.address = account.address
        self.priority_fee_gwei = priority_fee_gwei

    def _fee_fields(self) -> dict[str, int]:
        latest_block = self.w3.eth.get_block("latest")
        base_fee = latest_block.get("baseFeePerGas", self.w3.eth.gas_price)
        priority_fee = Web3.to_wei(self.priority_fee_gwei, "gwei")
        return {
            "maxPriorityFeePerGas": priority_fee,
            "maxFeePerGas": base_fee + priority_fee * 2,  # generous cap
        }

    def send_transaction(self, tx: Mapping[str, Any]) -> str:
        """
        Sign and broadcast a transaction.

        Parameters
        ----------
        tx : Mapping
            Must contain ``to`` and ``data``; ``value`` and ``gas`` are optional.

        Returns
        -------
        str
            The transaction hash as a hex string.
        """
        params: dict[str, Any] = {
            "to": Web3.to_checksum_address(tx["to"]),
            "data": tx["data"],
            "value": int(tx.get("value", 0)),
            "nonce": self.w3.eth.get_transaction_count(self.address, "pending"),
            "chainId": self.w3.eth.chain_id,
            **self._fee_fields(),
        }

        if tx.get("gas"):
            params["gas"] = int(tx["gas"])
        else:
            try:
                params["gas"] = self.w3.eth.estimate_gas({
                    "from": self.address,
                    "to": params["to"],
                    "data": params["data"],
                    "value": params["value"],
                })
            except Exception as err:
                logger.warning("estimate_gas failed, using %d fallback: %s", DEFAULT_TX_GAS, err)
                params["gas"] = DEFAULT_TX_GAS

        signed_tx = self.account.sign_transaction(params)
        tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        return Web3.to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> Mapping[str, Any]:
        try:
            return self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise TimeoutError(f"Transaction {tx_hash} not mined within {timeout}s") from e
