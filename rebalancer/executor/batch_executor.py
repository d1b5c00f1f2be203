"""
Batch executor: broadcasts a built batchSwap transaction and waits for it.

The batch is atomic on-chain, so there is nothing to roll back here; a
failure is reported once as ExecutionError and never retried.
"""

from __future__ import annotations

import logging

from web3.exceptions import ContractLogicError

from rebalancer.errors import ExecutionError
from rebalancer.helpers.bundle_helpers import decode_revert_reason
from rebalancer.protocols import TransactionSender
from rebalancer.types import BatchTransaction, ExecutionResult

logger = logging.getLogger(__name__)

DEFAULT_EXECUTION_TIMEOUT = 120.0


def _revert_reason(error: ContractLogicError) -> str:
    data = getattr(error, "data", None)
    if isinstance(data, (str, bytes)) and data:
        return decode_revert_reason(data)
    return str(error)


class BatchExecutor:
    def __init__(self, sender: TransactionSender, confirmation_timeout: float = DEFAULT_EXECUTION_TIMEOUT) -> None:
        self.sender = sender
        self.confirmation_timeout = confirmation_timeout

    def submit(self, transaction: BatchTransaction) -> ExecutionResult:
        """
        Send ``transaction`` and block until it is mined.

        Raises:
            ExecutionError: the call was rejected at submission, reverted,
                or was not confirmed within the timeout
        """
        params = transaction.as_tx_params(self.sender.address)
        try:
            tx_hash = self.sender.send_transaction(params)
        except ContractLogicError as e:
            reason = _revert_reason(e)
            raise ExecutionError(f"Batch rejected: {reason}", revert_reason=reason) from e
        except Exception as e:
            raise ExecutionError(f"Failed to send batch: {e}") from e

        logger.info("Batch sent (%d legs): %s", len(transaction.legs), tx_hash)

        try:
            receipt = self.sender.wait_for_receipt(tx_hash, self.confirmation_timeout)
        except TimeoutError as e:
            raise ExecutionError(
                f"Batch not confirmed within {self.confirmation_timeout}s", tx_hash=tx_hash
            ) from e
        except Exception as e:
            raise ExecutionError(f"Could not confirm batch: {e}", tx_hash=tx_hash) from e

        if receipt.get("status") != 1:
            logger.error("Batch %s reverted", tx_hash)
            raise ExecutionError("Batch transaction reverted", tx_hash=tx_hash, revert_reason="reverted")

        gas_used = int(receipt.get("gasUsed", 0))
        logger.info("Batch confirmed in block %s, gas used %d", receipt.get("blockNumber"), gas_used)
        return ExecutionResult(tx_hash=tx_hash, gas_used=gas_used, block_number=receipt.get("blockNumber"))
