"""Protocol definitions for the external collaborators of a rebalance session."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Protocol, Sequence

from rebalancer.types import Quote, QuotedLeg, SwapPayload


class QuoteSource(Protocol):
    """Quoting service (1inch in production)."""

    def get_quote(self, from_token: str, to_token: str, amount: int) -> Quote:
        """Quote an exact-in swap of ``amount`` raw units."""
        ...

    def build_swap(
        self,
        from_token: str,
        to_token: str,
        amount: int,
        from_address: str,
        slippage_percent: Decimal,
        receiver: str | None = None,
    ) -> SwapPayload:
        """Build the executable route for a swap."""
        ...


class AllowanceSource(Protocol):
    def get_allowance(self, token: str, owner: str, spender: str) -> int:
        """Current ERC20 allowance in raw units."""
        ...


class TransactionSender(Protocol):
    """Signs and broadcasts transactions on behalf of the owner."""

    address: str

    def send_transaction(self, tx: Mapping[str, Any]) -> str:
        """Broadcast ``tx`` and return its hash as a hex string."""
        ...

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> Mapping[str, Any]:
        """Block until mined; raise TimeoutError after ``timeout`` seconds."""
        ...


class BatchGasEstimator(Protocol):
    def __call__(self, legs: Sequence[QuotedLeg]) -> int:
        """Live gas estimate for a batchSwap over ``legs``."""
        ...
