"""
Immutable records passed between the rebalance stages.

Balances and targets come in once per session; everything downstream
(instructions, quotes, plans, approvals, batch payloads) is derived and
recomputed from scratch whenever an input changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from rebalancer.config.tokens import DEFAULT_DECIMALS, is_native_address


@dataclass(frozen=True)
class Token:
    address: str
    symbol: str
    name: str = ""
    decimals: int = DEFAULT_DECIMALS
    logo_uri: str | None = None

    @property
    def key(self) -> str:
        """Case-insensitive identity used for all token comparisons."""
        return self.address.lower()

    @property
    def is_native(self) -> bool:
        return is_native_address(self.address)


@dataclass(frozen=True)
class Balance:
    token: Token
    raw_amount: int
    formatted: str
    usd_price: Decimal
    usd_value: Decimal
    percentage_of_portfolio: Decimal = Decimal(0)


@dataclass(frozen=True)
class AllocationTarget:
    """Caller-supplied target; the ``*_usd`` fields are filled in by the planner."""
    token: Token
    target_percentage: Decimal
    target_value_usd: Decimal | None = None
    current_value_usd: Decimal | None = None
    difference_usd: Decimal | None = None


@dataclass(frozen=True)
class Deficit:
    token: Token
    amount_usd: Decimal
    priority: int


@dataclass(frozen=True)
class Surplus:
    token: Token
    amount_usd: Decimal
    balance: Balance


@dataclass(frozen=True)
class AllocationPlan:
    total_value_usd: Decimal
    targets: tuple[AllocationTarget, ...]
    deficits: tuple[Deficit, ...]
    surpluses: tuple[Surplus, ...]


@dataclass(frozen=True)
class SwapInstruction:
    from_token: Token
    to_token: Token
    amount: int
    value_usd: Decimal
    priority: int = 0


@dataclass(frozen=True)
class Quote:
    expected_output_raw: int
    gas_estimate: int
    price_impact_percent: Decimal | None = None
    protocols: tuple[str, ...] = ()


@dataclass(frozen=True)
class SwapPayload:
    """Executable route returned by the quote source's build variant."""
    to: str
    data: str
    value: int
    gas: int
    expected_output_raw: int


@dataclass(frozen=True)
class QuotedLeg:
    instruction: SwapInstruction
    quote: Quote | None = None
    error: str | None = None
    min_amount_out: int = 0
    high_price_impact: bool = False
    route_data: str = "0x"
    native_value: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.quote is not None

    @property
    def pair(self) -> str:
        return f"{self.instruction.from_token.symbol}->{self.instruction.to_token.symbol}"


@dataclass(frozen=True)
class GasComparison:
    total_individual_gas: int
    batch_gas: int
    source: str  # "live" | "fallback"
    savings: int
    savings_percentage: Decimal
    recommendation: str  # "batch" | "individual"


@dataclass(frozen=True)
class ExecutionStep:
    id: str
    step: int
    type: str  # "approve" | "batch_swap" | "swap"
    action: str
    status: str = "pending"


@dataclass(frozen=True)
class BatchPlan:
    allocation: AllocationPlan
    instructions: tuple[SwapInstruction, ...]
    legs: tuple[QuotedLeg, ...] = ()
    gas: GasComparison | None = None
    native_value: int = 0
    execution_steps: tuple[ExecutionStep, ...] = ()
    estimated_time_seconds: int = 0
    average_price_impact: Decimal = Decimal(0)

    @property
    def no_rebalance_needed(self) -> bool:
        return not self.instructions

    @property
    def finalized_legs(self) -> tuple[QuotedLeg, ...]:
        return tuple(leg for leg in self.legs if leg.ok)

    @property
    def excluded_legs(self) -> tuple[QuotedLeg, ...]:
        return tuple(leg for leg in self.legs if not leg.ok)

    @property
    def recommendation(self) -> str:
        return self.gas.recommendation if self.gas else "individual"

    @property
    def gas_savings(self) -> int:
        return self.gas.savings if self.gas else 0

    @property
    def total_gas_estimate(self) -> int:
        return self.gas.batch_gas if self.gas else 0


@dataclass(frozen=True)
class ApprovalRequirement:
    token: Token
    spender: str
    required_amount: int
    current_allowance: int
    approve_amount: int


@dataclass(frozen=True)
class LegDescriptor:
    """One entry of the ``batchSwap`` swaps array."""
    token_in: str
    token_out: str
    amount_in: int
    min_amount_out: int
    swap_data: bytes = b""

    def as_abi_tuple(self) -> tuple[str, str, int, int, bytes]:
        return (self.token_in, self.token_out, self.amount_in, self.min_amount_out, self.swap_data)


@dataclass(frozen=True)
class BatchTransaction:
    to: str
    recipient: str
    legs: tuple[LegDescriptor, ...]
    value: int
    gas_estimate: int
    gas_limit: int
    data: str

    def as_tx_params(self, sender: str) -> dict[str, Any]:
        return {
            "from": sender,
            "to": self.to,
            "data": self.data,
            "value": self.value,
            "gas": self.gas_limit,
        }


@dataclass(frozen=True)
class PreparedExecution:
    approvals: tuple[ApprovalRequirement, ...]
    transaction: BatchTransaction
    legs: tuple[QuotedLeg, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ExecutionResult:
    tx_hash: str
    gas_used: int
    block_number: int | None = None
    approval_tx_hashes: tuple[str, ...] = ()
