"""
Swap instruction generator.

Greedy proportional matching of surpluses to deficits:

  for each deficit (priority order)
      for each surplus (largest first)
          leg value = min(remaining need, remaining surplus)

USD leg values become raw amounts through the surplus token's own
balance-to-value ratio, floored. The rounding remainder of each sell token
goes to its largest leg so the emitted amounts add up exactly to
floor(raw_balance * drawn_usd / usd_value).
"""

from __future__ import annotations

import logging
from decimal import Decimal

from rebalancer.helpers.units import mul_div_floor, to_decimal
from rebalancer.planner.allocation import DEFAULT_MIN_SWAP_VALUE_USD
from rebalancer.types import AllocationPlan, Surplus, SwapInstruction

logger = logging.getLogger(__name__)


def usd_to_raw(surplus: Surplus, value_usd: Decimal) -> int:
    """Raw amount of the surplus token worth ``value_usd`` at its current holding ratio."""
    balance = surplus.balance
    return mul_div_floor(balance.raw_amount, value_usd, balance.usd_value)


def generate_swap_instructions(
    plan: AllocationPlan,
    min_swap_value_usd: Decimal = DEFAULT_MIN_SWAP_VALUE_USD,
) -> list[SwapInstruction]:
    """
    Turn an allocation plan into ordered swap legs.

    Output order is deficit priority order, then surplus order. Unfunded
    deficits and undrawn surpluses produce nothing.
    """
    epsilon = to_decimal(min_swap_value_usd)
    remaining = {s.token.key: s.amount_usd for s in plan.surpluses}
    drawn_usd: dict[str, Decimal] = {}

    # [surplus, deficit, value_usd, amount]
    candidates: list[list] = []

    for deficit in plan.deficits:
        need = deficit.amount_usd
        for surplus in plan.surpluses:
            if need <= 0:
                break
            key = surplus.token.key
            if key == deficit.token.key:
                continue
            available = remaining[key]
            if available <= 0:
                continue

            value = min(need, available)
            if value <= epsilon:
                continue

            candidates.append([surplus, deficit, value, usd_to_raw(surplus, value)])
            need -= value
            remaining[key] = available - value
            drawn_usd[key] = drawn_usd.get(key, Decimal(0)) + value

    for surplus in plan.surpluses:
        key = surplus.token.key
        if key not in drawn_usd:
            continue
        legs = [c for c in candidates if c[0].token.key == key]
        intended = usd_to_raw(surplus, drawn_usd[key])
        remainder = intended - sum(c[3] for c in legs)
        if remainder > 0:
            # max() returns the first maximal leg
            largest = max(legs, key=lambda c: c[3])
            largest[3] += remainder

    instructions = [
        SwapInstruction(
            from_token=surplus.token,
            to_token=deficit.token,
            amount=amount,
            value_usd=value,
            priority=deficit.priority,
        )
        for surplus, deficit, value, amount in candidates
        if amount > 0
    ]

    logger.debug("Generated %d swap instructions from %d candidates", len(instructions), len(candidates))
    return instructions
