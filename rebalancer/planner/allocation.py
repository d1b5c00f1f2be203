"""
Allocation planner.

Classifies every target (and, optionally, every untargeted holding) as a
deficit, a surplus or already balanced. Nothing here talks to the network
and nothing is mutated; the same inputs always give the same plan.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Sequence

from rebalancer.errors import PlanningError
from rebalancer.helpers.units import to_decimal
from rebalancer.types import AllocationPlan, AllocationTarget, Balance, Deficit, Surplus

logger = logging.getLogger(__name__)

DEFAULT_MIN_SWAP_VALUE_USD = Decimal("1")

# Rounding slack allowed on the sum of target percentages
PERCENT_SUM_TOLERANCE = Decimal("0.01")


def validate_targets(targets: Sequence[AllocationTarget]) -> None:
    """
    Reject malformed target sets.

    Raises:
        PlanningError: percentage outside 0-100, duplicate token, or a total above 100%
    """
    seen: set[str] = set()
    total = Decimal(0)
    for target in targets:
        pct = to_decimal(target.target_percentage)
        if pct < 0 or pct > 100:
            raise PlanningError(
                f"Target percentage for {target.token.symbol} must be between 0 and 100, got {pct}",
                token=target.token.address,
            )
        if target.token.key in seen:
            raise PlanningError(f"Duplicate target for {target.token.symbol}", token=target.token.address)
        seen.add(target.token.key)
        total += pct

    if total > Decimal(100) + PERCENT_SUM_TOLERANCE:
        raise PlanningError(f"Target percentages sum to {total}%, more than 100%")


def plan_allocation(
    balances: Sequence[Balance],
    targets: Sequence[AllocationTarget],
    total_value_usd: Decimal | None = None,
    min_swap_value_usd: Decimal = DEFAULT_MIN_SWAP_VALUE_USD,
    include_untargeted_holdings: bool = True,
) -> AllocationPlan:
    """
    Compute deficits and surpluses for a target allocation.

    Args:
        balances: Current holdings (one entry per token)
        targets: Desired allocation; list position is the deficit priority
        total_value_usd: Portfolio value; defaults to the sum of ``balances``
        min_swap_value_usd: Differences at or below this are ignored
        include_untargeted_holdings: Treat held tokens without a target as 0% targets

    Returns:
        AllocationPlan with resolved targets, deficits (priority descending)
        and surpluses (largest first)

    Raises:
        PlanningError: malformed targets or a non-positive portfolio value
    """
    validate_targets(targets)

    if total_value_usd is None:
        total_value_usd = sum((b.usd_value for b in balances), Decimal(0))
    total_value_usd = to_decimal(total_value_usd)
    if total_value_usd <= 0:
        raise PlanningError(f"Portfolio value must be positive, got {total_value_usd}")

    epsilon = to_decimal(min_swap_value_usd)
    by_token: dict[str, Balance] = {}
    for balance in balances:
        by_token.setdefault(balance.token.key, balance)

    all_targets = list(targets)
    if include_untargeted_holdings:
        targeted = {t.token.key for t in targets}
        for balance in balances:
            if balance.token.key not in targeted and balance.usd_value > 0:
                targeted.add(balance.token.key)
                all_targets.append(AllocationTarget(token=balance.token, target_percentage=Decimal(0)))

    resolved: list[AllocationTarget] = []
    deficits: list[Deficit] = []
    surpluses: list[Surplus] = []

    for index, target in enumerate(all_targets):
        target_value = total_value_usd * to_decimal(target.target_percentage) / Decimal(100)
        balance = by_token.get(target.token.key)
        current_value = balance.usd_value if balance is not None else Decimal(0)
        difference = target_value - current_value

        resolved.append(replace(
            target,
            target_value_usd=target_value,
            current_value_usd=current_value,
            difference_usd=difference,
        ))

        if difference > epsilon:
            deficits.append(Deficit(token=target.token, amount_usd=difference, priority=index))
        elif difference < -epsilon and balance is not None:
            surpluses.append(Surplus(token=target.token, amount_usd=-difference, balance=balance))

    # sorted() is stable, so equal keys keep input order
    deficits = sorted(deficits, key=lambda d: d.priority, reverse=True)
    surpluses = sorted(surpluses, key=lambda s: s.amount_usd, reverse=True)

    logger.debug(
        "Allocation: total=$%s deficits=%d surpluses=%d",
        total_value_usd, len(deficits), len(surpluses),
    )

    return AllocationPlan(
        total_value_usd=total_value_usd,
        targets=tuple(resolved),
        deficits=tuple(deficits),
        surpluses=tuple(surpluses),
    )
