"""
Gas estimation and batch-vs-individual comparison.

Individual cost is the sum of the per-leg quote gas. Batch cost comes from a
live estimator when one is configured and answers within the timeout;
otherwise from a fixed formula:

    21000 (base tx) + 30000 (batch overhead) + n * 120000 (per swap)
        + (n * 45000) // 4 (approval share)

The comparison never raises: a failing or slow live estimate only changes
``source`` from "live" to "fallback".
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Sequence

from rebalancer.helpers.units import to_decimal
from rebalancer.protocols import BatchGasEstimator
from rebalancer.types import GasComparison, QuotedLeg

logger = logging.getLogger(__name__)

BASE_TX_GAS = 21_000
BATCH_OVERHEAD_GAS = 30_000
PER_SWAP_GAS = 120_000
APPROVAL_GAS = 45_000

DEFAULT_LIVE_TIMEOUT = 5.0
DEFAULT_SAVINGS_THRESHOLD_PERCENT = Decimal("10")

SOURCE_LIVE = "live"
SOURCE_FALLBACK = "fallback"


def fallback_batch_gas(leg_count: int) -> int:
    return BASE_TX_GAS + BATCH_OVERHEAD_GAS + leg_count * PER_SWAP_GAS + (leg_count * APPROVAL_GAS) // 4


def compare_gas(
    total_individual_gas: int,
    batch_gas: int,
    source: str = SOURCE_FALLBACK,
    savings_threshold_percent: Decimal = DEFAULT_SAVINGS_THRESHOLD_PERCENT,
) -> GasComparison:
    savings = max(0, int(total_individual_gas) - int(batch_gas))
    if total_individual_gas > 0:
        percentage = Decimal(savings) / Decimal(int(total_individual_gas)) * Decimal(100)
    else:
        percentage = Decimal(0)

    return GasComparison(
        total_individual_gas=int(total_individual_gas),
        batch_gas=int(batch_gas),
        source=source,
        savings=savings,
        savings_percentage=percentage,
        recommendation="batch" if percentage >= to_decimal(savings_threshold_percent) else "individual",
    )


def estimate_cost(gas: int, gas_price_wei: int, native_usd_price: Decimal | float | str) -> tuple[Decimal, Decimal]:
    """Return (cost in native currency, cost in USD) for ``gas`` units."""
    native_cost = Decimal(int(gas) * int(gas_price_wei)).scaleb(-18)
    return native_cost, native_cost * to_decimal(native_usd_price)


class GasEstimator:
    def __init__(
        self,
        live_estimator: BatchGasEstimator | None = None,
        timeout: float = DEFAULT_LIVE_TIMEOUT,
        savings_threshold_percent: Decimal = DEFAULT_SAVINGS_THRESHOLD_PERCENT,
    ) -> None:
        self.live_estimator = live_estimator
        self.timeout = timeout
        self.savings_threshold_percent = to_decimal(savings_threshold_percent)

    def estimate_batch_gas(self, legs: Sequence[QuotedLeg]) -> tuple[int, str]:
        """Return (batch gas, source) for ``legs``."""
        if self.live_estimator is None or not legs:
            return fallback_batch_gas(len(legs)), SOURCE_FALLBACK

        pool = ThreadPoolExecutor(max_workers=1)
        future = pool.submit(self.live_estimator, legs)
        try:
            gas = int(future.result(timeout=self.timeout))
        except Exception as e:
            # covers TimeoutError and GasEstimationError alike
            logger.warning("Live batch gas estimate unavailable (%s), using fallback", str(e) or type(e).__name__)
            return fallback_batch_gas(len(legs)), SOURCE_FALLBACK
        finally:
            pool.shutdown(wait=False)

        if gas <= 0:
            logger.warning("Live batch gas estimate returned %d, using fallback", gas)
            return fallback_batch_gas(len(legs)), SOURCE_FALLBACK
        return gas, SOURCE_LIVE

    def compare(self, legs: Sequence[QuotedLeg], use_live: bool = True) -> GasComparison:
        """
        Compare batch gas against individual execution over the successful legs.

        With ``use_live=False`` the batch side always comes from the fallback
        formula; legs without route data cannot be simulated.
        """
        finalized = [leg for leg in legs if leg.ok]
        total_individual = sum(leg.quote.gas_estimate for leg in finalized)
        if use_live:
            batch_gas, source = self.estimate_batch_gas(finalized)
        else:
            batch_gas, source = fallback_batch_gas(len(finalized)), SOURCE_FALLBACK

        comparison = compare_gas(total_individual, batch_gas, source, self.savings_threshold_percent)
        logger.info(
            "Gas: individual=%d batch=%d (%s) savings=%d (%.1f%%) -> %s",
            comparison.total_individual_gas, comparison.batch_gas, source,
            comparison.savings, comparison.savings_percentage, comparison.recommendation,
        )
        return comparison
