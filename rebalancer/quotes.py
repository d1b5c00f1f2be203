"""
Quote resolver.

Runs one quote request per leg on a bounded thread pool and gathers every
result, successful or not, in input order. A failing leg carries its error
message and is left out of the finalized batch; the other legs are
unaffected.

minAmountOut is floored from the exact slippage fraction:

    min_out = floor(expected * (100 - slippage_percent) / 100)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Mapping, Sequence

from rebalancer.helpers.units import mul_div_floor, to_decimal
from rebalancer.protocols import QuoteSource
from rebalancer.types import QuotedLeg, SwapInstruction

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE_PERCENT = Decimal("1")
DEFAULT_MAX_PRICE_IMPACT_PERCENT = Decimal("5")
DEFAULT_QUOTE_CONCURRENCY = 4


def apply_slippage(expected_output_raw: int, slippage_percent: Decimal) -> int:
    return mul_div_floor(expected_output_raw, Decimal(100) - to_decimal(slippage_percent), Decimal(100))


def estimate_price_impact(
    instruction: SwapInstruction,
    expected_output_raw: int,
    prices: Mapping[str, Decimal],
) -> Decimal | None:
    """Percent of USD value lost between input and quoted output, or None without a price."""
    out_price = prices.get(instruction.to_token.key)
    if out_price is None or instruction.value_usd <= 0:
        return None
    out_value = Decimal(int(expected_output_raw)).scaleb(-instruction.to_token.decimals) * to_decimal(out_price)
    impact = (instruction.value_usd - out_value) / instruction.value_usd * Decimal(100)
    return max(Decimal(0), impact)


class QuoteResolver:
    def __init__(
        self,
        source: QuoteSource,
        slippage_percent: Decimal = DEFAULT_SLIPPAGE_PERCENT,
        max_price_impact_percent: Decimal = DEFAULT_MAX_PRICE_IMPACT_PERCENT,
        max_workers: int = DEFAULT_QUOTE_CONCURRENCY,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.source = source
        self.slippage_percent = to_decimal(slippage_percent)
        self.max_price_impact_percent = to_decimal(max_price_impact_percent)
        self.max_workers = max_workers

    def _gather(self, func: Callable, items: Sequence) -> list:
        if not items:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as pool:
            futures = [pool.submit(func, item) for item in items]
            return [future.result() for future in futures]

    def resolve(
        self,
        instructions: Sequence[SwapInstruction],
        prices: Mapping[str, Decimal] | None = None,
    ) -> list[QuotedLeg]:
        """
        Quote every instruction concurrently.

        Args:
            instructions: Legs to quote
            prices: Optional USD prices keyed by lowercased address, used to
                estimate price impact when the quote source does not report it

        Returns:
            One QuotedLeg per instruction, same order
        """
        prices = prices or {}
        legs = self._gather(lambda instruction: self._resolve_one(instruction, prices), instructions)

        failed = sum(1 for leg in legs if not leg.ok)
        if failed:
            logger.warning("%d of %d quotes failed", failed, len(legs))
        return legs

    def _resolve_one(self, instruction: SwapInstruction, prices: Mapping[str, Decimal]) -> QuotedLeg:
        pair = f"{instruction.from_token.symbol}->{instruction.to_token.symbol}"
        try:
            quote = self.source.get_quote(
                instruction.from_token.address,
                instruction.to_token.address,
                instruction.amount,
            )
        except Exception as e:
            logger.warning("Quote failed for %s: %s", pair, e)
            return QuotedLeg(instruction=instruction, error=str(e) or type(e).__name__)

        if quote.expected_output_raw <= 0:
            logger.warning("Quote for %s returned no output", pair)
            return QuotedLeg(instruction=instruction, quote=quote, error="Quote returned zero output")

        impact = quote.price_impact_percent
        if impact is None:
            impact = estimate_price_impact(instruction, quote.expected_output_raw, prices)
            if impact is not None:
                quote = replace(quote, price_impact_percent=impact)

        high_impact = impact is not None and impact > self.max_price_impact_percent
        if high_impact:
            logger.warning("High price impact on %s: %.2f%%", pair, impact)

        return QuotedLeg(
            instruction=instruction,
            quote=quote,
            min_amount_out=apply_slippage(quote.expected_output_raw, self.slippage_percent),
            high_price_impact=high_impact,
        )

    def build_route_payloads(
        self,
        legs: Sequence[QuotedLeg],
        from_address: str,
        receiver: str | None = None,
    ) -> list[QuotedLeg]:
        """
        Attach executable route calldata to every successful leg.

        ``from_address`` is the account the router will see as the sender
        (the batch contract when batching). Failed legs pass through
        untouched; a leg whose route cannot be built is marked failed.
        """
        def build(leg: QuotedLeg) -> QuotedLeg:
            if not leg.ok:
                return leg
            instruction = leg.instruction
            try:
                payload = self.source.build_swap(
                    instruction.from_token.address,
                    instruction.to_token.address,
                    instruction.amount,
                    from_address,
                    self.slippage_percent,
                    receiver,
                )
            except Exception as e:
                logger.warning("Route build failed for %s: %s", leg.pair, e)
                return replace(leg, error=str(e) or type(e).__name__)
            return replace(leg, route_data=payload.data, native_value=payload.value)

        return self._gather(build, legs)
