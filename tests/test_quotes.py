from decimal import Decimal

import pytest

from rebalancer.quotes import QuoteResolver, apply_slippage, estimate_price_impact
from rebalancer.types import SwapInstruction

from fakes import BATCH_SWAPPER, DAI, ETH, OWNER, USDC, USDT, WETH, FakeQuoteSource


def _leg(from_token, to_token, amount, value_usd="100"):
    return SwapInstruction(from_token, to_token, amount, Decimal(value_usd))


def test_apply_slippage() -> None:
    assert apply_slippage(1_000_000, Decimal(1)) == 990_000
    assert apply_slippage(999, Decimal("0.5")) == 994  # floor(999 * 0.995)
    assert apply_slippage(123, Decimal(0)) == 123


@pytest.mark.parametrize("slippage,expected", [
    ("0.005", 999_950),
    ("0.125", 998_750),
    ("0.0001", 999_999),
])
def test_fractional_basis_points_are_kept(slippage, expected) -> None:
    assert apply_slippage(1_000_000, Decimal(slippage)) == expected


def test_resolver_min_out_with_fractional_slippage() -> None:
    resolver = QuoteResolver(FakeQuoteSource(), slippage_percent=Decimal("0.005"))

    leg = resolver.resolve([_leg(DAI, USDC, 10**18, "1")])[0]

    assert leg.quote.expected_output_raw == 1_000_000
    assert leg.min_amount_out == 999_950


def test_min_amount_out_never_exceeds_expected() -> None:
    resolver = QuoteResolver(FakeQuoteSource(), slippage_percent=Decimal("0.5"))
    legs = resolver.resolve([_leg(DAI, USDC, 100 * 10**18), _leg(USDT, DAI, 7 * 10**6, "7")])

    for leg in legs:
        assert leg.ok
        expected = leg.quote.expected_output_raw
        assert leg.min_amount_out <= expected
        assert leg.min_amount_out == expected * 9950 // 10000


def test_failures_are_isolated_per_leg() -> None:
    source = FakeQuoteSource(failing=[(DAI.address, USDT.address)])
    resolver = QuoteResolver(source)
    instructions = [
        _leg(WETH, USDC, 10**17, "200"),
        _leg(DAI, USDT, 50 * 10**18, "50"),
        _leg(DAI, USDC, 25 * 10**18, "25"),
    ]

    legs = resolver.resolve(instructions)

    assert [leg.instruction for leg in legs] == instructions
    assert [leg.ok for leg in legs] == [True, False, True]
    assert "no route" in legs[1].error
    assert legs[1].min_amount_out == 0


def test_zero_output_quote_marked_failed() -> None:
    source = FakeQuoteSource()
    resolver = QuoteResolver(source)

    # 1 wei of DAI rounds to zero USDC units
    legs = resolver.resolve([_leg(DAI, USDC, 1, "0.000000000000000001")])

    assert not legs[0].ok
    assert "zero output" in legs[0].error


def test_reported_price_impact_kept_and_flagged() -> None:
    resolver = QuoteResolver(FakeQuoteSource(price_impact=Decimal("7.5")))
    leg = resolver.resolve([_leg(DAI, USDC, 10**18, "1")])[0]

    assert leg.quote.price_impact_percent == Decimal("7.5")
    assert leg.high_price_impact
    assert leg.ok  # warning only


def test_price_impact_estimated_from_reference_prices() -> None:
    resolver = QuoteResolver(FakeQuoteSource(), max_price_impact_percent=Decimal(5))
    instruction = _leg(DAI, USDC, 100 * 10**18, "100")

    # at the reference price the quoted USDC is worth 10% less than the DAI sold
    leg = resolver.resolve([instruction], prices={USDC.key: Decimal("0.9")})[0]

    assert leg.quote.price_impact_percent == Decimal(10)
    assert leg.high_price_impact


def test_estimate_price_impact_without_price() -> None:
    assert estimate_price_impact(_leg(DAI, USDC, 10**18), 10**6, {}) is None


def test_concurrency_is_bounded() -> None:
    source = FakeQuoteSource(delay=0.02)
    resolver = QuoteResolver(source, max_workers=2)
    instructions = [_leg(DAI, USDC, (i + 1) * 10**18, str(i + 1)) for i in range(6)]

    legs = resolver.resolve(instructions)

    assert len(source.calls) == 6
    assert source.max_active <= 2
    assert [leg.instruction.amount for leg in legs] == [i.amount for i in instructions]


def test_empty_instruction_list() -> None:
    assert QuoteResolver(FakeQuoteSource()).resolve([]) == []


def test_invalid_worker_count() -> None:
    with pytest.raises(ValueError):
        QuoteResolver(FakeQuoteSource(), max_workers=0)


def test_route_payloads_attached_to_successful_legs() -> None:
    source = FakeQuoteSource(failing=[(DAI.address, USDT.address)])
    resolver = QuoteResolver(source)
    legs = resolver.resolve([
        _leg(ETH, USDC, 10**17, "200"),
        _leg(DAI, USDT, 10**18, "1"),
    ])

    routed = resolver.build_route_payloads(legs, BATCH_SWAPPER, OWNER)

    assert routed[0].route_data.startswith("0x12aa3caf")
    assert routed[0].native_value == 10**17
    assert routed[1] == legs[1]
    assert len(source.swap_calls) == 1
    _, _, _, from_address, slippage, receiver = source.swap_calls[0]
    assert (from_address, receiver) == (BATCH_SWAPPER, OWNER)
    assert slippage == Decimal(1)


def test_route_failure_marks_leg() -> None:
    source = FakeQuoteSource(route_failing=[(DAI.address, USDC.address)])
    resolver = QuoteResolver(source)
    legs = resolver.resolve([_leg(DAI, USDC, 10**18, "1")])

    routed = resolver.build_route_payloads(legs, BATCH_SWAPPER)

    assert not routed[0].ok
    assert "route expired" in routed[0].error
