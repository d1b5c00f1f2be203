import random
from decimal import Decimal

from rebalancer.helpers.units import mul_div_floor
from rebalancer.planner.allocation import plan_allocation
from rebalancer.planner.instructions import generate_swap_instructions
from rebalancer.types import AllocationPlan, Deficit, Surplus, Token

from fakes import DAI, USDC, USDT, WETH, balance, target


def _plan(balances, targets):
    return plan_allocation(balances, targets)


def test_one_token_split_in_half() -> None:
    usdc = balance(USDC, 1000)
    legs = generate_swap_instructions(_plan([usdc], [target(USDC, 50), target(WETH, 50)]))

    assert len(legs) == 1
    leg = legs[0]
    assert (leg.from_token, leg.to_token) == (USDC, WETH)
    assert leg.value_usd == Decimal(500)
    assert leg.amount == usdc.raw_amount // 2


def test_balanced_portfolio_yields_no_legs() -> None:
    balances = [balance(USDC, 500), balance(WETH, 500)]
    legs = generate_swap_instructions(_plan(balances, [target(USDC, 50), target(WETH, 50)]))

    assert legs == []


def test_two_stablecoins_from_two_holdings() -> None:
    dai, weth = balance(DAI, 600), balance(WETH, 400)
    legs = generate_swap_instructions(_plan([dai, weth], [target(USDC, 40), target(USDT, 60)]))

    assert [(l.from_token, l.to_token) for l in legs] == [(DAI, USDT), (WETH, USDC)]
    assert [l.value_usd for l in legs] == [Decimal(600), Decimal(400)]
    # both holdings fully sold, nothing left over
    assert legs[0].amount == dai.raw_amount
    assert legs[1].amount == weth.raw_amount


def test_surplus_split_across_deficits() -> None:
    dai = balance(DAI, 1000)
    legs = generate_swap_instructions(_plan([dai], [target(USDC, 30), target(USDT, 70)]))

    assert [(l.from_token, l.to_token) for l in legs] == [(DAI, USDT), (DAI, USDC)]
    assert sum(l.amount for l in legs) == dai.raw_amount


def test_rounding_remainder_goes_to_largest_leg() -> None:
    token_x = Token("0x00000000000000000000000000000000000000aa", "X", decimals=0)
    token_a = Token("0x00000000000000000000000000000000000000bb", "A", decimals=0)
    token_b = Token("0x00000000000000000000000000000000000000cc", "B", decimals=0)
    x_balance = balance(token_x, 3, price=Decimal("0.3"))
    assert x_balance.raw_amount == 10

    plan = AllocationPlan(
        total_value_usd=Decimal(3),
        targets=(),
        deficits=(
            Deficit(token_a, Decimal(1), priority=1),
            Deficit(token_b, Decimal(2), priority=0),
        ),
        surpluses=(Surplus(token_x, Decimal(3), x_balance),),
    )
    legs = generate_swap_instructions(plan, min_swap_value_usd=Decimal("0.5"))

    # floor(10/3)=3 and floor(20/3)=6 leave 1 unit, added to the larger leg
    assert [l.amount for l in legs] == [3, 7]
    assert sum(l.amount for l in legs) == 10


def test_sub_threshold_leg_skipped_without_drawing() -> None:
    dai, weth = balance(DAI, 10), balance(WETH, 5)
    plan = AllocationPlan(
        total_value_usd=Decimal(15),
        targets=(),
        deficits=(Deficit(USDC, Decimal("10.5"), priority=0),),
        surpluses=(Surplus(DAI, Decimal(10), dai), Surplus(WETH, Decimal(5), weth)),
    )
    legs = generate_swap_instructions(plan)

    # the remaining $0.50 of need is below the threshold, WETH is untouched
    assert [(l.from_token, l.to_token) for l in legs] == [(DAI, USDC)]
    assert legs[0].amount == dai.raw_amount


def test_never_swaps_token_into_itself() -> None:
    rng = random.Random(7)
    tokens = [USDC, USDT, DAI, WETH]
    for _ in range(50):
        balances = [balance(t, rng.randint(1, 5000)) for t in tokens]
        weights = [rng.randint(0, 10) for _ in tokens]
        total = sum(weights) or 1
        targets = [target(t, Decimal(w * 100) / total) for t, w in zip(tokens, weights)]
        targets = [t for t in targets if t.target_percentage > 0]
        for leg in generate_swap_instructions(_plan(balances, targets)):
            assert leg.from_token.key != leg.to_token.key
            assert leg.amount > 0


def test_conservation_across_random_decimals() -> None:
    rng = random.Random(1234)
    for trial in range(100):
        tokens = [
            Token(f"0x{(trial * 10 + i + 1):040x}", f"T{i}", decimals=rng.choice([0, 6, 8, 18]))
            for i in range(rng.randint(2, 6))
        ]
        balances = [
            balance(t, Decimal(rng.randint(100, 10_000_000)) / 100, price=Decimal(rng.randint(1, 500_000)) / 100)
            for t in tokens
        ]
        balances = [b for b in balances if b.raw_amount > 0]
        if not balances:
            continue
        targets = [target(t, Decimal(100) / len(tokens)) for t in tokens[:-1]]
        plan = _plan(balances, targets)
        legs = generate_swap_instructions(plan)

        by_token = {b.token.key: b for b in balances}
        for surplus in plan.surpluses:
            drawn = [l for l in legs if l.from_token.key == surplus.token.key]
            if not drawn:
                continue
            held = by_token[surplus.token.key]
            drawn_usd = sum(l.value_usd for l in drawn)
            intended = mul_div_floor(held.raw_amount, drawn_usd, held.usd_value)
            assert sum(l.amount for l in drawn) <= held.raw_amount
            assert sum(l.amount for l in drawn) == intended


def test_same_input_same_output() -> None:
    balances = [balance(DAI, 600), balance(WETH, 400), balance(USDC, 50)]
    targets = [target(USDC, 40), target(USDT, 60)]

    first = generate_swap_instructions(_plan(balances, targets))
    second = generate_swap_instructions(_plan(list(balances), list(targets)))

    assert first == second
