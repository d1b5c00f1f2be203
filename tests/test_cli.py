from decimal import Decimal

import pytest

from rebalancer import RebalanceSession, cli
from rebalancer.errors import ApiError
from rebalancer.types import AllocationPlan, AllocationTarget, BatchPlan, Token

from fakes import DAI, USDC, USDT, WETH, FakeQuoteSource, balance, target


TOKENS = {t.key: t for t in (USDC, DAI, WETH)}


def test_parse_targets_by_symbol_and_address() -> None:
    targets = cli.parse_targets(["usdc=40", "0x" + DAI.address[2:].upper() + "=60"], TOKENS, [])

    assert targets == [
        AllocationTarget(token=USDC, target_percentage=Decimal(40)),
        AllocationTarget(token=DAI, target_percentage=Decimal(60)),
    ]


def test_held_token_wins_symbol_clash() -> None:
    bridged = Token("0x00000000000000000000000000000000000000aa", "USDC", decimals=6)

    targets = cli.parse_targets(["USDC=100"], TOKENS, [balance(bridged, 10, price=1)])

    assert targets[0].token == bridged


@pytest.mark.parametrize("entry,message", [
    ("USDC", "SYMBOL=PERCENT"),
    ("USDC=forty", "Invalid percentage"),
    ("PEPE=10", "Unknown token"),
])
def test_bad_target_entries(entry, message) -> None:
    with pytest.raises(ValueError, match=message):
        cli.parse_targets([entry], TOKENS, [])


def test_print_plan_without_swaps(capsys) -> None:
    cli.print_plan(BatchPlan(AllocationPlan(Decimal(100), (), (), ()), ()))

    assert "no rebalance needed" in capsys.readouterr().out


def test_print_plan_with_gas_cost(capsys) -> None:
    plan = RebalanceSession(FakeQuoteSource()).plan(
        [balance(DAI, 600), balance(WETH, 400)], [target(USDC, 40), target(USDT, 60)]
    )

    cli.print_plan(plan, 2 * 10**9, Decimal(2000))

    # 313500 gas at 2 gwei
    assert "Batch gas cost: 0.000627 native ($1.25)" in capsys.readouterr().out


def test_print_plan_without_gas_price(capsys) -> None:
    plan = RebalanceSession(FakeQuoteSource()).plan(
        [balance(DAI, 600), balance(WETH, 400)], [target(USDC, 40), target(USDT, 60)]
    )

    cli.print_plan(plan)

    out = capsys.readouterr().out
    assert "Gas: individual 300000" in out
    assert "Batch gas cost" not in out


class _PriceClient:
    def __init__(self, error=None):
        self.error = error

    def get_gas_price(self):
        if self.error:
            raise self.error
        return 3 * 10**9

    def get_prices(self, addresses):
        return {address.lower(): Decimal(2500) for address in addresses}


def test_gas_cost_inputs() -> None:
    assert cli.gas_cost_inputs(_PriceClient()) == (3 * 10**9, Decimal(2500))


def test_gas_cost_inputs_unavailable() -> None:
    assert cli.gas_cost_inputs(_PriceClient(ApiError("HTTP 500"))) == (None, None)


def test_main_reports_errors(monkeypatch, capsys) -> None:
    monkeypatch.delenv("PRIVATE_KEY", raising=False)
    monkeypatch.setattr(cli, "setup_logger", lambda *a, **kw: None)

    assert cli.main(["portfolio"]) == 1
    assert "PRIVATE_KEY" in capsys.readouterr().err


def test_subcommand_required() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])
