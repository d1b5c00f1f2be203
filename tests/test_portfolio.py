from decimal import Decimal

from rebalancer.portfolio import build_balances, fetch_portfolio, total_value

from fakes import DAI, USDC, WETH


TOKENS = {t.key: t for t in (USDC, DAI, WETH)}


def test_build_balances_values_and_order() -> None:
    raw = {USDC.key: 250 * 10**6, WETH.key: str(10**17), DAI.key: 50 * 10**18}
    prices = {USDC.key: Decimal("1"), WETH.key: Decimal("2000"), DAI.key: "1"}

    balances = build_balances(raw, prices, TOKENS)

    assert [b.token for b in balances] == [USDC, WETH, DAI]
    assert [b.usd_value for b in balances] == [Decimal(250), Decimal(200), Decimal(50)]
    assert balances[1].formatted == "0.1"
    assert balances[1].raw_amount == 10**17
    assert [b.percentage_of_portfolio for b in balances] == [Decimal(50), Decimal(40), Decimal(10)]
    assert total_value(balances) == Decimal(500)


def test_zero_and_dust_dropped() -> None:
    raw = {USDC.key: 0, DAI.key: 10**15, WETH.key: 10**18}
    prices = {USDC.key: 1, DAI.key: 1, WETH.key: 2000}

    balances = build_balances(raw, prices, TOKENS)

    # 0.001 DAI is under one cent
    assert [b.token for b in balances] == [WETH]
    assert balances[0].percentage_of_portfolio == Decimal(100)


def test_missing_price_counts_as_zero() -> None:
    balances = build_balances({USDC.key: 10**6}, {}, TOKENS)
    assert balances == []


def test_unknown_token_gets_default_metadata() -> None:
    address = "0x00000000000000000000000000000000000000ff"
    balances = build_balances({address: 2 * 10**18}, {address: 3}, {})

    assert balances[0].token.decimals == 18
    assert balances[0].usd_value == Decimal(6)


def test_fetch_portfolio_uses_client() -> None:
    class Client:
        def get_tokens(self):
            return TOKENS

        def get_balances(self, wallet):
            return {USDC.key: 10 * 10**6}

        def get_prices(self, addresses):
            assert list(addresses) == [USDC.key]
            return {USDC.key: Decimal(1)}

    balances = fetch_portfolio(Client(), "0xwallet")

    assert len(balances) == 1
    assert balances[0].usd_value == Decimal(10)
