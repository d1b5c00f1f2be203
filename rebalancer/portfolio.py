"""
Portfolio snapshot.

Joins raw balances, USD prices and token metadata into ``Balance`` records.
Inputs use lowercased addresses as keys (the shape ``OneInchClient`` returns);
tokens missing from the metadata map fall back to 18 decimals and a
shortened address as the symbol.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Mapping, Sequence

from rebalancer.config.tokens import DEFAULT_DECIMALS
from rebalancer.helpers.units import format_units, to_decimal
from rebalancer.types import Balance, Token

logger = logging.getLogger(__name__)

DEFAULT_MIN_DISPLAY_USD = Decimal("0.01")


def total_value(balances: Sequence[Balance]) -> Decimal:
    return sum((b.usd_value for b in balances), Decimal(0))


def build_balances(
    raw_balances: Mapping[str, int | str],
    prices: Mapping[str, Decimal | float | str],
    tokens: Mapping[str, Token],
    min_display_usd: Decimal = DEFAULT_MIN_DISPLAY_USD,
) -> list[Balance]:
    """
    Build the balance list for a wallet.

    Zero balances and holdings worth less than ``min_display_usd`` are
    dropped. The result is sorted by USD value, largest first, and each
    entry carries its share of the remaining total.
    """
    balances: list[Balance] = []
    for address, raw in raw_balances.items():
        raw_amount = int(raw or 0)
        if raw_amount <= 0:
            continue

        key = address.lower()
        token = tokens.get(key)
        if token is None:
            logger.warning("No metadata for token %s, assuming %d decimals", address, DEFAULT_DECIMALS)
            token = Token(address=address, symbol=f"{address[:6]}…{address[-4:]}")

        price = to_decimal(prices.get(key, prices.get(address)))
        amount = Decimal(raw_amount).scaleb(-token.decimals)
        usd_value = amount * price
        if usd_value < min_display_usd:
            continue

        balances.append(Balance(
            token=token,
            raw_amount=raw_amount,
            formatted=format_units(raw_amount, token.decimals),
            usd_price=price,
            usd_value=usd_value,
        ))

    portfolio_value = total_value(balances)
    if portfolio_value > 0:
        balances = [
            replace(b, percentage_of_portfolio=b.usd_value / portfolio_value * Decimal(100))
            for b in balances
        ]

    balances.sort(key=lambda b: b.usd_value, reverse=True)
    return balances


def fetch_portfolio(client, wallet: str, min_display_usd: Decimal = DEFAULT_MIN_DISPLAY_USD) -> list[Balance]:
    """Load balances, prices and token metadata for ``wallet`` through a ``OneInchClient``."""
    tokens = client.get_tokens()
    raw_balances = client.get_balances(wallet)
    if not raw_balances:
        return []
    prices = client.get_prices(raw_balances.keys())
    balances = build_balances(raw_balances, prices, tokens, min_display_usd)
    logger.info("Portfolio for %s: %d tokens, $%.2f", wallet, len(balances), total_value(balances))
    return balances
