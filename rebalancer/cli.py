#!/usr/bin/env python3
"""
Command line entry point.

    python -m rebalancer portfolio
    python -m rebalancer plan --target USDC=40 --target WETH=60
    python -m rebalancer execute --target USDC=40 --target WETH=60 --yes

Targets are ``SYMBOL=PERCENT`` or ``ADDRESS=PERCENT``. The wallet comes from
PRIVATE_KEY (or ``--wallet`` for the read-only commands).
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from decimal import Decimal, InvalidOperation
from typing import Mapping, Sequence

from dotenv import load_dotenv
from eth_account import Account

from rebalancer.config.logging_config import setup_logger
from rebalancer.config.network import DEFAULT_CHAIN, get_chain_id, get_explorer_tx_url
from rebalancer.config.settings import RebalanceSettings
from rebalancer.config.tokens import NATIVE_TOKEN_ADDRESS
from rebalancer.errors import RebalanceError
from rebalancer.gas import estimate_cost
from rebalancer.helpers.oneinch_client import OneInchClient
from rebalancer.portfolio import fetch_portfolio
from rebalancer.session import RebalanceSession
from rebalancer.types import AllocationTarget, Balance, BatchPlan, Token

logger = logging.getLogger(__name__)


def parse_targets(entries: Sequence[str], tokens: Mapping[str, Token], balances: Sequence[Balance]) -> list[AllocationTarget]:
    """Resolve ``SYMBOL=PCT`` / ``ADDRESS=PCT`` strings against held tokens first, then the token list."""
    by_symbol: dict[str, Token] = {}
    for token in tokens.values():
        by_symbol.setdefault(token.symbol.upper(), token)
    for b in balances:
        by_symbol[b.token.symbol.upper()] = b.token
    by_address = {**tokens, **{b.token.key: b.token for b in balances}}

    targets: list[AllocationTarget] = []
    for entry in entries:
        name, sep, pct = entry.partition("=")
        if not sep:
            raise ValueError(f"Target must look like SYMBOL=PERCENT: {entry!r}")
        try:
            percentage = Decimal(pct)
        except InvalidOperation as e:
            raise ValueError(f"Invalid percentage in {entry!r}") from e

        name = name.strip()
        token = by_address.get(name.lower()) if name.startswith("0x") else by_symbol.get(name.upper())
        if token is None:
            raise ValueError(f"Unknown token: {name}")
        targets.append(AllocationTarget(token=token, target_percentage=percentage))
    return targets


def print_portfolio(balances: Sequence[Balance]) -> None:
    total = sum((b.usd_value for b in balances), Decimal(0))
    print(f"Portfolio value: ${total:,.2f}")
    for b in balances:
        print(f"  {b.token.symbol:<8} {b.formatted:>24}  ${b.usd_value:>12,.2f}  {b.percentage_of_portfolio:6.2f}%")


def print_plan(plan: BatchPlan, gas_price_wei: int | None = None, native_usd_price: Decimal | None = None) -> None:
    if plan.no_rebalance_needed:
        print("Portfolio is within tolerance, no rebalance needed")
        return

    print(f"Swaps ({len(plan.finalized_legs)} quoted, {len(plan.excluded_legs)} excluded):")
    for leg in plan.legs:
        instruction = leg.instruction
        if not leg.ok:
            print(f"  ✗ {leg.pair:<16} ${instruction.value_usd:>10,.2f}  {leg.error}")
            continue
        flag = "  (high price impact)" if leg.high_price_impact else ""
        print(f"  ✓ {leg.pair:<16} ${instruction.value_usd:>10,.2f}  min out {leg.min_amount_out}{flag}")

    gas = plan.gas
    print(f"Gas: individual {gas.total_individual_gas}, batch {gas.batch_gas} ({gas.source})")
    print(f"Savings: {gas.savings} ({gas.savings_percentage:.1f}%) -> {gas.recommendation}")
    if gas_price_wei and native_usd_price is not None:
        native_cost, usd_cost = estimate_cost(gas.batch_gas, gas_price_wei, native_usd_price)
        print(f"Batch gas cost: {native_cost:.6f} native (${usd_cost:,.2f})")
    print(f"Average price impact: {plan.average_price_impact:.2f}%")
    print(f"Steps ({plan.estimated_time_seconds}s estimated):")
    for step in plan.execution_steps:
        print(f"  {step.step}. {step.action}")


def _wallet(args: argparse.Namespace) -> str:
    if getattr(args, "wallet", None):
        return args.wallet
    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("Provide --wallet or set PRIVATE_KEY")
    return Account.from_key(private_key).address


def _client(args: argparse.Namespace) -> OneInchClient:
    return OneInchClient(chain_id=get_chain_id(args.chain))


def gas_cost_inputs(client: OneInchClient) -> tuple[int | None, Decimal | None]:
    """Current gas price and native USD price, or (None, None) when either is unavailable."""
    try:
        gas_price = client.get_gas_price()
        native_price = client.get_prices([NATIVE_TOKEN_ADDRESS]).get(NATIVE_TOKEN_ADDRESS.lower())
    except RebalanceError as e:
        logger.warning("Gas cost unavailable: %s", e)
        return None, None
    return gas_price, native_price


def cmd_portfolio(args: argparse.Namespace) -> int:
    balances = fetch_portfolio(_client(args), _wallet(args))
    print_portfolio(balances)
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    client = _client(args)
    balances = fetch_portfolio(client, _wallet(args))
    targets = parse_targets(args.target, client.get_tokens(), balances)
    plan = RebalanceSession(client, RebalanceSettings.from_env()).plan(balances, targets)
    print_plan(plan, *gas_cost_inputs(client))
    return 0


def cmd_execute(args: argparse.Namespace) -> int:
    session = RebalanceSession.from_env(chain=args.chain, dotenv_path=args.env_file)
    client = session.resolver.source
    owner = session.sender.address

    balances = fetch_portfolio(client, owner)
    targets = parse_targets(args.target, client.get_tokens(), balances)
    plan = session.plan(balances, targets)
    print_plan(plan, *gas_cost_inputs(client))
    if plan.no_rebalance_needed:
        return 0

    prepared = session.prepare_execution(plan, owner, args.recipient)
    if prepared.approvals:
        print("Approvals needed: " + ", ".join(a.token.symbol for a in prepared.approvals))
    if not args.yes:
        print("Dry run only, pass --yes to send transactions")
        return 0

    result = session.execute(prepared)
    for tx_hash in result.approval_tx_hashes:
        print(f"Approval: {get_explorer_tx_url(tx_hash, args.chain)}")
    print(f"Batch: {get_explorer_tx_url(result.tx_hash, args.chain)} (gas used {result.gas_used})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Portfolio rebalance planner and batch swapper")
    parser.add_argument("--chain", default=None, help=f"Chain name or id (default $CHAIN or {DEFAULT_CHAIN})")
    parser.add_argument("--env-file", help="Path to .env file to load first")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_portfolio = sub.add_parser("portfolio", help="Show wallet balances and USD values")
    p_portfolio.add_argument("--wallet", help="Wallet address (default: PRIVATE_KEY's address)")
    p_portfolio.set_defaults(func=cmd_portfolio)

    p_plan = sub.add_parser("plan", help="Quote a rebalance without sending anything")
    p_plan.add_argument("--wallet", help="Wallet address (default: PRIVATE_KEY's address)")
    p_plan.add_argument("--target", action="append", required=True, help="SYMBOL=PERCENT, repeatable")
    p_plan.set_defaults(func=cmd_plan)

    p_exec = sub.add_parser("execute", help="Plan, approve and send the batch")
    p_exec.add_argument("--target", action="append", required=True, help="SYMBOL=PERCENT, repeatable")
    p_exec.add_argument("--recipient", help="Receiver of swap outputs (default: sender)")
    p_exec.add_argument("--yes", action="store_true", help="Actually send transactions")
    p_exec.set_defaults(func=cmd_execute)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(args.env_file)
    setup_logger("rebalancer", level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        return args.func(args)
    except (RebalanceError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
