"""
Rebalance session: plan, prepare, execute.

    plan()               balances + targets -> allocation -> legs -> quotes -> gas comparison
    prepare_execution()  route payloads, fresh allowance check, batch transaction
    execute()            sequential approvals, then the batch

A session holds no state between calls; every plan is rebuilt from the
inputs it is given.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from decimal import Decimal
from typing import Mapping, Sequence

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from rebalancer.approvals import ApprovalCoordinator, aggregate_sell_amounts
from rebalancer.config.logging_config import log_plan_summary
from rebalancer.config.network import DEFAULT_CHAIN, get_batch_swapper_address, get_chain_id
from rebalancer.config.settings import RebalanceSettings
from rebalancer.errors import PlanningError
from rebalancer.executor.batch_builder import BatchTransactionBuilder, native_value
from rebalancer.executor.batch_executor import BatchExecutor
from rebalancer.gas import GasEstimator
from rebalancer.helpers.chain import Web3AllowanceReader, Web3BatchGasEstimator, Web3TransactionSender
from rebalancer.helpers.oneinch_client import OneInchClient
from rebalancer.helpers.ttl_cache import TTLCache
from rebalancer.helpers.web3_setup import get_web3_instance
from rebalancer.planner.allocation import plan_allocation
from rebalancer.planner.instructions import generate_swap_instructions
from rebalancer.portfolio import total_value
from rebalancer.protocols import AllowanceSource, QuoteSource, TransactionSender
from rebalancer.quotes import QuoteResolver
from rebalancer.types import (
    AllocationTarget,
    Balance,
    BatchPlan,
    ExecutionResult,
    ExecutionStep,
    PreparedExecution,
    QuotedLeg,
)

logger = logging.getLogger(__name__)

# Rough wall-clock cost of one confirmed transaction
SECONDS_PER_TRANSACTION = 20


def build_execution_steps(legs: Sequence[QuotedLeg], recommendation: str) -> list[ExecutionStep]:
    steps: list[ExecutionStep] = []
    for token, _ in aggregate_sell_amounts(legs).values():
        steps.append(ExecutionStep(
            id=f"approve-{token.key}",
            step=len(steps) + 1,
            type="approve",
            action=f"Approve {token.symbol}",
        ))

    if recommendation == "batch":
        steps.append(ExecutionStep(
            id="batch-swap",
            step=len(steps) + 1,
            type="batch_swap",
            action=f"Execute batch of {len(legs)} swaps",
        ))
    else:
        for index, leg in enumerate(legs):
            steps.append(ExecutionStep(
                id=f"swap-{index}",
                step=len(steps) + 1,
                type="swap",
                action=f"Swap {leg.pair}",
            ))
    return steps


def average_price_impact(legs: Sequence[QuotedLeg]) -> Decimal:
    impacts = [leg.quote.price_impact_percent for leg in legs
               if leg.quote is not None and leg.quote.price_impact_percent is not None]
    if not impacts:
        return Decimal(0)
    return sum(impacts, Decimal(0)) / len(impacts)


class RebalanceSession:
    def __init__(
        self,
        quote_source: QuoteSource,
        settings: RebalanceSettings | None = None,
        *,
        gas_estimator: GasEstimator | None = None,
        allowance_source: AllowanceSource | None = None,
        sender: TransactionSender | None = None,
        batch_swapper_address: str | None = None,
    ) -> None:
        self.settings = settings or RebalanceSettings()
        self.resolver = QuoteResolver(
            quote_source,
            slippage_percent=self.settings.slippage_percent,
            max_price_impact_percent=self.settings.max_price_impact_percent,
            max_workers=self.settings.quote_concurrency,
        )
        self.gas_estimator = gas_estimator or GasEstimator(
            timeout=self.settings.gas_estimate_timeout,
            savings_threshold_percent=self.settings.batch_savings_threshold_percent,
        )
        self.allowance_source = allowance_source
        self.sender = sender
        self.batch_swapper_address = batch_swapper_address

    @classmethod
    def from_web3(
        cls,
        w3: Web3,
        account: LocalAccount,
        chain: str | int,
        settings: RebalanceSettings | None = None,
        api_key: str | None = None,
    ) -> "RebalanceSession":
        """Wire a session to 1inch and a live node for ``account`` on ``chain``."""
        settings = settings or RebalanceSettings.from_env()
        contract = get_batch_swapper_address(chain)
        client = OneInchClient(
            api_key=api_key,
            chain_id=get_chain_id(chain),
            token_cache=TTLCache(ttl_seconds=3600),
            price_cache=TTLCache(ttl_seconds=60),
        )
        return cls(
            client,
            settings,
            gas_estimator=GasEstimator(
                live_estimator=Web3BatchGasEstimator(w3, contract, account.address),
                timeout=settings.gas_estimate_timeout,
                savings_threshold_percent=settings.batch_savings_threshold_percent,
            ),
            allowance_source=Web3AllowanceReader(w3),
            sender=Web3TransactionSender(w3, account),
            batch_swapper_address=contract,
        )

    @classmethod
    def from_env(cls, chain: str | int | None = None, dotenv_path: str | None = None) -> "RebalanceSession":
        """Build a live session from PRIVATE_KEY, RPC_URL, CHAIN and ONEINCH_API_KEY."""
        load_dotenv(dotenv_path)
        chain = chain or os.getenv("CHAIN", DEFAULT_CHAIN)
        w3 = get_web3_instance(chain=chain)
        account = Account.from_key(os.environ["PRIVATE_KEY"])
        return cls.from_web3(w3, account, chain, RebalanceSettings.from_env(dotenv_path))

    def plan(
        self,
        balances: Sequence[Balance],
        targets: Sequence[AllocationTarget],
        prices: Mapping[str, Decimal] | None = None,
    ) -> BatchPlan:
        """
        Build a quoted, gas-compared plan.

        A plan with no instructions is a valid result; check
        ``plan.no_rebalance_needed`` before preparing execution.

        Batch gas here is always the fallback formula: routes and approvals
        do not exist yet, so there is nothing to simulate. The live estimate
        is taken in ``prepare_execution``.

        Raises:
            PlanningError: malformed targets or an empty portfolio
        """
        allocation = plan_allocation(
            balances,
            targets,
            total_value_usd=total_value(balances),
            min_swap_value_usd=self.settings.min_swap_value_usd,
            include_untargeted_holdings=self.settings.include_untargeted_holdings,
        )
        instructions = generate_swap_instructions(allocation, self.settings.min_swap_value_usd)

        if not instructions:
            plan = BatchPlan(allocation=allocation, instructions=())
            log_plan_summary(logger, plan)
            return plan

        if prices is None:
            prices = {b.token.key: b.usd_price for b in balances}
        legs = self.resolver.resolve(instructions, prices)
        gas = self.gas_estimator.compare(legs, use_live=False)
        finalized = [leg for leg in legs if leg.ok]
        steps = build_execution_steps(finalized, gas.recommendation)

        plan = BatchPlan(
            allocation=allocation,
            instructions=tuple(instructions),
            legs=tuple(legs),
            gas=gas,
            native_value=native_value(finalized),
            execution_steps=tuple(steps),
            estimated_time_seconds=len(steps) * SECONDS_PER_TRANSACTION,
            average_price_impact=average_price_impact(finalized),
        )
        log_plan_summary(logger, plan)
        return plan

    def prepare_execution(self, plan: BatchPlan, owner: str, recipient: str | None = None) -> PreparedExecution:
        """
        Turn a plan into approvals and a batch transaction.

        Routes are built with the batch contract as the router-facing sender,
        and allowances are re-read so the result reflects the chain right now.

        Raises:
            PlanningError: nothing to execute, or more legs than one batch allows
            ApprovalError: an allowance could not be read
        """
        if self.batch_swapper_address is None or self.allowance_source is None:
            raise PlanningError("Session has no batch contract or allowance source configured")

        finalized = plan.finalized_legs
        if not finalized:
            raise PlanningError("Plan has no executable legs")
        if len(finalized) > self.settings.max_batch_size:
            raise PlanningError(
                f"Plan has {len(finalized)} legs, maximum is {self.settings.max_batch_size}; "
                "request multiple batches"
            )

        recipient = recipient or owner
        legs = self.resolver.build_route_payloads(finalized, self.batch_swapper_address, recipient)
        ready = [leg for leg in legs if leg.ok]
        if len(ready) < len(legs):
            logger.warning("Dropped %d leg(s) whose route could not be built", len(legs) - len(ready))
        if not ready:
            raise PlanningError("No leg has an executable route")

        coordinator = ApprovalCoordinator(
            self.allowance_source,
            self.batch_swapper_address,
            unlimited_approval=self.settings.unlimited_approval,
            confirmation_timeout=self.settings.approval_timeout,
        )
        approvals = coordinator.check_approvals(ready, owner)

        gas_estimate, _ = self.gas_estimator.estimate_batch_gas(ready)
        builder = BatchTransactionBuilder(
            self.batch_swapper_address,
            max_batch_size=self.settings.max_batch_size,
            gas_buffer_percent=self.settings.gas_limit_buffer_percent,
        )
        transaction = builder.build(ready, recipient, gas_estimate)

        return PreparedExecution(approvals=tuple(approvals), transaction=transaction, legs=tuple(legs))

    def execute(self, prepared: PreparedExecution, sender: TransactionSender | None = None) -> ExecutionResult:
        """
        Submit approvals (one at a time) and then the batch.

        Allowances are re-read first, so approvals that landed after
        ``prepare_execution`` are not sent again.

        Raises:
            ApprovalError: any approval failed; the batch is not sent
            ExecutionError: the batch failed; it is not retried
        """
        sender = sender or self.sender
        if sender is None:
            raise PlanningError("No transaction sender configured")

        approval_hashes: list[str] = []
        if self.allowance_source is not None and self.batch_swapper_address is not None:
            coordinator = ApprovalCoordinator(
                self.allowance_source,
                self.batch_swapper_address,
                unlimited_approval=self.settings.unlimited_approval,
                confirmation_timeout=self.settings.approval_timeout,
            )
            approvals = coordinator.check_approvals([leg for leg in prepared.legs if leg.ok], sender.address)
            if approvals:
                approval_hashes = coordinator.submit_approvals(approvals, sender)
        elif prepared.approvals:
            raise PlanningError("Session has no batch contract or allowance source configured")

        executor = BatchExecutor(sender, confirmation_timeout=self.settings.execution_timeout)
        result = executor.submit(prepared.transaction)
        return replace(result, approval_tx_hashes=tuple(approval_hashes))
