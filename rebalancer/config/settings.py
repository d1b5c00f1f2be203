"""
Runtime settings for a rebalance session.

Values come from keyword arguments or, through ``RebalanceSettings.from_env``,
from environment variables (a local ``.env`` file is loaded first):

  • REBALANCE_SLIPPAGE_PERCENT    slippage tolerance in percent (default 1)
  • REBALANCE_MIN_SWAP_USD        minimum leg / imbalance value in USD (default 1)
  • REBALANCE_MAX_PRICE_IMPACT    price impact warning threshold in percent (default 5)
  • REBALANCE_BATCH_THRESHOLD     min gas savings % to recommend batching (default 10)
  • REBALANCE_UNLIMITED_APPROVAL  "1"/"true" to approve MAX_UINT256 instead of the exact amount
  • REBALANCE_QUOTE_CONCURRENCY   concurrent quote requests (default 4)
  • REBALANCE_MAX_BATCH_SIZE      legs per batch (default 10, the contract limit)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from rebalancer.config.abis import MAX_SWAPS_PER_BATCH

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RebalanceSettings:
    slippage_percent: Decimal = Decimal("1")
    min_swap_value_usd: Decimal = Decimal("1")
    max_price_impact_percent: Decimal = Decimal("5")
    batch_savings_threshold_percent: Decimal = Decimal("10")
    unlimited_approval: bool = False
    quote_concurrency: int = 4
    max_batch_size: int = MAX_SWAPS_PER_BATCH
    gas_estimate_timeout: float = 5.0
    approval_timeout: float = 60.0
    execution_timeout: float = 120.0
    gas_limit_buffer_percent: int = 20
    include_untargeted_holdings: bool = True

    def __post_init__(self) -> None:
        if not Decimal(0) <= self.slippage_percent < Decimal(100):
            raise ValueError(f"slippage_percent must be in [0, 100): {self.slippage_percent}")
        if self.min_swap_value_usd < 0:
            raise ValueError("min_swap_value_usd must be non-negative")
        if self.quote_concurrency < 1:
            raise ValueError("quote_concurrency must be at least 1")
        if not 1 <= self.max_batch_size <= MAX_SWAPS_PER_BATCH:
            raise ValueError(f"max_batch_size must be between 1 and {MAX_SWAPS_PER_BATCH}")

    @property
    def slippage_bps(self) -> Decimal:
        """Slippage in basis points; fractional basis points are kept."""
        return self.slippage_percent * 100

    @classmethod
    def from_env(cls, dotenv_path: str | None = None, **overrides) -> "RebalanceSettings":
        load_dotenv(dotenv_path)

        values: dict = {}
        env_map = {
            "slippage_percent": "REBALANCE_SLIPPAGE_PERCENT",
            "min_swap_value_usd": "REBALANCE_MIN_SWAP_USD",
            "max_price_impact_percent": "REBALANCE_MAX_PRICE_IMPACT",
            "batch_savings_threshold_percent": "REBALANCE_BATCH_THRESHOLD",
            "unlimited_approval": "REBALANCE_UNLIMITED_APPROVAL",
            "quote_concurrency": "REBALANCE_QUOTE_CONCURRENCY",
            "max_batch_size": "REBALANCE_MAX_BATCH_SIZE",
        }
        types = {f.name: f.type for f in fields(cls)}
        for name, env_var in env_map.items():
            raw = os.getenv(env_var)
            if raw is None or raw == "":
                continue
            values[name] = _coerce(raw, types[name], env_var)

        values.update(overrides)
        return cls(**values)


def _coerce(raw: str, annotation: str, env_var: str):
    try:
        if annotation == "Decimal":
            return Decimal(raw)
        if annotation == "bool":
            return raw.strip().lower() in _TRUE_VALUES
        if annotation == "int":
            return int(raw)
        if annotation == "float":
            return float(raw)
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid value for {env_var}: {raw!r}") from e
    return raw
