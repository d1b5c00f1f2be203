"""
Portfolio rebalance planner and batch swapper.

Turns current balances and target percentages into slippage-bounded swap
legs, compares batched against individual gas, and builds a single
BatchSwapperV2.batchSwap transaction for execution.
"""

from rebalancer.errors import (
    RebalanceError,
    PlanningError,
    QuoteError,
    GasEstimationError,
    ApprovalError,
    ExecutionError,
    ApiError,
)
from rebalancer.session import RebalanceSession
from rebalancer.config.settings import RebalanceSettings

__version__ = "0.1.0"

__all__ = [
    'RebalanceSession',
    'RebalanceSettings',
    'RebalanceError',
    'PlanningError',
    'QuoteError',
    'GasEstimationError',
    'ApprovalError',
    'ExecutionError',
    'ApiError',
]
