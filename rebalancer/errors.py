"""
Exception taxonomy for the rebalance engine.

PlanningError    malformed targets, batch too large, invalid legs
QuoteError       a single leg could not be quoted (isolated, non-fatal)
GasEstimationError  live batch estimate failed (always recovered by fallback)
ApprovalError    allowance check or approval submission failed (fatal)
ExecutionError   the batch entry point rejected or reverted the call
ApiError         transport/HTTP failure at the 1inch boundary
"""

from __future__ import annotations


class RebalanceError(Exception):
    """Base class for every error raised by the rebalancer package."""


class PlanningError(RebalanceError):
    def __init__(self, message: str, *, token: str | None = None, leg_index: int | None = None) -> None:
        super().__init__(message)
        self.token = token
        self.leg_index = leg_index


class QuoteError(RebalanceError):
    def __init__(self, message: str, *, from_token: str | None = None, to_token: str | None = None) -> None:
        super().__init__(message)
        self.from_token = from_token
        self.to_token = to_token


class GasEstimationError(RebalanceError):
    pass


class ApprovalError(RebalanceError):
    def __init__(self, message: str, *, token: str | None = None, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.token = token
        self.tx_hash = tx_hash


class ExecutionError(RebalanceError):
    def __init__(self, message: str, *, tx_hash: str | None = None, revert_reason: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash
        self.revert_reason = revert_reason


class ApiError(RebalanceError):
    """Raised by the 1inch adapter when a request fails or returns a non-2xx status."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
