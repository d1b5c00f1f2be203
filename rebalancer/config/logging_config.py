"""
Logging Configuration for the Batch Rebalancer

Provides structured logging with:
- Timestamps
- Log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- File rotation (1 file per day)
- Separate error log
- Console and file handlers

Library modules only call ``logging.getLogger(__name__)``; applications call
``setup_logger`` once for the ``rebalancer`` logger (or a child of it).
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from rebalancer.types import BatchPlan


# Log formats
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
SIMPLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_dir() -> Path:
    """Log directory from REBALANCER_LOG_DIR (default ./logs), created on demand."""
    log_dir = Path(os.getenv("REBALANCER_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_logger(
    name: str = "rebalancer",
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    console: bool = True,
    detailed: bool = False,
    to_file: bool = True,
) -> logging.Logger:
    """
    Setup a logger with console and file handlers.

    Args:
        name: Logger name (``rebalancer`` configures the whole package)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file name (defaults to name.log)
        console: Whether to log to console
        detailed: Whether to use detailed format (includes file/line)
        to_file: Whether to attach the rotating file handlers

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logger("rebalancer", level=logging.DEBUG)
        >>> logger.info("Planning rebalance")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    log_format = DETAILED_FORMAT if detailed else SIMPLE_FORMAT
    formatter = logging.Formatter(log_format, datefmt=DATE_FORMAT)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if not to_file:
        return logger

    log_dir = get_log_dir()
    if log_file is None:
        log_file = f"{name}.log"

    file_handler = TimedRotatingFileHandler(
        log_dir / log_file,
        when="midnight",
        interval=1,
        backupCount=30,  # Keep 30 days of logs
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # Separate error log
    error_handler = RotatingFileHandler(
        log_dir / f"{name}_errors.log",
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(error_handler)

    return logger


def log_plan_summary(logger: logging.Logger, plan: "BatchPlan") -> None:
    """
    Log a plan in structured, single-line format.

    Args:
        logger: Logger instance
        plan: Plan returned by RebalanceSession.plan
    """
    if plan.no_rebalance_needed:
        logger.info("PLAN | no rebalance needed | total: $%s", plan.allocation.total_value_usd)
        return

    msg = (
        f"PLAN | legs: {len(plan.finalized_legs)}/{len(plan.legs)} | "
        f"excluded: {len(plan.excluded_legs)} | "
        f"recommendation: {plan.recommendation} | "
        f"gas saved: {plan.gas_savings}"
    )
    if plan.gas:
        msg += f" ({plan.gas.savings_percentage:.2f}%, {plan.gas.source})"

    if plan.excluded_legs:
        logger.warning(msg + " | excluded pairs: " + ", ".join(leg.pair for leg in plan.excluded_legs))
    else:
        logger.info(msg)
