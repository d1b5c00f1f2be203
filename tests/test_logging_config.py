import logging
from decimal import Decimal

import pytest

from rebalancer.config.logging_config import log_plan_summary, setup_logger
from rebalancer.gas import compare_gas
from rebalancer.types import AllocationPlan, BatchPlan, QuotedLeg, Quote, SwapInstruction

from fakes import DAI, USDC, WETH


@pytest.fixture
def log_dir(monkeypatch, tmp_path):
    monkeypatch.setenv("REBALANCER_LOG_DIR", str(tmp_path / "logs"))
    return tmp_path / "logs"


def _fresh(name):
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    return name


def test_setup_logger_writes_files(log_dir) -> None:
    name = _fresh("rebalancer.test_files")
    logger = setup_logger(name, console=False)

    logger.error("batch reverted")
    for handler in logger.handlers:
        handler.flush()

    assert (log_dir / f"{name}.log").read_text().strip().endswith("batch reverted")
    assert "batch reverted" in (log_dir / f"{name}_errors.log").read_text()
    _fresh(name)


def test_setup_logger_is_idempotent(log_dir) -> None:
    name = _fresh("rebalancer.test_idempotent")

    first = setup_logger(name, console=True, to_file=False)
    second = setup_logger(name, console=True, to_file=False)

    assert first is second
    assert len(first.handlers) == 1
    assert not log_dir.exists()
    _fresh(name)


def _plan(legs):
    allocation = AllocationPlan(Decimal(1000), (), (), ())
    instructions = tuple(leg.instruction for leg in legs)
    return BatchPlan(allocation, instructions, legs=tuple(legs), gas=compare_gas(400_000, 313_500))


def test_plan_summary_logged(caplog) -> None:
    logger = logging.getLogger("rebalancer.test_summary")
    ok = QuotedLeg(SwapInstruction(DAI, USDC, 1, Decimal(1)), quote=Quote(1, 200_000))

    with caplog.at_level(logging.INFO, logger="rebalancer.test_summary"):
        log_plan_summary(logger, _plan([ok]))

    record = caplog.records[-1]
    assert record.levelno == logging.INFO
    assert "legs: 1/1" in record.getMessage()
    assert "recommendation: batch" in record.getMessage()


def test_plan_summary_warns_about_excluded_legs(caplog) -> None:
    logger = logging.getLogger("rebalancer.test_summary")
    ok = QuotedLeg(SwapInstruction(DAI, USDC, 1, Decimal(1)), quote=Quote(1, 200_000))
    failed = QuotedLeg(SwapInstruction(WETH, USDC, 1, Decimal(1)), error="no route")

    with caplog.at_level(logging.INFO, logger="rebalancer.test_summary"):
        log_plan_summary(logger, _plan([ok, failed]))

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert "WETH->USDC" in record.getMessage()


def test_plan_summary_without_instructions(caplog) -> None:
    logger = logging.getLogger("rebalancer.test_summary")
    plan = BatchPlan(AllocationPlan(Decimal(1000), (), (), ()), ())

    with caplog.at_level(logging.INFO, logger="rebalancer.test_summary"):
        log_plan_summary(logger, plan)

    assert "no rebalance needed" in caplog.records[-1].getMessage()
