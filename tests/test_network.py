import pytest

from rebalancer.config.network import (
    get_batch_swapper_address,
    get_chain_config,
    get_chain_id,
    get_explorer_tx_url,
    get_rpc_url,
    is_batch_supported,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CHAIN", "RPC_URL", "BATCH_SWAPPER_ADDRESS"):
        monkeypatch.delenv(name, raising=False)


def test_lookup_by_name_and_id() -> None:
    assert get_chain_config("Base")["chain_id"] == 8453
    assert get_chain_config(42161)["name"] == "Arbitrum"
    assert get_chain_id() == 8453


def test_chain_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CHAIN", "optimism")
    assert get_chain_id() == 10


@pytest.mark.parametrize("chain", ["solana", 56])
def test_unsupported_chain(chain) -> None:
    with pytest.raises(ValueError, match="Unsupported"):
        get_chain_config(chain)


def test_rpc_url_override(monkeypatch) -> None:
    assert get_rpc_url("base") == "https://mainnet.base.org"
    monkeypatch.setenv("RPC_URL", "http://localhost:8545")
    assert get_rpc_url("base") == "http://localhost:8545"


def test_batch_swapper_address(monkeypatch) -> None:
    assert get_batch_swapper_address("base") == "0xf84DA33B69Fb92F28997B1aB9Ad755d4E4E14D06"
    with pytest.raises(ValueError, match="not deployed"):
        get_batch_swapper_address("ethereum")

    monkeypatch.setenv("BATCH_SWAPPER_ADDRESS", "0x2222222222222222222222222222222222222222")
    assert get_batch_swapper_address("ethereum") == "0x2222222222222222222222222222222222222222"


def test_batch_support() -> None:
    assert is_batch_supported("arbitrum")
    assert not is_batch_supported(1)
    assert not is_batch_supported(999)


def test_explorer_url() -> None:
    assert get_explorer_tx_url("0xabc", 8453) == "https://basescan.org/tx/0xabc"
