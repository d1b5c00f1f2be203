"""
Web3 setup helper - builds the Web3 instance used by the chain adapters.

Public API
----------
get_web3_instance(rpc_url=None, chain=None, request_timeout=10)
    Return a Web3 instance connected to the specified RPC URL.
    Falls back to RPC_URL or the chain table's public endpoint.
"""
from __future__ import annotations

from web3 import Web3

from rebalancer.config.network import get_rpc_url

__all__ = ["get_web3_instance"]


def get_web3_instance(
    rpc_url: str | None = None,
    chain: str | int | None = None,
    request_timeout: float = 10.0,
) -> Web3:
    """
    Build a Web3 instance for the given RPC URL.

    A new instance is returned on every call; callers own its lifetime and
    pass it to the components that need it.

    Args:
        rpc_url: Optional RPC URL. If not provided, uses RPC_URL or the chain's default.
        chain: Chain name or id used for the default endpoint.
        request_timeout: HTTP timeout in seconds for every JSON-RPC request.

    Returns:
        Web3 instance
    """
    if rpc_url is None:
        rpc_url = get_rpc_url(chain)

    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
