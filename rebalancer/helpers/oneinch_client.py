"""
1inch Developer Portal client.

All HTTP traffic to the aggregator goes through ``OneInchClient._request``;
response shapes are normalized here and nowhere else (``dstAmount`` vs
``toTokenAmount``, ``gas`` vs ``estimatedGas``, nested protocol routes).
Transport failures and non-2xx responses raise ``ApiError``; quote-level
failures raise ``QuoteError`` so the quote resolver can isolate them per leg.

Environment
-----------
ONEINCH_API_KEY   bearer token for https://api.1inch.dev
ONEINCH_API_URL   optional base URL override (e.g. a proxy)
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from typing import Any, Iterable, Mapping

import requests
from web3 import Web3

from rebalancer.errors import ApiError, QuoteError
from rebalancer.helpers.ttl_cache import TTLCache
from rebalancer.helpers.units import to_decimal
from rebalancer.types import Quote, SwapPayload, Token

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.1inch.dev"
SWAP_API_VERSION = "v6.0"
BALANCE_API_VERSION = "v1.2"
PRICE_API_VERSION = "v1.1"
GAS_PRICE_API_VERSION = "v1.5"

# Addresses per price request
PRICE_BATCH_SIZE = 50


def _flatten_protocols(protocols: Any) -> tuple[str, ...]:
    """Collect unique protocol names from 1inch's nested route lists."""
    names: list[str] = []

    def walk(node: Any) -> None:
        if isinstance(node, Mapping):
            name = node.get("name")
            if name and name not in names:
                names.append(name)
        elif isinstance(node, (list, tuple)):
            for child in node:
                walk(child)

    walk(protocols or [])
    return tuple(names)


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


class OneInchClient:
    """Thin wrapper around the swap, balance, price and gas-price APIs."""

    def __init__(
        self,
        api_key: str | None = None,
        chain_id: int = 8453,
        base_url: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 10.0,
        token_cache: TTLCache | None = None,
        price_cache: TTLCache | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.getenv("ONEINCH_API_KEY", "")
        self.chain_id = int(chain_id)
        self.base_url = (base_url or os.getenv("ONEINCH_API_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token_cache = token_cache
        self.price_cache = price_cache
        self.headers = {"Accept": "application/json"}
        if self.api_key:
            self.headers["Authorization"] = f"Bearer {self.api_key}"

    # ---------- helpers ----------

    def _swap_url(self, path: str) -> str:
        return f"{self.base_url}/swap/{SWAP_API_VERSION}/{self.chain_id}/{path}"

    def _request(self, method: str, url: str, params: Mapping[str, Any] | None = None,
                 json_body: Any = None) -> Any:
        logger.debug("1inch %s %s params=%s", method, url, params)
        try:
            response = self.session.request(
                method, url, params=params, json=json_body,
                headers=self.headers, timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApiError(f"1inch request failed: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            try:
                body = response.json()
                detail = body.get("description") or body.get("message") or body.get("error") or ""
            except ValueError:
                detail = response.text[:200]
            raise ApiError(
                f"1inch API error: {response.status_code} {detail}".rstrip(),
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError("1inch returned a non-JSON body", status_code=response.status_code, url=url) from e

    # ---------- token list / balances / prices ----------

    def get_tokens(self) -> dict[str, Token]:
        """Token list keyed by lowercased address."""
        if self.token_cache is not None:
            return self.token_cache.get_or_load(("tokens", self.chain_id), self._load_tokens)
        return self._load_tokens()

    def _load_tokens(self) -> dict[str, Token]:
        data = self._request("GET", self._swap_url("tokens"))
        raw_tokens = data.get("tokens", data) if isinstance(data, Mapping) else {}
        tokens: dict[str, Token] = {}
        for address, info in raw_tokens.items():
            tokens[address.lower()] = Token(
                address=info.get("address", address),
                symbol=info.get("symbol", "???"),
                name=info.get("name", ""),
                decimals=int(info.get("decimals", 18)),
                logo_uri=info.get("logoURI"),
            )
        logger.info("Loaded %d tokens for chain %d", len(tokens), self.chain_id)
        return tokens

    def get_balances(self, wallet: str, token_addresses: Iterable[str] | None = None) -> dict[str, int]:
        """Raw balances keyed by lowercased token address, zero balances dropped."""
        url = f"{self.base_url}/balance/{BALANCE_API_VERSION}/{self.chain_id}/balances/{wallet}"
        if token_addresses is None:
            data = self._request("GET", url)
        else:
            data = self._request("POST", url, json_body={"tokens": list(token_addresses)})

        balances: dict[str, int] = {}
        for address, raw in (data or {}).items():
            amount = int(raw or 0)
            if amount > 0:
                balances[address.lower()] = amount
        return balances

    def get_prices(self, token_addresses: Iterable[str], currency: str = "USD") -> dict[str, Decimal]:
        """USD prices keyed by lowercased address; tokens without a price are absent."""
        wanted = [address.lower() for address in token_addresses]
        prices: dict[str, Decimal] = {}
        missing: list[str] = []

        for address in wanted:
            cached = self.price_cache.get((self.chain_id, address)) if self.price_cache is not None else None
            if cached is None:
                missing.append(address)
            else:
                prices[address] = cached

        url = f"{self.base_url}/price/{PRICE_API_VERSION}/{self.chain_id}"
        for start in range(0, len(missing), PRICE_BATCH_SIZE):
            batch = missing[start:start + PRICE_BATCH_SIZE]
            data = self._request("GET", f"{url}/{','.join(batch)}", params={"currency": currency})
            for address, price in (data or {}).items():
                value = to_decimal(price)
                prices[address.lower()] = value
                if self.price_cache is not None:
                    self.price_cache.set((self.chain_id, address.lower()), value)

        return prices

    def get_gas_price(self) -> int:
        """Suggested ``maxFeePerGas`` (medium) in wei."""
        data = self._request("GET", f"{self.base_url}/gas-price/{GAS_PRICE_API_VERSION}/{self.chain_id}")
        medium = data.get("medium") if isinstance(data, Mapping) else None
        if isinstance(medium, Mapping):
            return int(medium.get("maxFeePerGas", 0))
        return int(_first_present(data, "gasPrice", "baseFee") or 0)

    # ---------- quotes / swaps ----------

    def get_quote(self, from_token: str, to_token: str, amount: int) -> Quote:
        """
        Quote an exact-in swap.

        Raises:
            QuoteError: the response carries no usable output amount
            ApiError: transport or HTTP failure
        """
        data = self._request("GET", self._swap_url("quote"), params={
            "src": from_token,
            "dst": to_token,
            "amount": str(int(amount)),
            "includeGas": "true",
            "includeProtocols": "true",
        })

        output = _first_present(data, "dstAmount", "toTokenAmount", "toAmount")
        if output is None:
            raise QuoteError("Quote response has no output amount", from_token=from_token, to_token=to_token)

        impact = data.get("priceImpact")
        return Quote(
            expected_output_raw=int(output),
            gas_estimate=int(_first_present(data, "gas", "estimatedGas") or 0),
            price_impact_percent=to_decimal(impact) if impact is not None else None,
            protocols=_flatten_protocols(data.get("protocols")),
        )

    def build_swap(
        self,
        from_token: str,
        to_token: str,
        amount: int,
        from_address: str,
        slippage_percent: Decimal,
        receiver: str | None = None,
    ) -> SwapPayload:
        """Build the executable router call for a swap sent from ``from_address``."""
        params = {
            "src": from_token,
            "dst": to_token,
            "amount": str(int(amount)),
            "from": from_address,
            "slippage": str(slippage_percent),
            "disableEstimate": "true",
            "allowPartialFill": "false",
        }
        if receiver:
            params["receiver"] = receiver

        data = self._request("GET", self._swap_url("swap"), params=params)
        tx = data.get("tx") or {}
        if not tx.get("data"):
            raise QuoteError("Swap response has no transaction data", from_token=from_token, to_token=to_token)

        return SwapPayload(
            to=Web3.to_checksum_address(tx["to"]),
            data=tx["data"],
            value=int(tx.get("value") or 0),
            gas=int(tx.get("gas") or 0),
            expected_output_raw=int(_first_present(data, "dstAmount", "toTokenAmount", "toAmount") or 0),
        )
