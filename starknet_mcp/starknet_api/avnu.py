"""
Thin HTTP client for the avnu swap aggregator.

Quotes come back in avnu's own ranking; this client does not reorder them.
HTTP failures are mapped onto ``StarknetMcpError`` kinds so the dispatcher
never sees raw ``httpx`` exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from starknet_mcp.errors import (
    ErrorKind,
    StarknetMcpError,
    UpstreamUnavailableError,
    classify_failure_text,
)
from starknet_mcp.starknet_api.types import ContractCall

logger = logging.getLogger(__name__)

QUOTES_PATH = "/swap/v3/quotes"
BUILD_PATH = "/swap/v3/build"
DEFAULT_QUOTE_COUNT = 3


class AggregatorError(StarknetMcpError):
    """Raised when the aggregator rejects or fails a request."""


def _extract_message(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    messages = data.get("messages")
    if isinstance(messages, list) and messages:
        return "; ".join(str(item) for item in messages)
    for key in ("message", "error", "revertError"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class AvnuClient:
    """Async client for the avnu quote and build endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = async_client
        self._owns_client = async_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _map_error(self, status_code: int, message: Optional[str], *, building: bool) -> AggregatorError:
        kind = classify_failure_text(message)
        if kind is None:
            if building and status_code in {404, 410}:
                kind = ErrorKind.QUOTE_EXPIRED
            elif status_code in {401, 403}:
                kind = ErrorKind.UNCONFIGURED
            elif status_code >= 500:
                kind = ErrorKind.UPSTREAM_UNAVAILABLE
            elif status_code == 400:
                kind = ErrorKind.INVALID_ARGUMENTS
            else:
                kind = ErrorKind.LEDGER_REJECTED
        return AggregatorError(
            message or f"Aggregator error (HTTP {status_code}).",
            kind=kind,
            status_code=status_code,
        )

    def _process_response(self, response: httpx.Response, *, building: bool = False) -> Any:
        data: Any = None
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            raise self._map_error(response.status_code, _extract_message(data), building=building)

        if data is None:
            raise AggregatorError(
                "Unexpected response from aggregator.",
                kind=ErrorKind.UPSTREAM_UNAVAILABLE,
                status_code=response.status_code,
            )
        return data

    async def get_quotes(
        self,
        sell_token: str,
        buy_token: str,
        sell_amount: int,
        taker_address: str,
        *,
        size: int = DEFAULT_QUOTE_COUNT,
    ) -> List[Dict[str, Any]]:
        """Fetch ranked quotes; an empty list means no route exists."""
        client = await self._get_client()
        params = {
            "sellTokenAddress": sell_token,
            "buyTokenAddress": buy_token,
            "sellAmount": hex(sell_amount),
            "takerAddress": taker_address,
            "size": size,
        }
        try:
            response = await client.get(QUOTES_PATH, params=params)
        except httpx.RequestError as exc:
            logger.warning("Aggregator unreachable for %s", QUOTES_PATH)
            raise UpstreamUnavailableError("Aggregator unreachable") from exc
        data = self._process_response(response)
        if not isinstance(data, list):
            raise AggregatorError("Unexpected quote payload.", kind=ErrorKind.UPSTREAM_UNAVAILABLE)
        return [item for item in data if isinstance(item, dict)]

    async def build_swap_calls(
        self,
        quote_id: str,
        taker_address: str,
        slippage: float,
        *,
        include_approve: bool = True,
    ) -> List[ContractCall]:
        """Ask the aggregator for the executable calls (approve first) for a quote."""
        client = await self._get_client()
        body = {
            "quoteId": quote_id,
            "takerAddress": taker_address,
            "slippage": slippage,
            "includeApprove": include_approve,
        }
        try:
            response = await client.post(BUILD_PATH, json=body)
        except httpx.RequestError as exc:
            logger.warning("Aggregator unreachable for %s", BUILD_PATH)
            raise UpstreamUnavailableError("Aggregator unreachable") from exc
        data = self._process_response(response, building=True)
        raw_calls = data.get("calls") if isinstance(data, dict) else None
        if not isinstance(raw_calls, list) or not raw_calls:
            raise AggregatorError("Aggregator returned no calls.", kind=ErrorKind.UPSTREAM_UNAVAILABLE)
        calls: List[ContractCall] = []
        for raw in raw_calls:
            if not isinstance(raw, dict):
                continue
            calls.append(
                ContractCall(
                    contract_address=str(raw.get("contractAddress")),
                    entrypoint=str(raw.get("entrypoint")),
                    calldata=[str(item) for item in raw.get("calldata") or []],
                )
            )
        return calls
