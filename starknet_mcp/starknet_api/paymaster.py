"""JSON-RPC client for a SNIP-29 paymaster (sponsored or gas-token execution)."""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from starknet_mcp.errors import ErrorKind, StarknetMcpError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-paymaster-api-key"

# SNIP-29 error codes.
PAYMASTER_ERROR_KINDS: Dict[int, ErrorKind] = {
    150: ErrorKind.INVALID_ARGUMENTS,  # INVALID_ADDRESS
    151: ErrorKind.INVALID_ARGUMENTS,  # TOKEN_NOT_SUPPORTED
    153: ErrorKind.INSUFFICIENT_BALANCE,  # MAX_AMOUNT_TOO_LOW
    155: ErrorKind.LEDGER_REJECTED,  # TRANSACTION_EXECUTION_ERROR
    156: ErrorKind.QUOTE_EXPIRED,  # INVALID_TIME_BOUNDS
}


class PaymasterError(StarknetMcpError):
    """Raised when the paymaster rejects a build or execute request."""


class PaymasterClient:
    """Builds and relays paymaster-backed invoke transactions."""

    def __init__(
        self,
        url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._client: Optional[httpx.AsyncClient] = async_client
        self._owns_client = async_client is None
        self._ids = itertools.count(1)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self._api_key:
            headers[API_KEY_HEADER] = self._api_key
        return headers

    async def _rpc(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await client.post(self.url, json=body, headers=self._build_headers())
        except httpx.RequestError as exc:
            logger.warning("Paymaster unreachable for %s", method)
            raise UpstreamUnavailableError("Paymaster unreachable") from exc

        if response.status_code in {401, 403}:
            raise PaymasterError(
                "Paymaster rejected the API key.",
                kind=ErrorKind.UNCONFIGURED,
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise PaymasterError(
                "Unexpected response from paymaster.",
                kind=ErrorKind.UPSTREAM_UNAVAILABLE,
                status_code=response.status_code,
            )

        error = data.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            message = str(error.get("message") or "Paymaster error.")
            detail = error.get("data")
            if isinstance(detail, str) and detail:
                message = f"{message}: {detail}"
            kind = PAYMASTER_ERROR_KINDS.get(code) if isinstance(code, int) else None
            raise PaymasterError(message, kind=kind or ErrorKind.UPSTREAM_UNAVAILABLE, code=code)

        result = data.get("result")
        if not isinstance(result, dict):
            raise PaymasterError("Paymaster returned no result.", kind=ErrorKind.UPSTREAM_UNAVAILABLE)
        return result

    async def build_transaction(
        self,
        user_address: str,
        calls: Sequence[Dict[str, Any]],
        parameters: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Return the build result; its ``typed_data`` must be signed by the account."""
        return await self._rpc(
            "paymaster_buildTransaction",
            {
                "transaction": {
                    "type": "invoke",
                    "invoke": {"user_address": user_address, "calls": list(calls)},
                },
                "parameters": parameters,
            },
        )

    async def execute_transaction(
        self,
        user_address: str,
        typed_data: Dict[str, Any],
        signature: List[str],
        parameters: Dict[str, Any],
    ) -> str:
        """Relay a signed typed-data transaction and return its hash."""
        result = await self._rpc(
            "paymaster_executeTransaction",
            {
                "transaction": {
                    "type": "invoke",
                    "invoke": {
                        "user_address": user_address,
                        "typed_data": typed_data,
                        "signature": signature,
                    },
                },
                "parameters": parameters,
            },
        )
        transaction_hash = result.get("transaction_hash")
        if not isinstance(transaction_hash, str) or not transaction_hash:
            raise PaymasterError("Paymaster returned no transaction hash.", kind=ErrorKind.UPSTREAM_UNAVAILABLE)
        return transaction_hash
