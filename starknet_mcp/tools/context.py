"""Collaborators shared by every tool handler for one dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from starknet_mcp.config import DEFAULT_FINALITY_POLL_INTERVAL
from starknet_mcp.errors import UnconfiguredError
from starknet_mcp.fees import ExecutionOptions, select_execution_options
from starknet_mcp.finality import wait_for_finality
from starknet_mcp.quotes import QuoteBroker
from starknet_mcp.starknet_api.felt import to_int
from starknet_mcp.starknet_api.identity import IdentityRegistryClient
from starknet_mcp.starknet_api.types import ContractCall, Ledger
from starknet_mcp.tokens import TokenRegistry

if TYPE_CHECKING:
    from starknet_mcp.a2a import A2AAdapter


@dataclass(slots=True)
class ToolContext:
    ledger: Ledger
    tokens: TokenRegistry
    broker: Optional[QuoteBroker] = None
    identity: Optional[IdentityRegistryClient] = None
    a2a: Optional["A2AAdapter"] = None
    has_api_credentials: bool = False
    poll_interval: float = DEFAULT_FINALITY_POLL_INTERVAL

    def require_broker(self) -> QuoteBroker:
        if self.broker is None:
            raise UnconfiguredError("Swap aggregator is not configured.")
        return self.broker

    def require_identity(self) -> IdentityRegistryClient:
        if self.identity is None:
            raise UnconfiguredError("Identity Registry address not configured")
        return self.identity

    def require_a2a(self) -> "A2AAdapter":
        if self.a2a is None:
            raise UnconfiguredError("Identity Registry address not configured")
        return self.a2a

    def execution_options(self, gas_token: Optional[str] = None) -> ExecutionOptions:
        """Resolve an optional gas-token reference and pick the fee mode."""
        explicit = self.tokens.resolve(gas_token) if gas_token else None
        return select_execution_options(self.has_api_credentials, explicit)

    async def token_decimals(self, token_address: str) -> int:
        result = await self.ledger.call(ContractCall(token_address, "decimals", []))
        return to_int(result[0]) if result else 0

    async def submit(self, calls: Sequence[ContractCall], options: ExecutionOptions) -> str:
        """Submit one transaction and block until it is final; returns its hash."""
        transaction_hash = await self.ledger.execute(calls, options)
        await self.wait(transaction_hash)
        return transaction_hash

    async def wait(self, transaction_hash: str) -> None:
        await wait_for_finality(self.ledger, transaction_hash, poll_interval=self.poll_interval)


def write_result(transaction_hash: str, options: ExecutionOptions, **fields: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": True, "transactionHash": transaction_hash}
    payload.update(fields)
    payload["sponsored"] = options.sponsored
    payload["gasless"] = options.gasless
    return payload
