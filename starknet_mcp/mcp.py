"""
Tool registry and dispatcher for MCP-style tool calls.

The tool table is plain data: a name, a description, a pydantic argument
model and a handler. ``Dispatcher`` owns its own read-only copy of the
table, validates each argument bag against the tool's model, runs the
handler and always answers with a ``ToolEnvelope``; failures are normalized
into the fixed error taxonomy instead of propagating.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Type

from pydantic import BaseModel

from starknet_mcp.errors import (
    ErrorKind,
    NormalizedError,
    StarknetMcpError,
    UnknownToolError,
    normalize_error,
)
from starknet_mcp.tools import (
    call_contract,
    deploy_contract,
    estimate_fee,
    get_agent_card,
    get_agent_info,
    get_balance,
    get_quote,
    get_task_status,
    invoke_contract,
    register_agent,
    swap,
    transfer,
)
from starknet_mcp.tools.context import ToolContext
from starknet_mcp.tools.validators import (
    TOKEN_DESCRIPTION,
    AgentIdArgs,
    CallContractArgs,
    DeployContractArgs,
    EstimateFeeArgs,
    GetAgentInfoArgs,
    GetBalanceArgs,
    InvokeContractArgs,
    QuoteArgs,
    RegisterAgentArgs,
    SwapArgs,
    TaskStatusArgs,
    TransferArgs,
    input_schema,
    validate_arguments,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[Dict[str, Any]]]

TOKEN_FIELDS = ("token", "sell_token", "buy_token")


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: ToolHandler
    mutates: bool = False

    def describe(self, token_symbols: Sequence[str] = ()) -> Dict[str, Any]:
        schema = input_schema(self.args_model)
        if token_symbols:
            known = ", ".join(token_symbols)
            for field in TOKEN_FIELDS:
                prop = schema["properties"].get(field)
                if prop is not None and prop.get("description") == TOKEN_DESCRIPTION:
                    prop["description"] = f"Token symbol ({known}) or 0x-prefixed contract address"
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": schema,
            "annotations": {"readOnlyHint": not self.mutates, "destructiveHint": self.mutates},
        }


TOOL_DEFINITIONS: Sequence[ToolDefinition] = (
    ToolDefinition(
        name="get_balance",
        description="Get the token balance of an address (defaults to the server's account).",
        args_model=GetBalanceArgs,
        handler=get_balance,
    ),
    ToolDefinition(
        name="transfer",
        description="Transfer tokens to another address and wait for the transaction to finalize.",
        args_model=TransferArgs,
        handler=transfer,
        mutates=True,
    ),
    ToolDefinition(
        name="call_contract",
        description="Call a read-only contract function.",
        args_model=CallContractArgs,
        handler=call_contract,
    ),
    ToolDefinition(
        name="invoke_contract",
        description="Invoke a state-changing contract function and wait for finality.",
        args_model=InvokeContractArgs,
        handler=invoke_contract,
        mutates=True,
    ),
    ToolDefinition(
        name="swap",
        description="Swap tokens at the best available aggregator quote and wait for finality.",
        args_model=SwapArgs,
        handler=swap,
        mutates=True,
    ),
    ToolDefinition(
        name="get_quote",
        description="Get the best swap quote without executing the trade.",
        args_model=QuoteArgs,
        handler=get_quote,
    ),
    ToolDefinition(
        name="estimate_fee",
        description="Estimate the fee of an invoke transaction.",
        args_model=EstimateFeeArgs,
        handler=estimate_fee,
    ),
    ToolDefinition(
        name="deploy_contract",
        description="Deploy a contract from a declared class hash and wait for finality.",
        args_model=DeployContractArgs,
        handler=deploy_contract,
        mutates=True,
    ),
    ToolDefinition(
        name="register_agent",
        description="Register the agent identity on-chain (ERC-8004) and wait for finality.",
        args_model=RegisterAgentArgs,
        handler=register_agent,
        mutates=True,
    ),
    ToolDefinition(
        name="get_agent_info",
        description="Get identity-registry information for an agent.",
        args_model=GetAgentInfoArgs,
        handler=get_agent_info,
    ),
    ToolDefinition(
        name="get_agent_card",
        description="Build the A2A agent card for a registered agent.",
        args_model=AgentIdArgs,
        handler=get_agent_card,
    ),
    ToolDefinition(
        name="get_task_status",
        description="Read the A2A task state backed by a transaction hash.",
        args_model=TaskStatusArgs,
        handler=get_task_status,
    ),
)


@dataclass(frozen=True, slots=True)
class ToolEnvelope:
    tool: str
    ok: bool
    payload: Dict[str, Any]
    error: Optional[NormalizedError] = None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return self.payload


class Dispatcher:
    """Validates and routes tool calls; ``dispatch`` never raises."""

    def __init__(self, context: ToolContext, tools: Sequence[ToolDefinition] = TOOL_DEFINITIONS) -> None:
        self.context = context
        self._tools: Mapping[str, ToolDefinition] = MappingProxyType({tool.name: tool for tool in tools})

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def list_tools(self) -> List[Dict[str, Any]]:
        symbols = self.context.tokens.symbols()
        return [tool.describe(symbols) for tool in self._tools.values()]

    async def dispatch(self, name: Any, args: Any = None) -> ToolEnvelope:
        tool_name = name if isinstance(name, str) else str(name)
        try:
            tool = self._tools.get(tool_name)
            if tool is None:
                raise UnknownToolError(f"Unknown tool: {tool_name}")
            params = validate_arguments(tool.args_model, args)
            payload = await tool.handler(self.context, **params)
        except StarknetMcpError as exc:
            return self._failure(tool_name, exc)
        except Exception as exc:
            logger.exception("Unexpected error in tool %s", tool_name, extra={"tool": tool_name})
            return self._failure(tool_name, exc)
        return ToolEnvelope(tool=tool_name, ok=True, payload=payload)

    async def aclose(self) -> None:
        if self.context.broker is not None:
            await self.context.broker.aggregator.aclose()
        await self.context.ledger.aclose()

    def _failure(self, tool_name: str, exc: Exception) -> ToolEnvelope:
        error = normalize_error(exc)
        logger.debug(
            "tool=%s kind=%s original=%s",
            tool_name,
            error.kind.value,
            error.original,
            extra={"tool": tool_name, "kind": error.kind.value},
        )
        return ToolEnvelope(tool=tool_name, ok=False, payload=error.to_dict(tool_name), error=error)
