"""
Pydantic argument models for every tool.

Each tool declares one ``BaseModel``; the MCP ``inputSchema`` is derived from
``model_json_schema()`` and argument bags are checked with ``model_validate``.
Bare numbers are accepted wherever a felt or id string is expected since
agents often send them that way.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Mapping, Optional, Type

import jsonref
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from starknet_mcp.config import DEFAULT_SLIPPAGE, HEX_ADDRESS_REGEX
from starknet_mcp.errors import InvalidArgumentsError

ADDRESS_PATTERN = HEX_ADDRESS_REGEX.pattern
FELT_PATTERN = r"^(0x[0-9a-fA-F]+|[0-9]+)$"
TOKEN_DESCRIPTION = "Token symbol or 0x-prefixed contract address"
GAS_TOKEN_DESCRIPTION = (
    "Symbol or address of the token to pay gas with (e.g. 'USDC', 'STRK'). "
    "Defaults to the native fee token, or sponsorship when an API key is configured."
)
CALLDATA_DESCRIPTION = "Arguments as felt strings (hex, decimal, or short strings)"
AMOUNT_DESCRIPTION = "Amount in human-readable units (e.g. '1.5')"

Address = Annotated[str, Field(pattern=ADDRESS_PATTERN)]
Felt = Annotated[str, Field(pattern=FELT_PATTERN)]
NonEmpty = Annotated[str, Field(min_length=1)]


class ToolArguments(BaseModel):
    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)


class MetadataEntry(ToolArguments):
    key: NonEmpty
    value: str


class GetBalanceArgs(ToolArguments):
    address: Optional[Address] = Field(None, description="Address to check; defaults to the agent's own account")
    token: NonEmpty = Field(description=TOKEN_DESCRIPTION)


class TransferArgs(ToolArguments):
    recipient: Address = Field(description="Recipient address (must start with 0x)")
    token: NonEmpty = Field(description=TOKEN_DESCRIPTION)
    amount: NonEmpty = Field(description=AMOUNT_DESCRIPTION)
    gas_token: Optional[NonEmpty] = Field(None, description=GAS_TOKEN_DESCRIPTION)


class CallContractArgs(ToolArguments):
    contract_address: Address = Field(description="Contract address")
    entrypoint: NonEmpty = Field(description="Function name to call")
    calldata: Optional[List[str]] = Field(None, description=CALLDATA_DESCRIPTION)


class InvokeContractArgs(ToolArguments):
    contract_address: Address = Field(description="Contract address")
    entrypoint: NonEmpty = Field(description="Function name to invoke")
    calldata: Optional[List[str]] = Field(None, description=CALLDATA_DESCRIPTION)
    gas_token: Optional[NonEmpty] = Field(None, description=GAS_TOKEN_DESCRIPTION)


class QuoteArgs(ToolArguments):
    sell_token: NonEmpty = Field(description="Token to sell (symbol or address)")
    buy_token: NonEmpty = Field(description="Token to buy (symbol or address)")
    amount: NonEmpty = Field(description=AMOUNT_DESCRIPTION)


class SwapArgs(QuoteArgs):
    slippage: float = Field(
        DEFAULT_SLIPPAGE,
        gt=0,
        lt=1,
        allow_inf_nan=False,
        description="Maximum slippage tolerance (0.01 = 1%)",
    )
    gasless: bool = Field(False, description="Pay gas in the sell token instead of ETH/STRK")


class EstimateFeeArgs(ToolArguments):
    contract_address: Address = Field(description="Contract address")
    entrypoint: NonEmpty = Field(description="Function name")
    calldata: Optional[List[str]] = Field(None, description=CALLDATA_DESCRIPTION)


class DeployContractArgs(ToolArguments):
    class_hash: Felt = Field(description="Class hash to deploy")
    constructor_calldata: Optional[List[str]] = Field(None, description=CALLDATA_DESCRIPTION)
    gas_token: Optional[NonEmpty] = Field(None, description=GAS_TOKEN_DESCRIPTION)


class RegisterAgentArgs(ToolArguments):
    token_uri: NonEmpty = Field(description="IPFS URI or URL containing agent metadata/avatar")
    metadata: Optional[List[MetadataEntry]] = Field(None, description="Optional key/value metadata stored on-chain")
    gas_token: Optional[NonEmpty] = Field(None, description=GAS_TOKEN_DESCRIPTION)


class GetAgentInfoArgs(ToolArguments):
    agent_id: Felt = Field(description="Agent id (token id)")
    keys: Optional[List[NonEmpty]] = Field(
        None, description="Metadata keys to fetch (e.g. ['agentName', 'version'])"
    )


class AgentIdArgs(ToolArguments):
    agent_id: Felt = Field(description="Agent id (token id)")


class TaskStatusArgs(ToolArguments):
    task_id: Felt = Field(description="Task id (transaction hash)")


class CreateTaskArgs(ToolArguments):
    transactionHash: Felt = Field(description="Hash of the transaction the task tracks")
    prompt: str = Field("", description="Request text the task answers")


def _sanitize_schema(schema: Any) -> Any:
    """Drop titles and definitions, collapse Optional into its inner type, close every object."""
    if not isinstance(schema, dict):
        return schema

    cleaned = dict(schema)
    for key in ("$defs", "title"):
        cleaned.pop(key, None)

    if "anyOf" in cleaned:
        non_null = [option for option in cleaned["anyOf"] if option.get("type") != "null"]
        if len(non_null) == 1:
            merged = dict(non_null[0])
            if "description" in cleaned:
                merged["description"] = cleaned["description"]
            return _sanitize_schema(merged)

    if cleaned.get("type") == "object":
        cleaned.setdefault("additionalProperties", False)
        cleaned.setdefault("required", [])

    for key, value in cleaned.items():
        if isinstance(value, dict):
            cleaned[key] = _sanitize_schema(value)
        elif isinstance(value, list):
            cleaned[key] = [_sanitize_schema(item) for item in value]
    return cleaned


def input_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """Plain JSON schema for a tool's argument model, with nested models inlined."""
    resolved = jsonref.replace_refs(model.model_json_schema(), proxies=False, lazy_load=False)
    return _sanitize_schema(resolved)


def _location(loc: Any) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def _describe_errors(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors(include_url=False):
        path = _location(error.get("loc", ()))
        problems.append(f"'{path}': {error['msg']}" if path else error["msg"])
    return "Invalid argument " + "; ".join(problems)


def validate_arguments(model: Type[BaseModel], args: Any) -> Dict[str, Any]:
    """
    Validate and coerce a tool's argument bag.

    Explicit nulls count as absent so optional arguments fall back to their
    defaults.

    Raises:
        InvalidArgumentsError: on a missing, unexpected or malformed argument.
    """
    if args is None:
        args = {}
    if not isinstance(args, Mapping):
        raise InvalidArgumentsError("Tool arguments must be an object.")
    present = {key: value for key, value in args.items() if value is not None}
    try:
        validated = model.model_validate(present)
    except ValidationError as exc:
        raise InvalidArgumentsError(_describe_errors(exc)) from exc
    return validated.model_dump()
