import pytest

from conftest import TX_HASH, StubLedger, make_context
from starknet_mcp.errors import ERROR_MESSAGES, ErrorKind
from starknet_mcp.mcp import TOOL_DEFINITIONS, Dispatcher, ToolDefinition
from starknet_mcp.tools.validators import ToolArguments
from starknet_mcp.starknet_api.types import TransactionStatus


@pytest.fixture
def dispatcher(context):
    return Dispatcher(context)


def test_list_tools_exposes_every_tool(dispatcher):
    names = [tool["name"] for tool in dispatcher.list_tools()]
    assert names == [tool.name for tool in TOOL_DEFINITIONS]
    assert len(names) == 12
    for tool in dispatcher.list_tools():
        assert tool["inputSchema"]["type"] == "object"
        assert tool["inputSchema"]["additionalProperties"] is False
        assert "$defs" not in tool["inputSchema"]


def test_list_tools_annotations_and_token_symbols(dispatcher):
    tools = {tool["name"]: tool for tool in dispatcher.list_tools()}
    assert tools["get_balance"]["annotations"]["readOnlyHint"] is True
    assert tools["transfer"]["annotations"]["readOnlyHint"] is False
    token_help = tools["transfer"]["inputSchema"]["properties"]["token"]["description"]
    assert "ETH, STRK, USDC, USDT" in token_help
    metadata = tools["register_agent"]["inputSchema"]["properties"]["metadata"]
    assert metadata["items"]["required"] == ["key", "value"]
    assert metadata["items"]["additionalProperties"] is False


def test_tool_table_is_read_only(dispatcher):
    with pytest.raises(TypeError):
        dispatcher._tools["evil"] = TOOL_DEFINITIONS[0]


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher):
    envelope = await dispatcher.dispatch("does_not_exist", {})
    assert envelope.ok is False
    assert envelope.kind is ErrorKind.UNKNOWN_TOOL
    payload = envelope.to_dict()
    assert payload["error"] is True
    assert payload["kind"] == "UnknownTool"
    assert payload["tool"] == "does_not_exist"


@pytest.mark.asyncio
async def test_missing_argument_never_reaches_handler(dispatcher, ledger):
    envelope = await dispatcher.dispatch("transfer", {"recipient": "0x1", "token": "ETH"})
    assert envelope.kind is ErrorKind.INVALID_ARGUMENTS
    assert envelope.payload["message"] == ERROR_MESSAGES[ErrorKind.INVALID_ARGUMENTS]
    assert "amount" in envelope.payload["originalError"]
    assert ledger.executed == []


@pytest.mark.asyncio
async def test_malformed_argument_bags_are_invalid_arguments(dispatcher, ledger):
    envelope = await dispatcher.dispatch("get_balance", {"token": "ETH", 1: "x"})
    assert envelope.kind is ErrorKind.INVALID_ARGUMENTS

    envelope = await dispatcher.dispatch(
        "swap", {"sell_token": "ETH", "buy_token": "USDC", "amount": "1", "slippage": float("nan")}
    )
    assert envelope.kind is ErrorKind.INVALID_ARGUMENTS
    assert "slippage" in envelope.payload["originalError"]
    assert ledger.executed == []


@pytest.mark.asyncio
async def test_unknown_token_and_bad_amount(dispatcher):
    envelope = await dispatcher.dispatch("get_balance", {"token": "DOGE"})
    assert envelope.kind is ErrorKind.UNKNOWN_TOKEN

    envelope = await dispatcher.dispatch("transfer", {"recipient": "0x1", "token": "ETH", "amount": "1.2.3"})
    assert envelope.kind is ErrorKind.INVALID_AMOUNT


@pytest.mark.asyncio
async def test_get_quote_without_liquidity(dispatcher):
    envelope = await dispatcher.dispatch("get_quote", {"sell_token": "ETH", "buy_token": "USDC", "amount": "1"})
    assert envelope.ok is False
    assert envelope.kind is ErrorKind.NO_LIQUIDITY
    assert envelope.payload["message"] == (
        "No swap routes available for this token pair. The pair may not have liquidity."
    )


@pytest.mark.asyncio
async def test_transfer_waits_for_finality():
    ledger = StubLedger(
        results={"decimals": ["0x12"]},
        statuses=[TransactionStatus("RECEIVED"), TransactionStatus("ACCEPTED_ON_L2", "SUCCEEDED")],
    )
    dispatcher = Dispatcher(make_context(ledger))
    envelope = await dispatcher.dispatch(
        "transfer", {"recipient": "0x0456", "token": "ETH", "amount": "0.5"}
    )
    assert envelope.ok is True
    assert envelope.payload["transactionHash"] == TX_HASH
    assert ledger.status_reads == 2


@pytest.mark.asyncio
async def test_revert_text_is_classified():
    ledger = StubLedger(
        results={"decimals": ["0x12"]},
        statuses=[TransactionStatus("ACCEPTED_ON_L2", "REVERTED", "ERC20: u256_sub Overflow")],
    )
    dispatcher = Dispatcher(make_context(ledger))
    envelope = await dispatcher.dispatch("transfer", {"recipient": "0x0456", "token": "ETH", "amount": "1"})
    assert envelope.kind is ErrorKind.INSUFFICIENT_BALANCE
    assert envelope.payload["originalError"] == "ERC20: u256_sub Overflow"


@pytest.mark.asyncio
async def test_unexpected_exception_is_normalized(context):
    async def explode(ctx, **kwargs):
        raise RuntimeError("socket closed")

    tool = ToolDefinition(
        name="explode",
        description="always fails",
        args_model=ToolArguments,
        handler=explode,
    )
    dispatcher = Dispatcher(context, tools=[tool])
    envelope = await dispatcher.dispatch("explode", None)
    assert envelope.ok is False
    assert envelope.kind is ErrorKind.LEDGER_REJECTED
    assert envelope.payload["originalError"] == "socket closed"


@pytest.mark.asyncio
async def test_identity_tools_unconfigured():
    dispatcher = Dispatcher(make_context(StubLedger(), with_identity=False))
    envelope = await dispatcher.dispatch("get_agent_info", {"agent_id": "1"})
    assert envelope.kind is ErrorKind.UNCONFIGURED
    assert envelope.payload["originalError"] == "Identity Registry address not configured"

    envelope = await dispatcher.dispatch("get_task_status", {"task_id": "0xabc"})
    assert envelope.kind is ErrorKind.UNCONFIGURED


@pytest.mark.asyncio
async def test_aclose_closes_collaborators(context, ledger, aggregator):
    await Dispatcher(context).aclose()
    assert ledger.closed is True
    assert aggregator.closed is True
