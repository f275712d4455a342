import json

from fastapi.testclient import TestClient

from conftest import StubAggregator, StubLedger, make_context
from starknet_mcp.mcp import Dispatcher
from starknet_mcp.server import MCP_SERVER_NAME, MCP_SERVER_VERSION, create_app

QUOTE = {
    "quoteId": "q-1",
    "sellAmount": hex(10**18),
    "buyAmount": hex(2_500_000_000),
    "priceImpact": 10,
    "routes": [{"name": "Ekubo", "percent": 1}],
}


def make_client(**kwargs):
    ledger = StubLedger(results={"decimals": ["0x6"], "balanceOf": ["0xf4240", "0x0"]})
    return TestClient(create_app(Dispatcher(make_context(ledger, **kwargs))))


def rpc(client, method, params=None, rpc_id=1):
    body = {"jsonrpc": "2.0", "id": rpc_id, "method": method}
    if params is not None:
        body["params"] = params
    return client.post("/mcp", json=body)


def test_mcp_list_tools():
    client = make_client()
    resp = rpc(client, "tools/list")
    assert resp.status_code == 200
    data = resp.json()
    assert data["jsonrpc"] == "2.0"
    assert data["id"] == 1
    tools = data["result"]["tools"]
    swap_tool = next(t for t in tools if t["name"] == "swap")
    assert swap_tool["inputSchema"]["type"] == "object"
    assert swap_tool["inputSchema"]["required"] == ["sell_token", "buy_token", "amount"]


def test_mcp_call_tool_returns_text_and_structured_content():
    client = make_client()
    resp = rpc(client, "tools/call", {"name": "get_balance", "arguments": {"token": "USDC"}}, rpc_id=2)
    assert resp.status_code == 200
    result = resp.json()["result"]
    assert "isError" not in result
    assert result["structuredContent"]["balance"] == "1"
    assert json.loads(result["content"][0]["text"]) == result["structuredContent"]
    assert result["content"][0]["type"] == "text"


def test_mcp_call_tool_legacy_aliases():
    client = make_client(aggregator=StubAggregator(quotes=[QUOTE]))
    resp = rpc(
        client,
        "call_tool",
        {"tool": "get_quote", "params": {"sell_token": "ETH", "buy_token": "USDC", "amount": "1"}},
    )
    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["structuredContent"]["buyAmount"] == "2500"


def test_mcp_tool_failure_is_in_band():
    client = make_client()
    resp = rpc(client, "tools/call", {"name": "get_balance", "arguments": {"token": "DOGE"}})
    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["isError"] is True
    assert result["structuredContent"]["kind"] == "UnknownToken"
    assert result["structuredContent"]["tool"] == "get_balance"


def test_mcp_unknown_tool_is_in_band():
    client = make_client()
    result = rpc(client, "tools/call", {"name": "nope", "arguments": {}}).json()["result"]
    assert result["isError"] is True
    assert result["structuredContent"]["kind"] == "UnknownTool"


def test_mcp_initialize():
    client = make_client()
    resp = rpc(
        client,
        "initialize",
        {
            "protocolVersion": "2025-03-26",
            "capabilities": {},
            "clientInfo": {"name": "test-client", "version": "0.0.0"},
        },
        rpc_id=10,
    )
    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["protocolVersion"] == "2025-03-26"
    assert result["serverInfo"] == {"name": MCP_SERVER_NAME, "version": MCP_SERVER_VERSION}
    assert result["capabilities"] == {"tools": {"listChanged": False}}


def test_mcp_initialize_requires_protocol_version():
    resp = rpc(make_client(), "initialize", {})
    assert resp.json()["error"]["code"] == -32602


def test_mcp_initialized_notification():
    resp = rpc(make_client(), "notifications/initialized")
    assert resp.status_code == 204
    assert resp.content == b""


def test_mcp_protocol_errors():
    client = make_client()
    resp = client.post("/mcp", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == -32700

    resp = client.post("/mcp", json=[1, 2])
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == -32600

    assert rpc(client, "resources/list").json()["error"]["code"] == -32601
    assert rpc(client, "tools/call", {"arguments": {}}).json()["error"]["code"] == -32602
    assert rpc(client, "tools/call", {"name": "get_balance", "arguments": ["ETH"]}).json()["error"]["code"] == -32602
    assert client.post("/mcp", json={"jsonrpc": "2.0", "id": 3, "params": "x", "method": "tools/list"}).json()[
        "error"
    ]["code"] == -32602


def test_mcp_without_dispatcher():
    client = TestClient(create_app())
    resp = rpc(client, "tools/list")
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == -32603
