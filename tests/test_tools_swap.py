import pytest

from conftest import TX_HASH, StubAggregator, StubLedger, make_context
from starknet_mcp.errors import InvalidArgumentsError, NoLiquidityError, UnconfiguredError
from starknet_mcp.fees import FeeMode
from starknet_mcp.starknet_api.types import ContractCall
from starknet_mcp.tokens import MAINNET_TOKENS
from starknet_mcp.tools.swap import get_quote, swap

ETH = MAINNET_TOKENS["ETH"]
USDC = MAINNET_TOKENS["USDC"]

QUOTE = {
    "quoteId": "q-1",
    "sellTokenAddress": ETH,
    "buyTokenAddress": USDC,
    "sellAmount": hex(10**18),
    "buyAmount": hex(2_500_000_000),
    "priceImpact": 12,
    "sellAmountInUsd": 2501.5,
    "buyAmountInUsd": 2500.0,
    "gasFeesInUsd": 0.02,
    "routes": [{"name": "Ekubo", "percent": 1}],
}
SWAP_CALLS = [
    ContractCall(ETH, "approve", ["0x0fee", hex(10**18), "0x0"]),
    ContractCall("0x0fee", "multi_route_swap", ["0x1"]),
]


def decimals_for(call):
    return ["0x6"] if call.contract_address == USDC else ["0x12"]


@pytest.mark.asyncio
async def test_get_quote_is_read_only():
    ledger = StubLedger(results={"decimals": decimals_for})
    aggregator = StubAggregator(quotes=[QUOTE])
    result = await get_quote(make_context(ledger, aggregator), sell_token="ETH", buy_token="USDC", amount="1")

    assert result["sellToken"] == "ETH"
    assert result["buyAmount"] == "2500"
    assert result["priceImpact"] == "0.12%"
    assert result["routes"] == [{"name": "Ekubo", "percent": "100.0%"}]
    assert aggregator.quote_requests == [(ETH, USDC, 10**18, ledger.account_address)]
    assert aggregator.build_requests == []
    assert ledger.executed == []


@pytest.mark.asyncio
async def test_get_quote_without_routes():
    ledger = StubLedger(results={"decimals": decimals_for})
    with pytest.raises(NoLiquidityError):
        await get_quote(make_context(ledger, StubAggregator()), sell_token="ETH", buy_token="USDC", amount="1")


@pytest.mark.asyncio
async def test_swap_executes_single_transaction_with_approve():
    ledger = StubLedger(results={"decimals": decimals_for})
    aggregator = StubAggregator(quotes=[QUOTE], calls=SWAP_CALLS)
    result = await swap(
        make_context(ledger, aggregator), sell_token="ETH", buy_token="USDC", amount="1", slippage=0.02
    )

    (calls, options), = ledger.executed
    assert [call.entrypoint for call in calls] == ["approve", "multi_route_swap"]
    assert options.mode is FeeMode.NONE
    assert aggregator.build_requests == [("q-1", ledger.account_address, 0.02, True)]
    assert result["transactionHash"] == TX_HASH
    assert result["buyAmount"] == "2500"
    assert result["slippage"] == 0.02
    assert result["gasless"] is False
    assert ledger.status_reads == 1


@pytest.mark.asyncio
async def test_gasless_swap_pays_gas_in_sell_token():
    ledger = StubLedger(results={"decimals": decimals_for})
    aggregator = StubAggregator(quotes=[QUOTE], calls=SWAP_CALLS)
    result = await swap(
        make_context(ledger, aggregator, has_api_credentials=True),
        sell_token="ETH",
        buy_token="USDC",
        amount="1",
        gasless=True,
    )
    options = ledger.executed[0][1]
    assert options.mode is FeeMode.GAS_TOKEN
    assert options.gas_token == ETH
    assert result["gasless"] is True
    assert result["sponsored"] is False


@pytest.mark.asyncio
async def test_swap_rejects_bad_slippage_before_submitting():
    ledger = StubLedger(results={"decimals": decimals_for})
    aggregator = StubAggregator(quotes=[QUOTE], calls=SWAP_CALLS)
    with pytest.raises(InvalidArgumentsError):
        await swap(make_context(ledger, aggregator), sell_token="ETH", buy_token="USDC", amount="1", slippage=1.0)
    assert ledger.executed == []


@pytest.mark.asyncio
async def test_swap_without_aggregator(ledger):
    ctx = make_context(ledger)
    ctx.broker = None
    with pytest.raises(UnconfiguredError):
        await swap(ctx, sell_token="ETH", buy_token="USDC", amount="1")
