import pytest

from conftest import ACCOUNT, TX_HASH, StubLedger, make_context
from starknet_mcp.errors import InvalidAmountError, UnknownTokenError
from starknet_mcp.fees import FeeMode
from starknet_mcp.tokens import MAINNET_TOKENS
from starknet_mcp.tools.account import get_balance, transfer

ETH = MAINNET_TOKENS["ETH"]
USDC = MAINNET_TOKENS["USDC"]


@pytest.mark.asyncio
async def test_get_balance_defaults_to_own_account():
    ledger = StubLedger(results={"balanceOf": ["0x14d1120d7b160000", "0x0"], "decimals": ["0x12"]})
    result = await get_balance(make_context(ledger), token="eth")
    assert result == {
        "address": ACCOUNT,
        "token": "eth",
        "tokenAddress": ETH,
        "balance": "1.5",
        "raw": "1500000000000000000",
        "decimals": 18,
    }
    balance_call = next(call for call in ledger.calls if call.entrypoint == "balanceOf")
    assert balance_call.contract_address == ETH
    assert balance_call.calldata == [ACCOUNT]


@pytest.mark.asyncio
async def test_get_balance_for_other_address_and_custom_token():
    ledger = StubLedger(results={"balanceOf": ["0x0", "0x1"], "decimals": ["0x0"]})
    result = await get_balance(make_context(ledger), token="0x0abc", address="0x0456")
    assert result["address"] == "0x0456"
    assert result["tokenAddress"] == "0x0abc"
    assert result["balance"] == str(1 << 128)


@pytest.mark.asyncio
async def test_get_balance_unknown_token_makes_no_calls():
    ledger = StubLedger()
    with pytest.raises(UnknownTokenError):
        await get_balance(make_context(ledger), token="DOGE")
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_transfer_builds_u256_calldata():
    ledger = StubLedger(results={"decimals": ["0x6"]})
    result = await transfer(make_context(ledger), recipient="0x0456", token="USDC", amount="12.345678")

    (calls, options), = ledger.executed
    assert len(calls) == 1
    assert calls[0].contract_address == USDC
    assert calls[0].entrypoint == "transfer"
    assert calls[0].calldata == ["0x0456", hex(12_345_678), "0x0"]
    assert options.mode is FeeMode.NONE
    assert result["success"] is True
    assert result["transactionHash"] == TX_HASH
    assert result["rawAmount"] == "12345678"
    assert result["sponsored"] is False
    assert result["gasless"] is False


@pytest.mark.asyncio
async def test_transfer_truncates_extra_decimals():
    ledger = StubLedger(results={"decimals": ["0x2"]})
    result = await transfer(make_context(ledger), recipient="0x0456", token="USDT", amount="1.239")
    assert result["rawAmount"] == "123"


@pytest.mark.asyncio
async def test_transfer_sponsorship_and_gas_token():
    ledger = StubLedger(results={"decimals": ["0x12"]})
    sponsored = await transfer(
        make_context(ledger, has_api_credentials=True), recipient="0x0456", token="ETH", amount="1"
    )
    assert sponsored["sponsored"] is True
    assert ledger.executed[-1][1].mode is FeeMode.SPONSORED

    gasless = await transfer(
        make_context(ledger, has_api_credentials=True),
        recipient="0x0456",
        token="ETH",
        amount="1",
        gas_token="usdc",
    )
    assert gasless["gasless"] is True
    assert gasless["sponsored"] is False
    assert ledger.executed[-1][1].gas_token == USDC


@pytest.mark.asyncio
async def test_transfer_invalid_amount_submits_nothing():
    ledger = StubLedger(results={"decimals": ["0x12"]})
    with pytest.raises(InvalidAmountError):
        await transfer(make_context(ledger), recipient="0x0456", token="ETH", amount="-1")
    assert ledger.executed == []
