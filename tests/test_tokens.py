import pytest

from starknet_mcp.errors import UnknownTokenError
from starknet_mcp.tokens import MAINNET_TOKENS, SEPOLIA_TOKENS, TokenRegistry


def test_symbol_resolution_is_case_insensitive():
    registry = TokenRegistry(MAINNET_TOKENS)
    assert registry.resolve("eth") == registry.resolve("ETH") == registry.resolve("Eth") == MAINNET_TOKENS["ETH"]


def test_literal_address_passes_through_unchanged():
    registry = TokenRegistry(MAINNET_TOKENS)
    assert registry.resolve("0xabc") == "0xabc"
    assert registry.resolve("0xABCdef") == "0xABCdef"


@pytest.mark.parametrize("reference", ["DOGE", "", "abc0x", None])
def test_unknown_token_fails_closed(reference):
    registry = TokenRegistry(MAINNET_TOKENS)
    with pytest.raises(UnknownTokenError):
        registry.resolve(reference)


def test_network_registries():
    sepolia = TokenRegistry.for_network("sepolia")
    assert "USDT" not in sepolia.symbols()
    assert sepolia.resolve("usdc") == SEPOLIA_TOKENS["USDC"]
    assert sorted(TokenRegistry.for_network("mainnet").symbols()) == ["ETH", "STRK", "USDC", "USDT"]


def test_registry_is_read_only():
    registry = TokenRegistry({"abc": "0x1"})
    assert registry.resolve("ABC") == "0x1"
    with pytest.raises(TypeError):
        registry._tokens["NEW"] = "0x2"
