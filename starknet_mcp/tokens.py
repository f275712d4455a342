"""Static token registries and symbol resolution."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, List, Mapping

from starknet_mcp.errors import UnknownTokenError

ADDRESS_PREFIX = "0x"

MAINNET_TOKENS: Mapping[str, str] = MappingProxyType(
    {
        "ETH": "0x049d36570d4e46f48e99674bd3fcc84644ddd6b96f7c741b1562b82f9e004dc7",
        "STRK": "0x04718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d",
        "USDC": "0x053c91253bc9682c04929ca02ed00b3e423f6710d2ee7e0d5ebb06f3ecf368a8",
        "USDT": "0x068f5c6a61780768455de69077e07e89787839bf8166decfbf92b645209c0fb8",
    }
)

SEPOLIA_TOKENS: Mapping[str, str] = MappingProxyType(
    {
        "ETH": "0x049d36570d4e46f48e99674bd3fcc84644ddd6b96f7c741b1562b82f9e004dc7",
        "STRK": "0x04718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d",
        "USDC": "0x053b40a647cedfca6ca84f542a0fe36736031905a9639a7f19a3c1e66bfd5080",
    }
)

NETWORK_TOKENS: Mapping[str, Mapping[str, str]] = MappingProxyType(
    {"mainnet": MAINNET_TOKENS, "sepolia": SEPOLIA_TOKENS}
)


class TokenRegistry:
    """Read-only symbol -> address table; lookups are case-insensitive."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        table: Dict[str, str] = {symbol.upper(): address for symbol, address in tokens.items()}
        self._tokens: Mapping[str, str] = MappingProxyType(table)

    @classmethod
    def for_network(cls, network: str) -> "TokenRegistry":
        return cls(NETWORK_TOKENS[network])

    def symbols(self) -> List[str]:
        return list(self._tokens)

    def resolve(self, reference: str) -> str:
        """Return the canonical address for a symbol, or pass a 0x literal through unchanged."""
        if not isinstance(reference, str) or not reference:
            raise UnknownTokenError(f"Unknown token: {reference!r}")
        address = self._tokens.get(reference.upper())
        if address is not None:
            return address
        if reference.startswith(ADDRESS_PREFIX):
            return reference
        raise UnknownTokenError(f"Unknown token: {reference}")
