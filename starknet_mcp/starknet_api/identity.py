"""ERC-8004 identity registry calls expressed as ledger reads and writes."""

from __future__ import annotations

from typing import Dict, List, Sequence

from starknet_mcp.fees import ExecutionOptions
from starknet_mcp.starknet_api.felt import (
    decode_byte_array,
    encode_byte_array,
    join_u256,
    split_u256,
    to_int,
)
from starknet_mcp.starknet_api.types import ContractCall, Ledger


def encode_metadata(entries: Sequence[Dict[str, str]]) -> List[str]:
    calldata: List[str] = [hex(len(entries))]
    for entry in entries:
        calldata.extend(encode_byte_array(entry["key"]))
        calldata.extend(encode_byte_array(entry["value"]))
    return calldata


class IdentityRegistryClient:
    """Identity registry at a fixed address, driven through a ``Ledger``."""

    def __init__(self, ledger: Ledger, address: str) -> None:
        self.ledger = ledger
        self.address = address

    def register_call(self, token_uri: str, metadata: Sequence[Dict[str, str]]) -> ContractCall:
        return ContractCall(
            contract_address=self.address,
            entrypoint="register_with_metadata",
            calldata=[*encode_byte_array(token_uri), *encode_metadata(metadata)],
        )

    async def register(
        self, token_uri: str, metadata: Sequence[Dict[str, str]], options: ExecutionOptions
    ) -> str:
        """Submit the registration; returns the transaction hash (not yet final)."""
        return await self.ledger.execute([self.register_call(token_uri, metadata)], options)

    async def total_agents(self) -> int:
        result = await self.ledger.call(ContractCall(self.address, "total_agents", []))
        return join_u256(result)

    async def agent_exists(self, agent_id: int) -> bool:
        result = await self.ledger.call(ContractCall(self.address, "agent_exists", split_u256(agent_id)))
        return bool(result) and to_int(result[0]) != 0

    async def get_metadata(self, agent_id: int, key: str) -> str:
        result = await self.ledger.call(
            ContractCall(self.address, "get_metadata", [*split_u256(agent_id), *encode_byte_array(key)])
        )
        value, _ = decode_byte_array(result)
        return value
