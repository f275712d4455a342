"""Identity registry (ERC-8004) and A2A tools."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from starknet_mcp.errors import StarknetMcpError
from starknet_mcp.starknet_api.felt import to_int
from starknet_mcp.starknet_api.identity import IdentityRegistryClient
from starknet_mcp.tools.context import ToolContext, write_result

logger = logging.getLogger(__name__)

METADATA_FETCH_ERROR = "ERROR_FETCHING"


async def register_agent(
    ctx: ToolContext,
    *,
    token_uri: str,
    metadata: Optional[List[Dict[str, str]]] = None,
    gas_token: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Register the server's account as an agent and wait for finality.

    The registry does not echo the new id in a way a plain invoke can read, so
    ``agentId`` is the registry's agent count right after finality. Concurrent
    registrations against the same registry can make it point at a neighbour.
    """
    registry = ctx.require_identity()
    options = ctx.execution_options(gas_token)
    transaction_hash = await registry.register(token_uri, metadata or [], options)
    await ctx.wait(transaction_hash)
    agent_id = await registry.total_agents()
    logger.info("register_agent tx=%s agent_id=%s", transaction_hash, agent_id)
    return write_result(
        transaction_hash,
        options,
        agentId=str(agent_id),
        message="Agent registered successfully on ERC-8004",
    )


async def _metadata_value(registry: IdentityRegistryClient, agent_id: int, key: str) -> str:
    try:
        return await registry.get_metadata(agent_id, key)
    except StarknetMcpError as exc:
        logger.warning("metadata fetch failed agent_id=%s key=%s error=%s", agent_id, key, exc)
        return METADATA_FETCH_ERROR


async def get_agent_info(
    ctx: ToolContext, *, agent_id: str, keys: Optional[List[str]] = None
) -> Dict[str, Any]:
    registry = ctx.require_identity()
    numeric_id = to_int(agent_id)
    if not await registry.agent_exists(numeric_id):
        return {"exists": False, "agentId": agent_id}

    keys = keys or []
    values = await asyncio.gather(*(_metadata_value(registry, numeric_id, key) for key in keys))
    return {"exists": True, "agentId": agent_id, "metadata": dict(zip(keys, values))}


async def get_agent_card(ctx: ToolContext, *, agent_id: str) -> Dict[str, Any]:
    card = await ctx.require_a2a().generate_agent_card(agent_id)
    return card.to_dict()


async def get_task_status(ctx: ToolContext, *, task_id: str) -> Dict[str, Any]:
    task = await ctx.require_a2a().get_task_status(task_id)
    return task.to_dict()
