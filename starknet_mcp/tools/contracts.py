"""Raw contract read/write, fee estimation and deployment tools."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from starknet_mcp.amounts import to_human_units
from starknet_mcp.config import FEE_TOKEN_DECIMALS
from starknet_mcp.starknet_api.types import ContractCall
from starknet_mcp.tools.context import ToolContext, write_result

logger = logging.getLogger(__name__)


async def call_contract(
    ctx: ToolContext,
    *,
    contract_address: str,
    entrypoint: str,
    calldata: Optional[List[str]] = None,
) -> Dict[str, Any]:
    result = await ctx.ledger.call(ContractCall(contract_address, entrypoint, list(calldata or [])))
    return {"result": result, "contractAddress": contract_address, "entrypoint": entrypoint}


async def invoke_contract(
    ctx: ToolContext,
    *,
    contract_address: str,
    entrypoint: str,
    calldata: Optional[List[str]] = None,
    gas_token: Optional[str] = None,
) -> Dict[str, Any]:
    options = ctx.execution_options(gas_token)
    call = ContractCall(contract_address, entrypoint, list(calldata or []))
    transaction_hash = await ctx.submit([call], options)
    logger.info("invoke tx=%s entrypoint=%s", transaction_hash, entrypoint)
    return write_result(transaction_hash, options, contractAddress=contract_address, entrypoint=entrypoint)


async def estimate_fee(
    ctx: ToolContext,
    *,
    contract_address: str,
    entrypoint: str,
    calldata: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Estimate an invoke's fee; ``overallFee`` is shown in whole fee-token units."""
    estimate = await ctx.ledger.estimate_invoke_fee(
        [ContractCall(contract_address, entrypoint, list(calldata or []))]
    )
    return {
        "overallFee": to_human_units(estimate.overall_fee, FEE_TOKEN_DECIMALS),
        "overallFeeRaw": str(estimate.overall_fee),
        "resourceBounds": estimate.resource_bounds,
        "unit": estimate.unit,
    }


async def deploy_contract(
    ctx: ToolContext,
    *,
    class_hash: str,
    constructor_calldata: Optional[List[str]] = None,
    gas_token: Optional[str] = None,
) -> Dict[str, Any]:
    options = ctx.execution_options(gas_token)
    deployed = await ctx.ledger.deploy(class_hash, list(constructor_calldata or []), options)
    await ctx.wait(deployed.transaction_hash)
    logger.info("deploy tx=%s address=%s", deployed.transaction_hash, deployed.contract_address)
    return write_result(deployed.transaction_hash, options, contractAddress=deployed.contract_address)
