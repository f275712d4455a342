"""Balance and transfer tools."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from starknet_mcp.amounts import to_base_units, to_human_units
from starknet_mcp.starknet_api.felt import join_u256, split_u256
from starknet_mcp.starknet_api.types import ContractCall
from starknet_mcp.tools.context import ToolContext, write_result

logger = logging.getLogger(__name__)


async def get_balance(ctx: ToolContext, *, token: str, address: Optional[str] = None) -> Dict[str, Any]:
    """
    Read an ERC-20 balance, defaulting to the server's own account.

    Balance and decimals are independent reads and are fetched together.
    """
    token_address = ctx.tokens.resolve(token)
    owner = address or ctx.ledger.account_address
    raw_balance, decimals = await asyncio.gather(
        ctx.ledger.call(ContractCall(token_address, "balanceOf", [owner])),
        ctx.token_decimals(token_address),
    )
    balance = join_u256(raw_balance)
    return {
        "address": owner,
        "token": token,
        "tokenAddress": token_address,
        "balance": to_human_units(balance, decimals),
        "raw": str(balance),
        "decimals": decimals,
    }


async def transfer(
    ctx: ToolContext,
    *,
    recipient: str,
    token: str,
    amount: str,
    gas_token: Optional[str] = None,
) -> Dict[str, Any]:
    token_address = ctx.tokens.resolve(token)
    options = ctx.execution_options(gas_token)
    decimals = await ctx.token_decimals(token_address)
    base_amount = to_base_units(amount, decimals)

    call = ContractCall(token_address, "transfer", [recipient, *split_u256(base_amount)])
    transaction_hash = await ctx.submit([call], options)
    logger.info("transfer tx=%s token=%s", transaction_hash, token_address)
    return write_result(
        transaction_hash,
        options,
        recipient=recipient,
        token=token,
        amount=amount,
        rawAmount=str(base_amount),
    )
