"""Swap tools backed by the quote broker."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from starknet_mcp.amounts import to_base_units
from starknet_mcp.config import DEFAULT_SLIPPAGE
from starknet_mcp.quotes import describe_quote
from starknet_mcp.tools.context import ToolContext, write_result

logger = logging.getLogger(__name__)


async def get_quote(ctx: ToolContext, *, sell_token: str, buy_token: str, amount: str) -> Dict[str, Any]:
    """Dry quote: nothing is submitted."""
    broker = ctx.require_broker()
    sell_address = ctx.tokens.resolve(sell_token)
    buy_address = ctx.tokens.resolve(buy_token)
    sell_amount = to_base_units(amount, await ctx.token_decimals(sell_address))

    quote, buy_decimals = await asyncio.gather(
        broker.get_best_quote(sell_address, buy_address, sell_amount, ctx.ledger.account_address),
        ctx.token_decimals(buy_address),
    )
    summary = describe_quote(quote, buy_decimals)
    return {"sellToken": sell_token, "buyToken": buy_token, "sellAmount": amount, **summary}


async def swap(
    ctx: ToolContext,
    *,
    sell_token: str,
    buy_token: str,
    amount: str,
    slippage: float = DEFAULT_SLIPPAGE,
    gasless: bool = False,
) -> Dict[str, Any]:
    """
    Quote and execute a swap in one transaction, approval included.

    With ``gasless`` the sell token pays for gas through the paymaster.
    """
    broker = ctx.require_broker()
    sell_address = ctx.tokens.resolve(sell_token)
    buy_address = ctx.tokens.resolve(buy_token)
    options = ctx.execution_options(sell_address if gasless else None)
    sell_amount = to_base_units(amount, await ctx.token_decimals(sell_address))

    quote, buy_decimals = await asyncio.gather(
        broker.get_best_quote(sell_address, buy_address, sell_amount, ctx.ledger.account_address),
        ctx.token_decimals(buy_address),
    )
    transaction_hash = await broker.execute_quote(quote, slippage, options)
    await ctx.wait(transaction_hash)
    logger.info("swap tx=%s quote=%s", transaction_hash, quote.quote_id)

    summary = describe_quote(quote, buy_decimals)
    return write_result(
        transaction_hash,
        options,
        sellToken=sell_token,
        buyToken=buy_token,
        sellAmount=amount,
        buyAmount=summary["buyAmount"],
        buyAmountInUsd=summary["buyAmountInUsd"],
        priceImpact=summary["priceImpact"],
        gasFeesUsd=summary["gasFeesUsd"],
        routes=summary["routes"],
        slippage=slippage,
    )
