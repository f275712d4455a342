"""Swap quoting and execution on top of the aggregator and ledger collaborators."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from starknet_mcp.amounts import format_percent_bps, format_usd, to_human_units
from starknet_mcp.errors import (
    ErrorKind,
    InvalidArgumentsError,
    NoLiquidityError,
    StarknetMcpError,
)
from starknet_mcp.fees import ExecutionOptions
from starknet_mcp.starknet_api.felt import to_int
from starknet_mcp.starknet_api.types import Ledger, SwapAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Route:
    name: str
    address: Optional[str]
    percent: float


@dataclass(frozen=True, slots=True)
class Quote:
    quote_id: str
    sell_token_address: str
    buy_token_address: str
    sell_amount: int
    buy_amount: int
    price_impact_bps: Optional[float] = None
    sell_amount_usd: Optional[float] = None
    buy_amount_usd: Optional[float] = None
    gas_fees_usd: Optional[float] = None
    fee: Dict[str, Any] = field(default_factory=dict)
    routes: Tuple[Route, ...] = ()

    @classmethod
    def from_payload(cls, raw: Dict[str, Any]) -> "Quote":
        try:
            routes = tuple(
                Route(
                    name=str(item.get("name")),
                    address=item.get("address"),
                    percent=float(item.get("percent") or 0),
                )
                for item in raw.get("routes") or []
                if isinstance(item, dict)
            )
            return cls(
                quote_id=str(raw["quoteId"]),
                sell_token_address=str(raw.get("sellTokenAddress")),
                buy_token_address=str(raw.get("buyTokenAddress")),
                sell_amount=to_int(raw["sellAmount"]),
                buy_amount=to_int(raw["buyAmount"]),
                price_impact_bps=raw.get("priceImpact"),
                sell_amount_usd=raw.get("sellAmountInUsd"),
                buy_amount_usd=raw.get("buyAmountInUsd"),
                gas_fees_usd=raw.get("gasFeesInUsd"),
                fee=dict(raw.get("fee") or {}),
                routes=routes,
            )
        except (KeyError, TypeError, ValueError, StarknetMcpError) as exc:
            raise StarknetMcpError(
                f"Malformed quote from aggregator: {exc}", kind=ErrorKind.UPSTREAM_UNAVAILABLE
            ) from exc


def describe_quote(quote: Quote, buy_decimals: int) -> Dict[str, Any]:
    """Caller-facing summary; the buy amount is shown in human units."""
    return {
        "buyAmount": to_human_units(quote.buy_amount, buy_decimals),
        "sellAmountInUsd": format_usd(quote.sell_amount_usd),
        "buyAmountInUsd": format_usd(quote.buy_amount_usd),
        "priceImpact": format_percent_bps(quote.price_impact_bps),
        "gasFeesUsd": format_usd(quote.gas_fees_usd, 4),
        "routes": [{"name": route.name, "percent": f"{route.percent * 100:.1f}%"} for route in quote.routes],
        "quoteId": quote.quote_id,
    }


class QuoteBroker:
    """Picks the aggregator's top-ranked quote and executes it through the ledger."""

    def __init__(self, aggregator: SwapAggregator, ledger: Ledger) -> None:
        self.aggregator = aggregator
        self.ledger = ledger

    async def get_best_quote(
        self, sell_token: str, buy_token: str, sell_amount: int, taker_address: str
    ) -> Quote:
        quotes = await self.aggregator.get_quotes(sell_token, buy_token, sell_amount, taker_address)
        if not quotes:
            raise NoLiquidityError("No quotes available for this swap")
        # The aggregator ranks quotes; trust its order.
        best = Quote.from_payload(quotes[0])
        logger.debug("quote=%s candidates=%d", best.quote_id, len(quotes))
        return best

    async def execute_quote(
        self,
        quote: Quote,
        slippage: float,
        options: ExecutionOptions,
        *,
        taker_address: Optional[str] = None,
    ) -> str:
        """Submit the swap (approval bundled) as one transaction; returns its hash."""
        if not 0 < slippage < 1:
            raise InvalidArgumentsError(f"Slippage must be between 0 and 1 (exclusive), got {slippage}")
        taker = taker_address or self.ledger.account_address
        calls = await self.aggregator.build_swap_calls(quote.quote_id, taker, slippage, include_approve=True)
        return await self.ledger.execute(calls, options)
